"""
AI inference service client.
Handles queue inspection, tag-sync preview/apply, batch queuing and face
cluster assignment against the external AI backend, with retry/backoff and
consistent error mapping. All failures surface as TransportError.
"""

import asyncio
from typing import Any

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.errors import TransportError

logger = get_logger(__name__)

API_PREFIX = "/api/v1"

# Request timeouts and retry configuration
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}
UNSAFE_RETRY_STATUS_CODES = {429}


class AIServiceClient:
    """
    Async client for the AI processing service.

    The client never raises httpx exceptions to callers: transport problems
    and non-2xx responses are converted to TransportError with a readable
    message, the operation name and the HTTP status when there was one.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff_factor: float = BACKOFF_FACTOR,
    ):
        self.base_url = (base_url or settings.AI_API_URL).rstrip("/")
        self._token = token if token is not None else settings.AI_API_TOKEN
        self._backoff_factor = backoff_factor
        self._client = self._create_client(timeout or settings.AI_REQUEST_TIMEOUT, transport)

    def _create_client(
        self, timeout: float, transport: httpx.AsyncBaseTransport | None
    ) -> httpx.AsyncClient:
        """Create async HTTP client for the AI service."""
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            limits=limits,
            headers=self._get_headers(),
            transport=transport,
        )

    def _get_headers(self) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request_with_retry(
        self, method: str, path: str, idempotent: bool = True, **kwargs
    ) -> httpx.Response:
        """
        Execute an HTTP request with retry and backoff.

        Non-idempotent requests are only retried when the server cannot have
        acted on them: a failed connect or a 429.
        """
        retry_statuses = RETRY_STATUS_CODES if idempotent else UNSAFE_RETRY_STATUS_CODES
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self._client.request(method, path, **kwargs)
                if response.status_code in retry_statuses and attempt < MAX_RETRIES:
                    backoff = self._backoff_factor * (2 ** (attempt - 1))
                    logger.debug(
                        "AI service retrying request",
                        path=path,
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise
                if not idempotent and not isinstance(e, httpx.ConnectError):
                    raise
                backoff = self._backoff_factor * (2 ** (attempt - 1))
                logger.debug(
                    "AI service request error, retrying",
                    path=path,
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise RuntimeError("AI service retry loop exhausted")

    async def _call(
        self, method: str, path: str, operation: str, idempotent: bool = True, **kwargs
    ) -> Any:
        """Run one request and return the decoded JSON body."""
        try:
            response = await self._request_with_retry(
                method, f"{API_PREFIX}{path}", idempotent=idempotent, **kwargs
            )
        except httpx.TimeoutException as e:
            logger.error("AI service request timed out", operation=operation, error=str(e))
            raise TransportError(f"AI service timed out during {operation}", operation=operation) from e
        except httpx.RequestError as e:
            logger.error("AI service unreachable", operation=operation, error=str(e))
            raise TransportError(f"AI service unreachable: {e}", operation=operation) from e

        return self._handle_api_response(response, operation)

    def _handle_api_response(self, response: httpx.Response, operation: str) -> Any:
        """
        Handle and validate an AI service response.

        Args:
            response: HTTP response from the AI service
            operation: Operation name for logging

        Returns:
            Parsed response data

        Raises:
            TransportError: If the response is an error or not JSON
        """
        logger.debug(
            f"AI service {operation} response",
            status_code=response.status_code,
            response_size=len(response.content),
        )

        if response.is_success:
            try:
                return response.json() if response.content else {}
            except ValueError as e:
                logger.error(f"Failed to parse AI service {operation} response", error=str(e))
                raise TransportError(f"Invalid response format: {e}", operation=operation) from e

        try:
            error_data = response.json() if response.content else {}
        except ValueError:
            logger.error(
                f"AI service {operation} failed with non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            raise TransportError(
                f"AI service error (HTTP {response.status_code})",
                operation=operation,
                status_code=response.status_code,
            ) from None

        message = self._extract_error_message(error_data, response.status_code)
        logger.error(
            f"AI service {operation} failed",
            status_code=response.status_code,
            error_message=message,
        )
        raise TransportError(
            message,
            operation=operation,
            status_code=response.status_code,
            response_data=error_data if isinstance(error_data, dict) else {},
        )

    def _extract_error_message(self, error_data: Any, status_code: int) -> str:
        """Flatten FastAPI/pydantic error bodies into one message."""
        if not isinstance(error_data, dict):
            return f"HTTP {status_code}"

        detail = error_data.get("detail")
        if isinstance(detail, list):
            return ", ".join(
                str(item.get("msg")) if isinstance(item, dict) and item.get("msg") else str(item)
                for item in detail
            )
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return str(detail)

        error = error_data.get("error")
        if error:
            return error if isinstance(error, str) else str(error)

        return f"HTTP {status_code}"

    # ------------------------------------------------------------------
    # Queue inspection
    # ------------------------------------------------------------------

    async def get_queue_stats(self) -> dict[str, int]:
        return await self._call("GET", "/queue/stats", "get_queue_stats")

    async def get_active_jobs(self, limit: int = 10) -> list[dict]:
        data = await self._call(
            "GET", "/queue/jobs/active", "get_active_jobs", params={"limit": limit}
        )
        return list(data.get("jobs", []))

    async def get_recent_jobs(self, limit: int = 50) -> list[dict]:
        data = await self._call(
            "GET", "/queue/jobs/recent", "get_recent_jobs", params={"limit": limit}
        )
        return list(data.get("jobs", []))

    async def get_worker_status(self) -> list[dict]:
        data = await self._call("GET", "/queue/workers", "get_worker_status")
        return list(data.get("workers", []))

    async def clear_queue(self) -> dict:
        return await self._call("DELETE", "/queue", "clear_queue")

    # ------------------------------------------------------------------
    # Batch queuing
    # ------------------------------------------------------------------

    async def queue_batch(self, batch_size: int, offset: int) -> dict:
        """Queue the next ``batch_size`` unprocessed assets starting at ``offset``."""
        return await self._call(
            "POST",
            "/process/queue-all",
            "queue_batch",
            idempotent=False,
            params={"batch_size": batch_size, "offset": offset},
        )

    async def get_unprocessed_count(self) -> int:
        data = await self._call("GET", "/process/unprocessed-count", "get_unprocessed_count")
        return int(data.get("total_unprocessed") or 0)

    # ------------------------------------------------------------------
    # Tag sync and clusters
    # ------------------------------------------------------------------

    async def preview_tag_sync(self, iou_threshold: float, limit: int) -> dict:
        return await self._call(
            "POST",
            "/faces/tag-sync/preview",
            "preview_tag_sync",
            json={"iou_threshold": iou_threshold, "limit": limit},
        )

    async def apply_tag_sync(self, matches: list[dict[str, str]]) -> dict:
        return await self._call(
            "POST",
            "/faces/tag-sync/apply",
            "apply_tag_sync",
            idempotent=False,
            json={"matches": matches},
        )

    async def assign_cluster(
        self,
        cluster_id: str,
        contact_id: str,
        name: str | None = None,
        exclude_face_ids: list[str] | None = None,
    ) -> dict:
        body: dict[str, Any] = {"knox_contact_id": contact_id}
        if name:
            body["name"] = name
        if exclude_face_ids:
            body["exclude_face_ids"] = exclude_face_ids
        return await self._call(
            "POST", f"/faces/clusters/{cluster_id}/assign", "assign_cluster", json=body
        )

    async def health_check(self) -> dict:
        """Probe the service; never raises."""
        try:
            response = await self._client.get("/health")
            return {
                "healthy": response.is_success,
                "status_code": response.status_code,
                "service": "ai_service",
            }
        except httpx.HTTPError as e:
            return {"healthy": False, "error": str(e), "service": "ai_service"}
