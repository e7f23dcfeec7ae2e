"""
Push channel: job-row change events over Postgres LISTEN/NOTIFY.

The trigger in ``sql/queue_change_notify.sql`` publishes one JSON payload
per row change::

    {"event_type": "UPDATE", "table": "processing_queue", "old": {...}, "new": {...}}

Delivery is best effort. A dropped connection ends the iteration with a
TransportError; reconnecting is the reconciler's decision.
"""

import json
from collections.abc import AsyncIterator
from typing import Protocol

import psycopg
from psycopg import sql

from app.features.processing_queue.domain.models import EVENT_TYPES, ChangeEvent
from app.infrastructure.observability.logging import get_logger
from app.models.domain.errors import TransportError

logger = get_logger(__name__)


class ChangeFeed(Protocol):
    def events(self) -> AsyncIterator[ChangeEvent]: ...


def decode_notification(queue_name: str, payload: str) -> ChangeEvent | None:
    """Turn one NOTIFY payload into a ChangeEvent; malformed payloads are skipped."""
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        logger.warning("Discarding malformed change payload", queue_name=queue_name, error=str(e))
        return None

    if not isinstance(data, dict):
        logger.warning("Discarding non-object change payload", queue_name=queue_name)
        return None

    event_type = str(data.get("event_type") or data.get("type") or "").lower()
    if event_type not in EVENT_TYPES:
        logger.warning(
            "Discarding change payload with unknown event type",
            queue_name=queue_name,
            event_type=event_type,
        )
        return None

    return ChangeEvent(
        queue_name=queue_name,
        event_type=event_type,
        new=data.get("new") or None,
        old=data.get("old") or None,
    )


class PostgresChangeFeed:
    """
    LISTEN on one notification channel per queue.

    Args:
        dsn: Postgres connection string (a dedicated connection, not pooled)
        channels: Mapping of notification channel -> queue name
    """

    def __init__(self, dsn: str, channels: dict[str, str]):
        self._dsn = dsn
        self._channels = dict(channels)

    async def events(self) -> AsyncIterator[ChangeEvent]:
        try:
            conn = await psycopg.AsyncConnection.connect(self._dsn, autocommit=True)
        except psycopg.Error as e:
            raise TransportError(f"Change feed connection failed: {e}", operation="subscribe") from e

        try:
            for channel in self._channels:
                await conn.execute(sql.SQL("LISTEN {}").format(sql.Identifier(channel)))
            logger.info("Realtime subscription active", channels=sorted(self._channels))

            async for notify in conn.notifies():
                queue_name = self._channels.get(notify.channel)
                if queue_name is None:
                    continue
                event = decode_notification(queue_name, notify.payload)
                if event is not None:
                    yield event

        except psycopg.Error as e:
            raise TransportError(f"Change feed disconnected: {e}", operation="subscribe") from e
        finally:
            await conn.close()
