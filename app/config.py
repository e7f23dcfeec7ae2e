from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # AI inference service settings
    AI_API_URL: str = "http://localhost:8000"
    AI_API_TOKEN: str | None = None
    AI_REQUEST_TIMEOUT: float = 30.0

    # Job store (Supabase Postgres). Table-backed queues are disabled without it.
    SUPABASE_DB_URL: str | None = None

    # =================================================================
    # DATABASE POOL SETTINGS - Simple and configurable
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 6
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    # =================================================================
    # QUEUE MONITOR SETTINGS
    # =================================================================
    QUEUE_POLL_INTERVAL_SECONDS: float = 30.0
    ACTIVITY_LOG_CAPACITY: int = 100
    RECENT_JOBS_LIMIT: int = 50
    ACTIVE_JOBS_LIMIT: int = 10
    VIDEO_QUEUE_ENABLED: bool = True
    VIDEO_JOBS_TABLE: str = "video_transcoding_jobs"

    # Push channel (Postgres LISTEN/NOTIFY)
    REALTIME_ENABLED: bool = True
    REALTIME_RECONNECT_ATTEMPTS: int = 5
    REALTIME_RECONNECT_DELAY_SECONDS: float = 2.0

    # Tag sync and batch queuing
    TAG_SYNC_IOU_THRESHOLD: float = 0.4
    TAG_SYNC_PREVIEW_LIMIT: int = 200
    BATCH_QUEUE_SIZE: int = 100

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def job_store_enabled(self) -> bool:
        return bool(self.SUPABASE_DB_URL)

    def tracked_queues(self) -> list[str]:
        """Queue names the monitor reconciles, in display order."""
        queues = ["ai"]
        if self.VIDEO_QUEUE_ENABLED and self.job_store_enabled():
            queues.append("video")
        return queues

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        # Base configuration
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            # The monitor only reads; keep local pools small
            config.update(
                {
                    "min_size": 1,
                    "max_size": 4,
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
