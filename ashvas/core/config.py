from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    PROJECT_NAME: str = "Ashvas Monitoring Core"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = ""  # local, dev, prod (from .env)

    # CORS (from .env, comma-separated)
    BACKEND_CORS_ORIGINS: List[str] = []

    # Logging & Sentry
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: str | None = None

    # Sampling
    MONITOR_AUTOSTART: bool = True
    SAMPLE_SOURCE: str = "simulated"  # simulated, queue
    SAMPLE_CADENCE_SECONDS: float = 2.0
    SAMPLE_TIMEOUT_SECONDS: float = 5.0
    SAMPLE_QUEUE_SIZE: int = 100
    SIMULATION_SEED: int | None = None

    # Alert policy (tunable, not clinical constants)
    THRESHOLDS_PATH: str | None = None
    ALERT_COOLDOWN_SECONDS: float = 5.0
    ALERT_HISTORY_LIMIT: int = 10

    # Escalation timers
    CALMING_VIBRATION_SECONDS: float = 10.0
    CHECKIN_VIBRATION_SECONDS: float = 15.0
    EMERGENCY_VIBRATION_SECONDS: float = 30.0
    CHECKIN_GRACE_SECONDS: float = 60.0
    URGENT_CHECKIN_GRACE_SECONDS: float = 15.0
    SINK_TIMEOUT_SECONDS: float = 5.0

    # SOS (contacts as a JSON list in .env)
    SOS_WEBHOOK_URL: str | None = None
    EMERGENCY_CONTACTS: List[dict] = []

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )


settings = Settings()
