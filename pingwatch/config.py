from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    env_name: str = "staging"  # staging | testing | production

    # Storage
    data_dir: Path = Path(".data")
    logs_dir: Path = Path(".logs")

    # Auth
    hashing_secret: str = "thisIsAStagingSecret"
    token_ttl_seconds: int = 3600

    # Checks
    max_checks: int = 5

    # Worker schedules (seconds)
    check_interval_seconds: int = 60
    rotation_interval_seconds: int = 60 * 60 * 24
    max_concurrent_probes: int = 16  # upper bound on in-flight probes per sweep

    # Twilio (SMS alerts). Empty = log-only alerts
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_phone: str = ""

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    run_worker_in_api: bool = True

    # Logging
    log_level: str = "INFO"

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_from_phone)


settings = Settings()
