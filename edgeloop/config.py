"""
Runtime configuration for EdgeLoop.

All settings come from environment variables (a local ``.env`` file is
loaded first).  ``Settings.from_env()`` is called once by the composition
root and the resulting object is passed down; nothing else reads the
environment at import time.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _load_api_keys() -> Dict[str, str]:
    """Map API key → user identifier.  Supports up to 5 users (user1 is admin)."""
    keys = {}
    for i in range(1, 6):
        key = os.getenv(f"API_KEY_USER{i}")
        if key:
            keys[key] = f"user{i}"

    if not keys and os.getenv("ENVIRONMENT") == "development":
        # Development fallback (never use in production)
        keys["dev-key-insecure"] = "user1"
    return keys


@dataclass
class NotificationSettings:
    """SendGrid / Twilio credentials for crit alert dispatch.  Unset = channel skipped."""

    sendgrid_api_key: Optional[str] = None
    alert_email: Optional[str] = None
    alert_from_email: str = "alerts@edgeloop.app"

    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_from_number: Optional[str] = None
    twilio_to_number: Optional[str] = None

    @property
    def email_configured(self) -> bool:
        return bool(self.sendgrid_api_key and self.alert_email)

    @property
    def sms_configured(self) -> bool:
        return all([
            self.twilio_account_sid,
            self.twilio_auth_token,
            self.twilio_from_number,
            self.twilio_to_number,
        ])

    @classmethod
    def from_env(cls) -> "NotificationSettings":
        return cls(
            sendgrid_api_key=os.getenv("SENDGRID_API_KEY"),
            alert_email=os.getenv("ALERT_EMAIL"),
            alert_from_email=os.getenv("ALERT_FROM_EMAIL", cls.alert_from_email),
            twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID"),
            twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN"),
            twilio_from_number=os.getenv("TWILIO_FROM_NUMBER"),
            twilio_to_number=os.getenv("TWILIO_TO_NUMBER"),
        )


@dataclass
class Settings:
    database_url: str = "postgresql://postgres@127.0.0.1:5432/edgeloop"
    environment: str = "production"
    log_level: str = "INFO"

    # Stake sizing
    kelly_fraction: float = 0.25

    # Drift monitoring
    drift_metric_window: int = 100       # most recent rows scanned per verdict
    drift_psi_threshold: float = 0.2     # per-feature PSI → is_drifted
    drift_crit_psi: float = 0.25         # mean PSI above this → crit alert
    drift_check_interval_min: int = 60

    model_history_limit: int = 20
    scheduler_enabled: bool = True

    api_keys: Dict[str, str] = field(default_factory=dict)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            environment=os.getenv("ENVIRONMENT", cls.environment),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            kelly_fraction=float(os.getenv("KELLY_FRACTION", str(cls.kelly_fraction))),
            drift_metric_window=int(os.getenv("DRIFT_METRIC_WINDOW", str(cls.drift_metric_window))),
            drift_psi_threshold=float(os.getenv("DRIFT_PSI_THRESHOLD", str(cls.drift_psi_threshold))),
            drift_crit_psi=float(os.getenv("DRIFT_CRIT_PSI", str(cls.drift_crit_psi))),
            drift_check_interval_min=int(
                os.getenv("DRIFT_CHECK_INTERVAL_MIN", str(cls.drift_check_interval_min))
            ),
            model_history_limit=int(os.getenv("MODEL_HISTORY_LIMIT", str(cls.model_history_limit))),
            scheduler_enabled=_env_bool("SCHEDULER_ENABLED", "true"),
            api_keys=_load_api_keys(),
            notifications=NotificationSettings.from_env(),
        )
