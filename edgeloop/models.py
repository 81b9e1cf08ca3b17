"""
Database models for EdgeLoop
SQLAlchemy ORM (PostgreSQL in production, SQLite in tests)

The engine and session factory live in ``edgeloop.database``; this module
only declares tables.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    DateTime,
    Boolean,
    JSON,
    Text,
    Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp (all DateTime columns store UTC without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ModelStatus:
    """Lifecycle: training → validating → active → deprecated | failed."""

    TRAINING = "training"
    VALIDATING = "validating"
    ACTIVE = "active"
    DEPRECATED = "deprecated"
    FAILED = "failed"

    ALL = (TRAINING, VALIDATING, ACTIVE, DEPRECATED, FAILED)


class AlertSeverity:
    INFO = "info"
    WARN = "warn"
    CRIT = "crit"

    ALL = (INFO, WARN, CRIT)


class AlertType:
    DRIFT_DETECTED = "drift_detected"
    ODDS_MOVEMENT = "odds_movement"
    GAME_UPDATE = "game_update"
    MODEL_DEGRADATION = "model_degradation"
    SYSTEM = "system"
    EDGE_OPPORTUNITY = "edge_opportunity"

    ALL = (DRIFT_DETECTED, ODDS_MOVEMENT, GAME_UPDATE, MODEL_DEGRADATION, SYSTEM, EDGE_OPPORTUNITY)


class ModelVersion(Base):
    """A trained model version.  Never hard-deleted; at most one is active."""

    __tablename__ = "model_versions"

    id = Column(Integer, primary_key=True, index=True)
    version = Column(String(50), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ModelStatus.TRAINING, index=True)

    model_type = Column(String(50), nullable=False)   # "xgboost", "logistic", "ensemble", ...
    hyperparameters = Column(JSON)                     # {name: number | string | bool}

    training_data_from = Column(DateTime)
    training_data_to = Column(DateTime)

    # accuracy, log_loss, brier_score, calibration, auc ... all optional
    metrics = Column(JSON)

    artifact_path = Column(String(500))

    activated_at = Column(DateTime)   # set only on transition into "active"
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class DriftMetric(Base):
    """One drift observation.  Append-only: new observations are new rows."""

    __tablename__ = "drift_metrics"

    id = Column(Integer, primary_key=True, index=True)
    model_version = Column(String(50), nullable=False, index=True)

    metric_type = Column(String(20), nullable=False)   # "psi" | "ks" | "wasserstein"
    feature_name = Column(String(100))                 # NULL = whole-model metric

    value = Column(Float, nullable=False)
    threshold = Column(Float, nullable=False)
    is_drifted = Column(Boolean, nullable=False, default=False, index=True)

    window_start = Column(DateTime, nullable=False)
    window_end = Column(DateTime, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class Alert(Base):
    """Persisted monitoring alert.  Acknowledged at most once, never deleted."""

    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, index=True)

    severity = Column(String(10), nullable=False, index=True)   # info | warn | crit
    type = Column(String(50), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    detail = Column(Text)

    game_id = Column(String(64))
    model_version = Column(String(50))

    alert_metadata = Column("metadata", JSON)

    acknowledged_at = Column(DateTime, index=True)
    acknowledged_by = Column(String(255))

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("alerts_severity_ack_created_idx", "severity", "acknowledged_at", "created_at"),
    )

    @property
    def acknowledged(self) -> bool:
        return self.acknowledged_at is not None
