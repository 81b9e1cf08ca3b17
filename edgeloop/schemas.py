"""
Pydantic request/response schemas for the EdgeLoop API.

Using explicit schemas instead of raw dicts prevents mass-assignment
vulnerabilities on ORM models and generates accurate OpenAPI docs.

Probabilities, PSI values, edge, EV and stakes cross the wire as fixed-point
decimal strings ("0.523810") so clients never see float drift.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_serializer, field_validator, model_validator

Scalar = Union[bool, int, float, str]

FIXED_PLACES = 6


def fixed(value: Optional[float]) -> Optional[str]:
    """Serialize a float as a fixed-point decimal string (6 places)."""
    if value is None:
        return None
    return f"{value:.{FIXED_PLACES}f}"


_ORM = {"from_attributes": True, "protected_namespaces": ()}


# ---------------------------------------------------------------------------
# Odds & edge
# ---------------------------------------------------------------------------

class OddsConversionResponse(BaseModel):
    american: int
    formatted: str
    decimal_odds: float
    implied_prob: float

    @field_serializer("decimal_odds", "implied_prob")
    def serialize_fixed(self, v: float) -> str:
        return fixed(v)


class NoVigRequest(BaseModel):
    """Payload for POST /api/odds/no-vig: every outcome of one market."""

    odds: List[float] = Field(..., min_length=1, max_length=50)

    model_config = {"json_schema_extra": {"example": {"odds": [-110, -110]}}}


class NoVigResponse(BaseModel):
    odds: List[float]
    fair_probs: List[float]

    @field_serializer("fair_probs")
    def serialize_fixed(self, v: List[float]) -> List[str]:
        return [fixed(p) for p in v]


class EdgeRequest(BaseModel):
    """
    Payload for POST /api/edge.

    ``market_odds`` is not validated: a zero or missing price is a legitimate
    "no market" input and yields an uninformative but defined result.
    """

    model_prob: float = Field(..., gt=0.0, lt=1.0, description="Model win probability")
    market_odds: float = Field(..., description="American odds for the same side")
    kelly_fraction: Optional[float] = Field(
        None, gt=0.0, le=1.0, description="Fractional Kelly multiplier (default from config)"
    )

    model_config = {
        "protected_namespaces": (),
        "json_schema_extra": {
            "example": {"model_prob": 0.574, "market_odds": -110, "kelly_fraction": 0.25}
        },
    }


class EdgeResponse(BaseModel):
    model_prob: float
    market_odds: float
    implied_prob: float
    decimal_odds: float
    edge: float
    ev: float
    kelly_stake: float
    kelly_units: float
    kelly_fraction: float
    has_edge: bool

    model_config = {"protected_namespaces": ()}

    @field_serializer("model_prob", "implied_prob", "decimal_odds", "edge", "ev", "kelly_stake")
    def serialize_fixed(self, v: float) -> str:
        return fixed(v)


# ---------------------------------------------------------------------------
# Model registry
# ---------------------------------------------------------------------------

class ModelVersionCreate(BaseModel):
    """Payload for POST /admin/models — registers a version in ``training``."""

    version: str = Field(..., min_length=1, max_length=50)
    model_type: str = Field(..., min_length=1, max_length=50)
    hyperparameters: Optional[Dict[str, Scalar]] = None
    training_data_from: Optional[datetime] = None
    training_data_to: Optional[datetime] = None
    artifact_path: Optional[str] = Field(None, max_length=500)

    model_config = {
        "protected_namespaces": (),
        "json_schema_extra": {
            "example": {
                "version": "v3.2.0",
                "model_type": "xgboost",
                "hyperparameters": {"max_depth": 6, "learning_rate": 0.05},
            }
        },
    }


class ModelVersionResponse(BaseModel):
    version: str
    status: str
    model_type: str
    hyperparameters: Optional[Dict[str, Any]] = None
    metrics: Optional[Dict[str, Any]] = None
    training_data_from: Optional[datetime] = None
    training_data_to: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    created_at: datetime

    model_config = _ORM


class ModelEvaluationRequest(BaseModel):
    """Payload for POST /admin/models/{version}/evaluate: paired held-out results."""

    predictions: List[float] = Field(..., min_length=1, max_length=100_000)
    outcomes: List[bool] = Field(..., min_length=1, max_length=100_000)

    @field_validator("predictions")
    @classmethod
    def validate_probabilities(cls, v: List[float]) -> List[float]:
        if any(not 0.0 <= p <= 1.0 for p in v):
            raise ValueError("predictions must be probabilities in [0, 1]")
        return v

    @model_validator(mode="after")
    def validate_pairing(self) -> "ModelEvaluationRequest":
        if len(self.predictions) != len(self.outcomes):
            raise ValueError("predictions and outcomes must have the same length")
        return self

    model_config = {
        "json_schema_extra": {
            "example": {"predictions": [0.62, 0.41, 0.77], "outcomes": [True, False, True]}
        }
    }


class FeatureDrift(BaseModel):
    feature: str
    psi: float
    is_drifted: bool

    @field_serializer("psi")
    def serialize_fixed(self, v: float) -> str:
        return fixed(v)


class DriftInfo(BaseModel):
    overall_psi: float
    is_drifted: bool
    feature_drift: List[FeatureDrift]

    @field_serializer("overall_psi")
    def serialize_fixed(self, v: float) -> str:
        return fixed(v)


class ModelStatusResponse(BaseModel):
    as_of: datetime
    model_version: str
    status: str
    message: Optional[str] = None
    activated_at: Optional[datetime] = None
    metrics: Optional[Dict[str, Any]] = None
    drift: Optional[DriftInfo] = None

    model_config = {"protected_namespaces": ()}


class ModelHistoryResponse(BaseModel):
    as_of: datetime
    models: List[ModelVersionResponse]


# ---------------------------------------------------------------------------
# Drift metrics
# ---------------------------------------------------------------------------

class DriftMetricCreate(BaseModel):
    """Payload for POST /admin/models/{version}/drift (append-only)."""

    metric_type: Literal["psi", "ks", "wasserstein"]
    feature_name: Optional[str] = Field(None, max_length=100, description="NULL = whole model")
    value: float
    threshold: float
    window_start: datetime
    window_end: datetime
    is_drifted: Optional[bool] = Field(None, description="Defaults to value > threshold")

    @field_validator("window_end")
    @classmethod
    def validate_window(cls, v: datetime, info) -> datetime:
        start = info.data.get("window_start")
        if start is not None and v < start:
            raise ValueError("window_end must not precede window_start")
        return v


class DriftMetricResponse(BaseModel):
    id: int
    model_version: str
    metric_type: str
    feature_name: Optional[str] = None
    value: float
    threshold: float
    is_drifted: bool
    window_start: datetime
    window_end: datetime
    created_at: datetime

    model_config = _ORM

    @field_serializer("value", "threshold")
    def serialize_fixed(self, v: float) -> str:
        return fixed(v)


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------

class AlertResponse(BaseModel):
    id: int
    severity: Literal["info", "warn", "crit"]
    type: str
    title: str
    detail: Optional[str] = None
    game_id: Optional[str] = None
    model_version: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("alert_metadata", "metadata")
    )
    created_at: datetime
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None

    model_config = _ORM


class AlertsResponse(BaseModel):
    as_of: datetime
    alerts: List[AlertResponse]


class AlertDetailResponse(BaseModel):
    as_of: datetime
    alert: AlertResponse


class CriticalCountResponse(BaseModel):
    as_of: datetime
    unacknowledged_critical_24h: int


class DriftCheckResponse(BaseModel):
    as_of: datetime
    model_version: str
    drift: DriftInfo
    alert: Optional[AlertResponse] = None

    model_config = {"protected_namespaces": ()}
