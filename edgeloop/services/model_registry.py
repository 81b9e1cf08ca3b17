"""
Model version registry.

Tracks the lifecycle of trained model versions::

    training → validating → active → deprecated | failed

and enforces the **at-most-one-active** invariant.

Activation is the only operation with a concurrency discipline.  The
deprecate-then-activate pair runs in one transaction, serialized by:

    - a process-wide lock (every registry instance in the process shares it)
    - on PostgreSQL, ``pg_advisory_xact_lock`` keyed on the registry, so
      activations from other processes / hosts queue behind each other too

Without the boundary two concurrent activations can both observe "no active
version" and both mark themselves active.

Not-found is a normal outcome (``None``); illegal transitions raise
``InvalidModelTransition``.  Storage errors propagate unchanged.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from edgeloop.core.calibration import evaluate_predictions
from edgeloop.database import Database
from edgeloop.models import ModelStatus, ModelVersion, utcnow

logger = logging.getLogger(__name__)

# Advisory-lock key for the registry resource (any stable 64-bit integer)
_ACTIVATION_LOCK_KEY = 0x6D6F64656C726567

_PROCESS_ACTIVATION_LOCK = threading.Lock()

# Statuses a version may be activated from
_ACTIVATABLE = (ModelStatus.TRAINING, ModelStatus.VALIDATING)


class InvalidModelTransition(ValueError):
    """The requested lifecycle transition is not allowed from the current status."""

    def __init__(self, version: str, current: str, target: str):
        self.version = version
        self.current = current
        self.target = target
        super().__init__(
            f"Model version {version!r} cannot move from {current!r} to {target!r}"
        )


class DuplicateModelVersion(ValueError):
    """A model version with this version string already exists."""


class ModelRegistry:
    """
    Storage-backed registry of model versions.

    Usage::

        registry = ModelRegistry(database)
        registry.create_version("v3.2.0", model_type="xgboost")
        registry.start_validation("v3.2.0")
        registry.record_metrics("v3.2.0", {"log_loss": 0.641, "brier_score": 0.224})
        registry.activate("v3.2.0")
    """

    def __init__(self, database: Database):
        self._db = database

    # ------------------------------------------------------------------
    # Creation and non-activation transitions
    # ------------------------------------------------------------------

    def create_version(
        self,
        version: str,
        model_type: str,
        hyperparameters: Optional[Dict[str, Any]] = None,
        training_data_from: Optional[datetime] = None,
        training_data_to: Optional[datetime] = None,
        artifact_path: Optional[str] = None,
    ) -> ModelVersion:
        """Register a version that has just started training."""
        model = ModelVersion(
            version=version,
            status=ModelStatus.TRAINING,
            model_type=model_type,
            hyperparameters=dict(hyperparameters) if hyperparameters else None,
            training_data_from=training_data_from,
            training_data_to=training_data_to,
            artifact_path=artifact_path,
        )
        try:
            with self._db.session() as db:
                if self._find(db, version) is not None:
                    raise DuplicateModelVersion(f"Model version {version!r} already exists")
                db.add(model)
                db.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent create of the same version
            raise DuplicateModelVersion(f"Model version {version!r} already exists") from exc

        logger.info("Registered model version %s (%s)", version, model_type)
        return model

    def start_validation(self, version: str) -> Optional[ModelVersion]:
        """training → validating."""
        return self._transition(version, (ModelStatus.TRAINING,), ModelStatus.VALIDATING)

    def mark_failed(self, version: str) -> Optional[ModelVersion]:
        """training | validating | active → failed."""
        return self._transition(
            version,
            (ModelStatus.TRAINING, ModelStatus.VALIDATING, ModelStatus.ACTIVE),
            ModelStatus.FAILED,
        )

    def deprecate(self, version: str) -> Optional[ModelVersion]:
        """active → deprecated, leaving no active version."""
        return self._transition(version, (ModelStatus.ACTIVE,), ModelStatus.DEPRECATED)

    def record_metrics(self, version: str, metrics: Dict[str, Any]) -> Optional[ModelVersion]:
        """Merge evaluation metrics into the version's open metrics mapping."""
        with self._db.session() as db:
            model = self._find(db, version)
            if model is None:
                return None
            # Reassign so the JSON column is flagged dirty
            model.metrics = {**(model.metrics or {}), **metrics}
            db.flush()
        logger.info("Recorded metrics for %s: %s", version, sorted(metrics))
        return model

    def evaluate(
        self,
        version: str,
        predictions: Sequence[float],
        outcomes: Sequence[float],
    ) -> Optional[ModelVersion]:
        """
        Score held-out predictions (Brier, log loss, ECE, accuracy) and merge
        them into the version's metrics.  Mismatched or empty inputs raise
        ``ValueError`` before anything is written.
        """
        return self.record_metrics(version, evaluate_predictions(predictions, outcomes))

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def activate(self, version: str) -> Optional[ModelVersion]:
        """
        Make ``version`` the single active model.

        One transaction: every currently active version → deprecated, then
        the target → active with ``activated_at`` stamped.

        Returns:
            The activated version, or None if no such version exists (no
            state change).

        Raises:
            InvalidModelTransition: target is already active, deprecated or
                failed (no state change).
        """
        with _PROCESS_ACTIVATION_LOCK:
            with self._db.session() as db:
                self._acquire_registry_lock(db)

                target = self._find(db, version)
                if target is None:
                    logger.warning("Activation requested for unknown model version %s", version)
                    return None
                if target.status not in _ACTIVATABLE:
                    raise InvalidModelTransition(version, target.status, ModelStatus.ACTIVE)

                previous = [
                    row.version
                    for row in db.query(ModelVersion)
                    .filter(ModelVersion.status == ModelStatus.ACTIVE)
                    .all()
                ]
                (
                    db.query(ModelVersion)
                    .filter(ModelVersion.status == ModelStatus.ACTIVE)
                    .update({ModelVersion.status: ModelStatus.DEPRECATED}, synchronize_session=False)
                )

                target.status = ModelStatus.ACTIVE
                target.activated_at = utcnow()
                db.flush()

        if len(previous) > 1:
            logger.warning("Found %d active versions before activation: %s", len(previous), previous)
        logger.info(
            "Activated model %s (deprecated: %s)", version, ", ".join(previous) or "none"
        )
        return target

    def _acquire_registry_lock(self, db: Session) -> None:
        if self._db.dialect == "postgresql":
            db.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": _ACTIVATION_LOCK_KEY},
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_active(self) -> Optional[ModelVersion]:
        """
        The active version, or None.

        Ordered by ``activated_at`` descending so that, should more than one
        row ever be marked active, the most recently activated wins.
        """
        with self._db.session() as db:
            return (
                db.query(ModelVersion)
                .filter(ModelVersion.status == ModelStatus.ACTIVE)
                .order_by(ModelVersion.activated_at.desc(), ModelVersion.id.desc())
                .first()
            )

    def get_by_version(self, version: str) -> Optional[ModelVersion]:
        with self._db.session() as db:
            return self._find(db, version)

    def get_history(self, limit: int = 10) -> List[ModelVersion]:
        """Most recently created versions first."""
        with self._db.session() as db:
            return (
                db.query(ModelVersion)
                .order_by(ModelVersion.created_at.desc(), ModelVersion.id.desc())
                .limit(limit)
                .all()
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _find(db: Session, version: str) -> Optional[ModelVersion]:
        return db.query(ModelVersion).filter(ModelVersion.version == version).first()

    def _transition(self, version: str, allowed_from: tuple, target: str) -> Optional[ModelVersion]:
        with self._db.session() as db:
            model = self._find(db, version)
            if model is None:
                return None
            if model.status not in allowed_from:
                raise InvalidModelTransition(version, model.status, target)
            previous = model.status
            model.status = target
            db.flush()

        logger.info("Model %s: %s → %s", version, previous, target)
        return model
