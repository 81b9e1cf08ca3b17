"""
Alert gate: classification, persistence, acknowledgment and dispatch.

Public API:
  classify_drift(verdict, crit_psi)    → "warn" | "crit" | None
  AlertGate.raise_alert(...)           → Alert
  AlertGate.raise_for_drift(verdict)   → Alert | None
  AlertGate.acknowledge(id, user)      → Alert | None  (idempotent)
  AlertGate.query(acknowledged, severity, alert_type, limit) → [Alert]
  AlertGate.recent / unacknowledged / by_severity / by_type / critical_count
  send_alert(alert, channels, notifications) → None  (email / SMS, skips if not configured)
  run_drift_check(registry, monitor, gate) → (verdict, alert) | None  (scheduler entry point)

Duplicate alerts for the same condition are acceptable noise; no attempt is
made at exactly-once alerting.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from edgeloop.config import NotificationSettings
from edgeloop.core.drift import DriftVerdict
from edgeloop.database import Database
from edgeloop.models import Alert, AlertSeverity, AlertType, utcnow
from edgeloop.services.drift_monitor import DriftMonitor
from edgeloop.services.model_registry import ModelRegistry

logger = logging.getLogger(__name__)

# Mean PSI above this escalates a drift alert from warn to crit
DEFAULT_CRIT_PSI = 0.25

# Rolling window for the unacknowledged-critical health signal
CRITICAL_WINDOW = timedelta(hours=24)

_NEWEST_FIRST = (Alert.created_at.desc(), Alert.id.desc())


# ---------------------------------------------------------------------------
# Severity policy
# ---------------------------------------------------------------------------

def classify_drift(verdict: DriftVerdict, crit_psi: float = DEFAULT_CRIT_PSI) -> Optional[str]:
    """
    No drift → None (no alert).  Drift → warn; drift with mean PSI above
    ``crit_psi`` → crit.
    """
    if not verdict.is_drifted:
        return None
    if verdict.overall_psi > crit_psi:
        return AlertSeverity.CRIT
    return AlertSeverity.WARN


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------

class AlertGate:
    def __init__(
        self,
        database: Database,
        crit_psi: float = DEFAULT_CRIT_PSI,
        notifications: Optional[NotificationSettings] = None,
    ):
        self._db = database
        self.crit_psi = crit_psi
        self.notifications = notifications or NotificationSettings()

    def raise_alert(
        self,
        severity: str,
        alert_type: str,
        title: str,
        detail: Optional[str] = None,
        model_version: Optional[str] = None,
        game_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Alert:
        """Insert a new alert row.  Storage failures propagate to the caller."""
        if severity not in AlertSeverity.ALL:
            raise ValueError(f"Unknown alert severity {severity!r}; expected one of {AlertSeverity.ALL}")
        if alert_type not in AlertType.ALL:
            raise ValueError(f"Unknown alert type {alert_type!r}; expected one of {AlertType.ALL}")

        alert = Alert(
            severity=severity,
            type=alert_type,
            title=title[:200],
            detail=detail,
            model_version=model_version,
            game_id=game_id,
            alert_metadata=metadata,
        )
        with self._db.session() as db:
            db.add(alert)
            db.flush()

        logger.info("Alert #%s raised [%s] %s: %s", alert.id, severity, alert_type, title)
        return alert

    def raise_for_drift(self, verdict: DriftVerdict) -> Optional[Alert]:
        severity = classify_drift(verdict, self.crit_psi)
        if severity is None:
            return None

        features = ", ".join(verdict.drifted_features)
        return self.raise_alert(
            severity=severity,
            alert_type=AlertType.DRIFT_DETECTED,
            title=f"Drift detected for model {verdict.model_version}",
            detail=(
                f"Mean PSI {verdict.overall_psi:.4f} across {len(verdict.feature_psi)} "
                f"feature(s); drifted: {features}"
            ),
            model_version=verdict.model_version,
            metadata=verdict.to_dict(),
        )

    def acknowledge(self, alert_id: int, user_id: str) -> Optional[Alert]:
        """
        Stamp ``acknowledged_at`` / ``acknowledged_by`` once.

        The update is conditional on the alert still being unacknowledged, so
        the first acknowledgment wins and every caller (including a second,
        racing one) re-reads the same stamped row.

        Returns:
            The alert as stored after the call, or None if it does not exist.
        """
        with self._db.session() as db:
            stamped = (
                db.query(Alert)
                .filter(Alert.id == alert_id, Alert.acknowledged_at.is_(None))
                .update(
                    {Alert.acknowledged_at: utcnow(), Alert.acknowledged_by: user_id},
                    synchronize_session=False,
                )
            )
            alert = db.query(Alert).filter(Alert.id == alert_id).first()

        if alert is None:
            return None
        if stamped:
            logger.info("Alert #%s acknowledged by %s", alert_id, user_id)
        else:
            logger.debug(
                "Alert #%s already acknowledged by %s at %s",
                alert_id, alert.acknowledged_by, alert.acknowledged_at,
            )
        return alert

    # ------------------------------------------------------------------
    # Queries (all newest-first)
    # ------------------------------------------------------------------

    def get(self, alert_id: int) -> Optional[Alert]:
        with self._db.session() as db:
            return db.query(Alert).filter(Alert.id == alert_id).first()

    def query(
        self,
        acknowledged: Optional[bool] = None,
        severity: Optional[str] = None,
        alert_type: Optional[str] = None,
        limit: Optional[int] = 50,
    ) -> List[Alert]:
        """
        Combined listing.  Every given filter applies (AND); None means "any".
        ``limit`` is applied in SQL after ordering; None returns every match.
        """
        with self._db.session() as db:
            query = db.query(Alert)
            if acknowledged is True:
                query = query.filter(Alert.acknowledged_at.isnot(None))
            elif acknowledged is False:
                query = query.filter(Alert.acknowledged_at.is_(None))
            if severity is not None:
                query = query.filter(Alert.severity == severity)
            if alert_type is not None:
                query = query.filter(Alert.type == alert_type)
            query = query.order_by(*_NEWEST_FIRST)
            if limit is not None:
                query = query.limit(limit)
            return query.all()

    def recent(self, limit: int = 50) -> List[Alert]:
        return self.query(limit=limit)

    def unacknowledged(self, limit: Optional[int] = None) -> List[Alert]:
        return self.query(acknowledged=False, limit=limit)

    def by_severity(self, severity: str, limit: Optional[int] = None) -> List[Alert]:
        return self.query(severity=severity, limit=limit)

    def by_type(self, alert_type: str, limit: Optional[int] = None) -> List[Alert]:
        return self.query(alert_type=alert_type, limit=limit)

    def critical_count(self, now: Optional[datetime] = None) -> int:
        """Unacknowledged crit alerts created in the last 24 hours."""
        cutoff = (now or utcnow()) - CRITICAL_WINDOW
        with self._db.session() as db:
            return (
                db.query(Alert)
                .filter(
                    Alert.severity == AlertSeverity.CRIT,
                    Alert.acknowledged_at.is_(None),
                    Alert.created_at >= cutoff,
                )
                .count()
            )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def send_alert(
    alert: Alert,
    channels: Optional[List[str]] = None,
    notifications: Optional[NotificationSettings] = None,
) -> None:
    """
    Dispatch an alert over configured channels.
    Silently skips any channel whose credentials are missing; delivery
    failures are logged, the alert row remains the record.
    """
    if channels is None:
        channels = ["email"]
    if notifications is None:
        notifications = NotificationSettings()

    for channel in channels:
        try:
            if channel == "email":
                _send_email(alert, notifications)
            elif channel == "sms":
                _send_sms(alert, notifications)
            else:
                logger.warning("Unknown alert channel %r — skipping", channel)
        except Exception as exc:
            logger.error("Alert dispatch failed (%s): %s", channel, exc)


def _send_email(alert: Alert, notifications: NotificationSettings) -> None:
    if not notifications.email_configured:
        logger.debug("Email alerts not configured — skipping")
        return

    import sendgrid
    from sendgrid.helpers.mail import Mail

    body = (
        f"Alert:          #{alert.id}\n"
        f"Type:           {alert.type}\n"
        f"Severity:       {alert.severity}\n"
        f"Model version:  {alert.model_version or '-'}\n\n"
        f"{alert.title}\n\n"
        f"{alert.detail or ''}\n\n"
        f"Raised at:      {alert.created_at.isoformat() if alert.created_at else '-'}"
    )

    msg = Mail(
        from_email=notifications.alert_from_email,
        to_emails=notifications.alert_email,
        subject=f"[EdgeLoop] {alert.severity.upper()}: {alert.title}",
        plain_text_content=body,
    )
    sendgrid.SendGridAPIClient(api_key=notifications.sendgrid_api_key).send(msg)
    logger.info("Alert email sent: #%s", alert.id)


def _send_sms(alert: Alert, notifications: NotificationSettings) -> None:
    if not notifications.sms_configured:
        logger.debug("SMS alerts not configured — skipping")
        return

    from twilio.rest import Client

    body = f"EdgeLoop {alert.severity.upper()}: {alert.title}"
    client = Client(notifications.twilio_account_sid, notifications.twilio_auth_token)
    client.messages.create(
        body=body[:160],
        from_=notifications.twilio_from_number,
        to=notifications.twilio_to_number,
    )
    logger.info("Alert SMS sent: #%s", alert.id)


# ---------------------------------------------------------------------------
# Scheduler entry point
# ---------------------------------------------------------------------------

def run_drift_check(
    registry: ModelRegistry,
    monitor: DriftMonitor,
    gate: AlertGate,
    version: Optional[str] = None,
) -> Optional[Tuple[DriftVerdict, Optional[Alert]]]:
    """
    Full drift pipeline: verdict → alert → dispatch crit.

    Checks ``version`` when given, otherwise the active model.  Called by the
    periodic drift-check job and the admin drift-check endpoint.

    Returns:
        ``(verdict, alert)`` (alert is None when nothing drifted), or None
        when no version was given and no model is active.
    """
    if version is None:
        model = registry.get_active()
        if model is None:
            logger.info("Drift check skipped: no active model")
            return None
        version = model.version

    verdict = monitor.check_for_drift(version)
    alert = gate.raise_for_drift(verdict)
    if alert is not None and alert.severity == AlertSeverity.CRIT:
        send_alert(alert, channels=["email", "sms"], notifications=gate.notifications)
    return verdict, alert
