from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app import config
from backend.app.finance.alerts import (
    AlertPreferences,
    EvaluationContext,
    EvaluationSummary,
    evaluate_alerts,
)
from backend.app.finance.dedup import dedupe
from backend.app.finance.errors import NotificationSinkError, StorageUnavailable
from backend.app.finance.ports import FinanceDataSource, NotificationSink
from backend.app.finance.records import CandidateNotification, NOTIFICATION_TYPES
from backend.app.models import Notification, NotificationPreference, utcnow
from backend.app.services.finance_data_service import SqlFinanceDataSource

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_dt(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlNotificationSink:
    """Writes one notifications row per insert and commits it on its own."""

    def __init__(self, db: Session, *, now: Optional[datetime] = None):
        self.db = db
        self.now = now

    def insert(self, user_id: str, type: str, message: str, metadata: Dict[str, Any]) -> str:
        if type not in NOTIFICATION_TYPES:
            raise NotificationSinkError(f"unknown notification type {type!r}")
        created_at = _normalize_dt(self.now) or utcnow()
        row = Notification(
            user_id=user_id,
            type=type,
            message=message,
            metadata_json=dict(metadata),
            read=False,
            created_at=created_at.astimezone(timezone.utc).replace(tzinfo=None),
        )
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise NotificationSinkError(f"insert failed: {exc.__class__.__name__}") from exc
        return row.id


# -------------------------
# Preferences
# -------------------------

def load_preferences(db: Session, user_id: str) -> AlertPreferences:
    row = db.get(NotificationPreference, user_id)
    if row is None:
        return AlertPreferences()
    return AlertPreferences(
        budget_alerts=row.budget_alerts,
        goal_alerts=row.goal_alerts,
        variance_alerts=row.variance_alerts,
    )


def save_preferences(
    db: Session,
    user_id: str,
    *,
    budget_alerts: Optional[bool] = None,
    goal_alerts: Optional[bool] = None,
    variance_alerts: Optional[bool] = None,
) -> AlertPreferences:
    row = db.get(NotificationPreference, user_id)
    if row is None:
        row = NotificationPreference(user_id=user_id, budget_alerts=True, goal_alerts=True, variance_alerts=True)
        db.add(row)
    if budget_alerts is not None:
        row.budget_alerts = budget_alerts
    if goal_alerts is not None:
        row.goal_alerts = goal_alerts
    if variance_alerts is not None:
        row.variance_alerts = variance_alerts
    row.updated_at = utcnow()
    db.commit()
    return load_preferences(db, user_id)


# -------------------------
# Evaluation pass
# -------------------------

def _serialize_candidate(candidate: CandidateNotification) -> Dict[str, Any]:
    return {
        "type": candidate.type,
        "rule_id": candidate.rule_id,
        "message": candidate.message,
        "metadata": candidate.metadata,
    }


def evaluate_notifications(
    source: FinanceDataSource,
    sink: NotificationSink,
    ctx: EvaluationContext,
    now: Optional[datetime] = None,
    *,
    preferences: Optional[AlertPreferences] = None,
    window: Optional[timedelta] = None,
) -> Dict[str, Any]:
    """
    Evaluate alert rules, drop candidates already sent in the trailing
    window and hand the rest to the sink.

    The summary names failed rules and failed inserts so the caller can decide
    whether to retry the pass later; re-running is safe because of the dedup.
    """
    now = _normalize_dt(now) or _now()
    window = window if window is not None else timedelta(hours=config.dedup_window_hours())

    summary: EvaluationSummary = evaluate_alerts(source, ctx, now, preferences=preferences)
    response: Dict[str, Any] = {
        "user_id": ctx.user_id,
        "account_id": ctx.account_id,
        "evaluated_at": now.isoformat(),
        "candidates": len(summary.candidates),
        "inserted": [],
        "suppressed": [],
        "failed_rules": summary.failed_rules,
        "rules": [asdict(r) for r in summary.rules],
        "sink_errors": [],
        "dedup_error": None,
    }
    if not summary.candidates:
        return response

    try:
        recent = source.list_recent_notifications(ctx.user_id, now - window)
    except StorageUnavailable as exc:
        # without history every candidate could be a repeat; persist nothing this pass
        logger.warning("skipping notification inserts for user %s: %s", ctx.user_id, exc)
        response["dedup_error"] = str(exc)
        return response

    result = dedupe(summary.candidates, recent, now, window=window)
    response["suppressed"] = [_serialize_candidate(c) for c in result.suppressed]

    for candidate in result.to_persist:
        try:
            notification_id = sink.insert(candidate.user_id, candidate.type, candidate.message, candidate.metadata)
        except NotificationSinkError as exc:
            logger.warning("notification insert failed for user %s: %s", ctx.user_id, exc)
            response["sink_errors"].append({**_serialize_candidate(candidate), "error": str(exc)})
            continue
        response["inserted"].append({"id": notification_id, **_serialize_candidate(candidate)})

    logger.info(
        "notification pass user=%s account=%s candidates=%d inserted=%d suppressed=%d failed_rules=%s",
        ctx.user_id,
        ctx.account_id,
        len(summary.candidates),
        len(response["inserted"]),
        len(response["suppressed"]),
        summary.failed_rules,
    )
    return response


def run_evaluation_pass(
    db: Session,
    user_id: str,
    account_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    source = SqlFinanceDataSource(db)
    sink = SqlNotificationSink(db, now=now)
    return evaluate_notifications(
        source,
        sink,
        EvaluationContext(user_id=user_id, account_id=account_id),
        now,
        preferences=load_preferences(db, user_id),
    )


def _serialize_notification(row: Notification) -> Dict[str, Any]:
    return {
        "id": row.id,
        "type": row.type,
        "message": row.message,
        "metadata": row.metadata_json or {},
        "read": row.read,
        "created_at": _normalize_dt(row.created_at).isoformat() if row.created_at else None,
    }


def list_notifications(
    db: Session,
    user_id: str,
    *,
    limit: int = 50,
    unread_only: bool = False,
) -> List[Dict[str, Any]]:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    rows = (
        db.execute(stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit))
        .scalars()
        .all()
    )
    return [_serialize_notification(row) for row in rows]
