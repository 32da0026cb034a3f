from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, List, Optional, Sequence

from .records import CandidateNotification, Notification, to_utc

DEFAULT_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class DedupResult:
    to_persist: List[CandidateNotification]
    suppressed: List[CandidateNotification]


def _normalize(value: Any) -> Any:
    # mirror what a JSON column hands back: tuples become lists, Decimals floats
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    if isinstance(value, Decimal):
        return float(value)
    return value


def same_metadata(left: Any, right: Any) -> bool:
    return _normalize(left or {}) == _normalize(right or {})


def is_duplicate(candidate: CandidateNotification, existing: Notification) -> bool:
    return (
        existing.user_id == candidate.user_id
        and existing.type == candidate.type
        and same_metadata(existing.metadata, candidate.metadata)
    )


def dedupe(
    candidates: Sequence[CandidateNotification],
    recent: Sequence[Notification],
    now: datetime,
    *,
    window: Optional[timedelta] = None,
) -> DedupResult:
    """
    Drop candidates already notified within the trailing window (24h default).
    """
    window = DEFAULT_WINDOW if window is None else window
    now = to_utc(now)
    cutoff = now - window
    in_window = [n for n in recent if cutoff <= to_utc(n.created_at) <= now]

    to_persist: List[CandidateNotification] = []
    suppressed: List[CandidateNotification] = []
    for candidate in candidates:
        if any(is_duplicate(candidate, n) for n in in_window):
            suppressed.append(candidate)
        else:
            to_persist.append(candidate)
    return DedupResult(to_persist=to_persist, suppressed=suppressed)
