"""View-model helpers for the dashboard pages and the generation progress view."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Literal, Optional, Sequence

from neura_dashboard.domain import Insight, SyncStatus, SyncStatusSnapshot
from neura_dashboard.poller import is_fresh_completion

StepStatus = Literal["completed", "active", "pending"]

STEP_LABELS = ("Connecting to Xero", "Importing data", "Calculating metrics", "Generating insights")
_COMPLETED_DETAILS = ("Connection established", "12 months transactions found", "Calculations complete", "Insights generated")
_ACTIVE_DETAILS = ("Establishing connection...", "Importing transactions...", "Analyzing cash flow patterns...", "Generating insights...")

_STEP_NUMBERS = {
    "CONNECTING": 1,
    "IMPORTING": 2,
    "CALCULATING": 3,
    "GENERATING_INSIGHTS": 4,
    "COMPLETED": 4,
}

WATCH_LIMIT = 3
RESOLVED_LIMIT = 5


@dataclass(frozen=True)
class StepView:
    number: int
    label: str
    status: StepStatus
    detail: str


def _step_status(number: int, snapshot: SyncStatusSnapshot, current: int, fresh: bool) -> StepStatus:
    # optimistic state before the backend reports a step
    if snapshot.sync_status == SyncStatus.IN_PROGRESS and current == 0 and number == 1:
        return "active"
    if number < current or fresh:
        return "completed"
    if number == current and snapshot.sync_status == SyncStatus.IN_PROGRESS:
        return "active"
    return "pending"


def step_timeline(snapshot: SyncStatusSnapshot, trigger_ms: int, margin_ms: int = 1000) -> List[StepView]:
    """Four progress steps; all are completed only for a completion newer than the trigger."""
    step = snapshot.sync_step.value if snapshot.sync_step else ""
    current = _STEP_NUMBERS.get(step, 0)
    fresh = is_fresh_completion(snapshot, trigger_ms, margin_ms)
    views = []
    for index, label in enumerate(STEP_LABELS):
        number = index + 1
        status = _step_status(number, snapshot, current, fresh)
        if status == "completed":
            detail = _COMPLETED_DETAILS[index]
        elif status == "active":
            detail = _ACTIVE_DETAILS[index]
        else:
            detail = ""
        views.append(StepView(number, label, status, detail))
    return views


def group_overview_insights(insights: Sequence[Insight]) -> Dict[str, List[Insight]]:
    """Split overview insights into the watch, ok and resolved columns."""
    return {
        "watch": [i for i in insights if i.severity == "high" and not i.is_marked_done][:WATCH_LIMIT],
        "ok": [i for i in insights if i.severity == "medium" and not i.is_marked_done],
        "resolved": [i for i in insights if i.is_marked_done][:RESOLVED_LIMIT],
    }


def filter_insights(insights: Sequence[Insight], severity: str = "all", status: str = "all") -> List[Insight]:
    """Apply the insights page filters (``severity`` and ``active``/``resolved``)."""
    filtered = list(insights)
    if severity != "all":
        filtered = [i for i in filtered if i.severity == severity]
    if status == "active":
        filtered = [i for i in filtered if not i.is_marked_done]
    elif status == "resolved":
        filtered = [i for i in filtered if i.is_marked_done]
    return filtered


def _clock_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value:%M} {suffix}"


def format_timestamp(value: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Render a sync timestamp as ``Never``, ``Today, 3:04 pm`` or ``Jan 5, 2025, 3:04 PM``."""
    if value is None:
        return "Never"
    now = now or datetime.now(value.tzinfo)
    if value.tzinfo is not None and now.tzinfo is not None:
        value = value.astimezone(now.tzinfo)
    if value.date() == now.date():
        return f"Today, {_clock_time(value).lower()}"
    return f"{value:%b} {value.day}, {value.year}, {_clock_time(value)}"
