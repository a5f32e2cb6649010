"""
Value types shared by the usage-resolution engine.

Every refresh cycle produces a fresh ``UsageSnapshot`` or an ``Unavailable``;
nothing here is mutated after construction.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

PLAN_FREE = 'free'
PLAN_PRO = 'pro'
PLAN_MAX = 'max'

REASON_BLOCKED = 'blocked'
REASON_NO_DATA = 'no_data'


def clamp_pct(value: float) -> int:
    """Clamp a percentage into ``[0, 100]`` and return it as int."""
    return max(0, min(100, int(value)))


def normalize_plan(raw: str | None, default: str) -> str:
    """Map a free-form plan / subscription label onto a plan name.

    Substring match, in order: ``max``, ``pro``, ``free``.  Anything else is
    passed through lowercased; an empty or missing label yields *default*.
    """
    if not raw or not str(raw).strip():
        return default

    label = str(raw).strip().lower()
    for plan in (PLAN_MAX, PLAN_PRO, PLAN_FREE):
        if plan in label:
            return plan

    return label


@dataclass(frozen=True)
class UsageSnapshot:
    """One fully resolved usage report for a poll cycle."""

    five_hour_pct: int = 0
    five_hour_reset_at: datetime | None = None
    weekly_pct: int = 0
    weekly_reset_at: datetime | None = None

    today_messages: int = 0
    today_tokens: int = 0
    plan: str = PLAN_FREE

    is_local_only: bool = False
    weekly_messages: int = 0
    weekly_tokens: int = 0

    # Only filled from session logs
    today_input_tokens: int = 0
    today_output_tokens: int = 0
    today_cache_read_tokens: int = 0
    today_cache_write_tokens: int = 0
    today_cost_usd: float = 0.0
    burn_rate_tokens_per_hour: float = 0.0
    burn_rate_cost_per_hour: float = 0.0
    model_tokens_today: dict[str, int] = field(default_factory=dict)
    project_messages_today: dict[str, int] = field(default_factory=dict)
    today_first_message_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, 'five_hour_pct', clamp_pct(self.five_hour_pct))
        object.__setattr__(self, 'weekly_pct', clamp_pct(self.weekly_pct))


@dataclass(frozen=True)
class Unavailable:
    """Terminal state of a cycle in which no source produced any data."""

    reason: str
    message: str = ''

    @property
    def blocked(self) -> bool:
        return self.reason == REASON_BLOCKED


RefreshResult = Union[UsageSnapshot, Unavailable]


@dataclass(frozen=True)
class HistoryPoint:
    timestamp: datetime
    five_hour_pct: int
    weekly_pct: int


@dataclass(frozen=True)
class NotificationEvent:
    """A threshold crossing that should be shown to the user once."""

    window_label: str
    threshold: int
    pct: int

    @property
    def severity(self) -> str:
        if self.threshold >= 95:
            return 'error'
        if self.threshold >= 90:
            return 'warning'
        return 'info'
