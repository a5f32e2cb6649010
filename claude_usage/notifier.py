"""One-shot threshold notifications with re-arming."""
from __future__ import annotations

from typing import Iterable

from .models import NotificationEvent, UsageSnapshot

LABEL_FIVE_HOUR = '5-Hour'
LABEL_WEEKLY = 'Weekly'


class ThresholdNotifier:
    """Edge detector keyed by ``(window label, threshold)``.

    A key fires the first time the percentage reaches its threshold and stays
    armed until the percentage drops below it again.  Each threshold is
    tracked on its own, so dropping from 96% to 92% re-arms only the 95% key.
    """

    def __init__(self, thresholds: Iterable[int] = (75, 90, 95)) -> None:
        self.thresholds = sorted(set(thresholds))
        self._armed: set[tuple[str, int]] = set()

    def evaluate(self, label: str, pct: int, thresholds: Iterable[int] | None = None) -> list[NotificationEvent]:
        events = []
        for t in sorted(set(thresholds)) if thresholds is not None else self.thresholds:
            key = (label, t)
            if pct >= t:
                if key not in self._armed:
                    self._armed.add(key)
                    events.append(NotificationEvent(label, t, pct))
            else:
                self._armed.discard(key)

        return events

    def check(
        self,
        snapshot: UsageSnapshot,
        five_hour: bool = True,
        weekly: bool = True,
        thresholds: Iterable[int] | None = None,
    ) -> list[NotificationEvent]:
        events = []
        if five_hour:
            events += self.evaluate(LABEL_FIVE_HOUR, snapshot.five_hour_pct, thresholds)
        if weekly:
            events += self.evaluate(LABEL_WEEKLY, snapshot.weekly_pct, thresholds)

        return events

    def armed(self) -> set[tuple[str, int]]:
        return set(self._armed)
