"""Bounded usage history for the trend display, persisted as JSON."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from .api import parse_timestamp
from .models import HistoryPoint, UsageSnapshot

log = logging.getLogger(__name__)

MAX_POINTS = 24


class HistoryLog:
    def __init__(self, path: Path, max_points: int = MAX_POINTS) -> None:
        self.path = path
        self.max_points = max_points

    def load(self) -> list[HistoryPoint]:
        """Return stored points, oldest first.  Unreadable entries are dropped."""
        try:
            raw = json.loads(self.path.read_text(encoding='utf-8'))
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            log.warning('History: cannot read %s: %s', self.path, e)
            return []
        if not isinstance(raw, list):
            return []

        points = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            ts = parse_timestamp(item.get('timestamp'))
            five, week = item.get('fiveHourPct'), item.get('weeklyPct')
            if ts is None or not isinstance(five, int) or not isinstance(week, int):
                continue
            points.append(HistoryPoint(ts, five, week))

        return points[-self.max_points:]

    def append(self, snapshot: UsageSnapshot, now: datetime | None = None) -> list[HistoryPoint]:
        """Add a point for *snapshot*, keep only the newest ``max_points`` and save."""
        points = self.load()
        points.append(HistoryPoint(now or datetime.now(timezone.utc), snapshot.five_hour_pct, snapshot.weekly_pct))
        points = points[-self.max_points:]
        self._save(points)
        return points

    def _save(self, points: list[HistoryPoint]) -> None:
        data = [
            {'timestamp': p.timestamp.isoformat(), 'fiveHourPct': p.five_hour_pct, 'weeklyPct': p.weekly_pct}
            for p in points
        ]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data), encoding='utf-8')
        except OSError as e:
            log.error('History: cannot write %s: %s', self.path, e)
