"""
Usage derived from Claude Code's local files, with no network access.

Primary source: the session logs ``~/.claude/projects/**/*.jsonl``.  Every
``assistant`` entry carries a timestamp, the model name and a token usage
breakdown.  From those we compute today's and this week's totals, per-model
and per-project breakdowns, a cost estimate and a burn rate.

Fallback: ``~/.claude/stats-cache.json``, which only has per-day message
counts and per-day per-model token totals.

All dates are UTC calendar dates.  "Week" is today plus the six days before.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterator

from .api import parse_timestamp
from .config import CLAUDE_PROJECTS, CLAUDE_STATS_CACHE
from .models import PLAN_PRO, UsageSnapshot, normalize_plan

log = logging.getLogger(__name__)

WEEK_DAYS = 7
TOP_PROJECTS = 10
MIN_BURN_HOURS = 0.05  # 3 minutes
PROJECT_SLUG_SEPARATOR = '--'

# USD per million tokens: (input, output, cache read, cache write)
PRICING: dict[str, tuple[float, float, float, float]] = {
    'claude-opus-4': (15.00, 75.00, 1.50, 18.75),
    'claude-opus-4-5': (15.00, 75.00, 1.50, 18.75),
    'claude-sonnet-4': (3.00, 15.00, 0.30, 3.75),
    'claude-sonnet-4-5': (3.00, 15.00, 0.30, 3.75),
    'claude-sonnet-4-6': (3.00, 15.00, 0.30, 3.75),
    'claude-sonnet-3-5': (3.00, 15.00, 0.30, 3.75),
    'claude-haiku-4-5': (0.80, 4.00, 0.08, 1.00),
    'claude-haiku-3-5': (0.80, 4.00, 0.08, 1.00),
    'claude-haiku-3': (0.25, 1.25, 0.03, 0.30),
}
DEFAULT_PRICING = PRICING['claude-sonnet-4']


def normalize_model_name(raw: str) -> str:
    """Strip a trailing ``-YYYYMMDD`` segment and lowercase.

    ``claude-sonnet-4-5-20260101`` -> ``claude-sonnet-4-5``
    """
    parts = raw.split('-')
    if len(parts) > 1 and len(parts[-1]) == 8 and parts[-1].isdigit():
        raw = '-'.join(parts[:-1])

    return raw.lower()


def slug_to_project_name(slug: str) -> str:
    """Turn a project directory slug (``C--Users--me--my-project``) into ``my-project``."""
    if not slug:
        return 'Unknown'

    last = slug.split(PROJECT_SLUG_SEPARATOR)[-1]
    return last or slug


def estimate_cost(model: str, input_tokens: int, output_tokens: int, cache_read: int, cache_write: int) -> float:
    """Estimated USD cost of one request, unknown models priced as Sonnet."""
    p_in, p_out, p_read, p_write = PRICING.get(normalize_model_name(model), DEFAULT_PRICING)
    return (
        input_tokens * p_in
        + output_tokens * p_out
        + cache_read * p_read
        + cache_write * p_write
    ) / 1_000_000


def _tokens(usage: dict[str, Any], key: str) -> int:
    value = usage.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0
    return max(0, int(value))


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


@dataclass
class Tally:
    """Running totals while scanning session files."""

    today: date
    today_messages: int = 0
    today_tokens: int = 0
    weekly_messages: int = 0
    weekly_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    cost_usd: float = 0.0
    models: dict[str, int] = field(default_factory=dict)
    projects: dict[str, int] = field(default_factory=dict)
    first_at: datetime | None = None
    last_at: datetime | None = None

    @property
    def week_start(self) -> date:
        return self.today - timedelta(days=WEEK_DAYS - 1)

    def add(self, ts: datetime, model: str, project: str, usage: dict[str, Any]) -> None:
        """Count one assistant record.  Records outside the week are ignored."""
        ts = ts.astimezone(timezone.utc)
        day = ts.date()
        if day < self.week_start or day > self.today:
            return

        inp = _tokens(usage, 'input_tokens')
        out = _tokens(usage, 'output_tokens')
        c_read = _tokens(usage, 'cache_read_input_tokens')
        c_write = _tokens(usage, 'cache_creation_input_tokens')
        total = inp + out + c_read + c_write

        self.weekly_messages += 1
        self.weekly_tokens += total
        if day != self.today:
            return

        self.today_messages += 1
        self.today_tokens += total
        self.input_tokens += inp
        self.output_tokens += out
        self.cache_read_tokens += c_read
        self.cache_write_tokens += c_write
        self.cost_usd += estimate_cost(model, inp, out, c_read, c_write)

        key = normalize_model_name(model)
        self.models[key] = self.models.get(key, 0) + total
        self.projects[project] = self.projects.get(project, 0) + 1

        if self.first_at is None or ts < self.first_at:
            self.first_at = ts
        if self.last_at is None or ts > self.last_at:
            self.last_at = ts

    def burn_rates(self) -> tuple[float, float]:
        """Return ``(tokens/hour, USD/hour)`` over today's message span.

        Zero unless there are at least two messages more than three minutes
        apart.
        """
        if self.today_messages < 2 or self.first_at is None or self.last_at is None:
            return 0.0, 0.0

        hours = (self.last_at - self.first_at).total_seconds() / 3600
        if hours <= MIN_BURN_HOURS:
            return 0.0, 0.0

        return self.today_tokens / hours, self.cost_usd / hours

    def top_projects(self) -> dict[str, int]:
        ranked = sorted(self.projects.items(), key=lambda kv: kv[1], reverse=True)
        return dict(ranked[:TOP_PROJECTS])

    def to_snapshot(self, plan: str) -> UsageSnapshot:
        burn_tokens, burn_cost = self.burn_rates()
        return UsageSnapshot(
            today_messages=self.today_messages,
            today_tokens=self.today_tokens,
            plan=plan,
            is_local_only=True,
            weekly_messages=self.weekly_messages,
            weekly_tokens=self.weekly_tokens,
            today_input_tokens=self.input_tokens,
            today_output_tokens=self.output_tokens,
            today_cache_read_tokens=self.cache_read_tokens,
            today_cache_write_tokens=self.cache_write_tokens,
            today_cost_usd=self.cost_usd,
            burn_rate_tokens_per_hour=burn_tokens,
            burn_rate_cost_per_hour=burn_cost,
            model_tokens_today=dict(self.models),
            project_messages_today=self.top_projects(),
            today_first_message_at=self.first_at,
        )


class LocalStatsReader:
    """Build a local-only ``UsageSnapshot`` from Claude Code's files."""

    def __init__(
        self,
        projects_dir: Path = CLAUDE_PROJECTS,
        stats_path: Path = CLAUDE_STATS_CACHE,
        plan_source: Callable[[], str | None] | None = None,
    ) -> None:
        self.projects_dir = projects_dir
        self.stats_path = stats_path
        self.plan_source = plan_source

    def _plan(self) -> str:
        return normalize_plan(self.plan_source() if self.plan_source else None, PLAN_PRO)

    def read(self, now: datetime | None = None) -> UsageSnapshot | None:
        """Return local usage, or None when there is no data at all.

        "No data" (None) is distinct from zero usage: a week of logs with
        zero-token records still gives a snapshot.
        """
        now = now or datetime.now(timezone.utc)
        tally = self.scan_session_files(now)

        if tally.weekly_messages == 0:
            cached = self.read_stats_cache(now)
            if cached is not None:
                return cached
            return None

        snapshot = tally.to_snapshot(self._plan())
        log.info(
            'LocalStats (sessions): today=%dmsg/%dtok cost=$%.4f burn=%.0ftok/h week=%dmsg/%dtok plan=%s',
            snapshot.today_messages, snapshot.today_tokens, snapshot.today_cost_usd,
            snapshot.burn_rate_tokens_per_hour, snapshot.weekly_messages, snapshot.weekly_tokens, snapshot.plan,
        )
        return snapshot

    # ── Primary: session logs ──────────────────────────────────

    def _session_files(self, week_start: date) -> Iterator[Path]:
        """Yield ``*.jsonl`` files modified within the week."""
        try:
            candidates = sorted(self.projects_dir.rglob('*.jsonl'))
        except OSError as e:
            log.error('LocalStats: cannot list %s: %s', self.projects_dir, e)
            return

        for fp in candidates:
            try:
                mtime = datetime.fromtimestamp(fp.stat().st_mtime, timezone.utc).date()
            except OSError:
                continue
            if mtime >= week_start:
                yield fp

    def scan_session_files(self, now: datetime) -> Tally:
        tally = Tally(today=now.astimezone(timezone.utc).date())
        if not self.projects_dir.is_dir():
            return tally

        for fp in self._session_files(tally.week_start):
            project = slug_to_project_name(fp.parent.name)
            try:
                with fp.open(encoding='utf-8', errors='replace') as f:
                    for line in f:
                        self._scan_line(line, project, tally)
            except OSError as e:
                log.warning('LocalStats: cannot read %s: %s', fp, e)

        return tally

    @staticmethod
    def _scan_line(line: str, project: str, tally: Tally) -> None:
        # Cheap filter before paying for a JSON parse
        if '"assistant"' not in line or '"output_tokens"' not in line:
            return

        try:
            entry = json.loads(line)
        except ValueError:
            return
        if not isinstance(entry, dict) or entry.get('type') != 'assistant':
            return

        ts = parse_timestamp(entry.get('timestamp'))
        message = entry.get('message')
        if ts is None or not isinstance(message, dict):
            return

        usage = message.get('usage')
        if not isinstance(usage, dict):
            return

        model = message.get('model')
        try:
            tally.add(ts, model if isinstance(model, str) and model else 'unknown', project, usage)
        except (ValueError, OverflowError, TypeError) as e:
            log.debug('LocalStats: skipping unusable record: %s', e)

    # ── Fallback: stats-cache.json ─────────────────────────────

    def read_stats_cache(self, now: datetime) -> UsageSnapshot | None:
        """Sum the pre-aggregated daily summary over today and the week."""
        try:
            root = json.loads(self.stats_path.read_text(encoding='utf-8'))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            log.error('LocalStats: cannot read %s: %s', self.stats_path, e)
            return None
        if not isinstance(root, dict):
            return None

        today = now.astimezone(timezone.utc).date()
        today_str = today.isoformat()
        week_start = (today - timedelta(days=WEEK_DAYS - 1)).isoformat()

        def in_week(day: Any) -> bool:
            return isinstance(day, dict) and isinstance(day.get('date'), str) and week_start <= day['date'] <= today_str

        found = False
        today_msg = weekly_msg = 0
        today_tok = weekly_tok = 0

        for day in _list(root.get('dailyActivity')):
            if not in_week(day):
                continue
            count = _tokens(day, 'messageCount')
            found = True
            weekly_msg += count
            if day['date'] == today_str:
                today_msg += count

        for day in _list(root.get('dailyModelTokens')):
            if not in_week(day) or not isinstance(day.get('tokensByModel'), dict):
                continue
            total = sum(_tokens(day['tokensByModel'], model) for model in day['tokensByModel'])
            found = True
            weekly_tok += total
            if day['date'] == today_str:
                today_tok += total

        if not found:
            return None

        plan = self._plan()
        log.info('LocalStats (cache): today=%dmsg/%dtok week=%dmsg/%dtok', today_msg, today_tok, weekly_msg, weekly_tok)
        return UsageSnapshot(
            today_messages=today_msg,
            today_tokens=today_tok,
            plan=plan,
            is_local_only=True,
            weekly_messages=weekly_msg,
            weekly_tokens=weekly_tok,
        )
