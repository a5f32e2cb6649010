"""
Configuration and well-known paths.

User settings live in ``config.json`` in the application data directory and
are re-read at the start of every refresh cycle.
"""
from __future__ import annotations

import dataclasses
import json
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

# ── Configuration ──────────────────────────────────────────────
POLL_INTERVAL = 60  # Default seconds between updates
POLL_ERROR = 30  # Polling interval after a cycle without data
POLL_MIN = 15

API_TIMEOUT = 20  # Seconds, usage and session endpoints
REFRESH_TIMEOUT = 15  # Seconds, token refresh endpoint

API_URL_USAGE = 'https://api.anthropic.com/api/oauth/usage'
API_URL_WEB = 'https://claude.ai/api'
API_URL_TOKEN_REFRESH = 'https://claude.ai/api/auth/token/refresh'

CLAUDE_DIR = Path.home() / '.claude'
CLAUDE_CREDENTIALS = CLAUDE_DIR / '.credentials.json'
CLAUDE_PROJECTS = CLAUDE_DIR / 'projects'
CLAUDE_STATS_CACHE = CLAUDE_DIR / 'stats-cache.json'

ICON_STYLES = ('bars', 'percentage', 'dot')
# ───────────────────────────────────────────────────────────────


def app_dir() -> Path:
    """Return the directory holding config, history and logs."""
    override = os.environ.get('USAGE_MONITOR_HOME')
    if override:
        return Path(override)
    if sys.platform == 'win32' and os.environ.get('APPDATA'):
        return Path(os.environ['APPDATA']) / 'UsageMonitorForClaude'

    return Path.home() / '.config' / 'usage-monitor-for-claude'


@dataclass(frozen=True)
class AppConfig:
    session_key: str = ''
    org_id: str = ''
    refresh_interval: int = POLL_INTERVAL
    notify_thresholds: tuple[int, ...] = (75, 90, 95)
    notify_five_hour: bool = True
    notify_weekly: bool = True
    show_remaining: bool = False
    icon_style: str = 'bars'

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        """Build a config from parsed JSON, ignoring unknown or mistyped keys."""
        defaults = cls()
        values: dict[str, Any] = {}
        for f in dataclasses.fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            default = getattr(defaults, f.name)
            if isinstance(default, tuple):
                if isinstance(value, list) and all(isinstance(v, int) and not isinstance(v, bool) for v in value):
                    values[f.name] = tuple(sorted(value))
            elif isinstance(default, bool):
                if isinstance(value, bool):
                    values[f.name] = value
            elif isinstance(default, int):
                if isinstance(value, int) and not isinstance(value, bool):
                    values[f.name] = max(POLL_MIN, value)
            elif isinstance(value, type(default)):
                values[f.name] = value

        if values.get('icon_style', defaults.icon_style) not in ICON_STYLES:
            values.pop('icon_style')

        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data['notify_thresholds'] = list(self.notify_thresholds)
        return data


@dataclass
class ConfigStore:
    """Whole-file JSON persistence for ``AppConfig``."""

    path: Path = field(default_factory=lambda: app_dir() / 'config.json')

    def load(self) -> AppConfig:
        """Read the config file; a missing or broken file yields defaults."""
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except FileNotFoundError:
            return AppConfig()
        except (OSError, ValueError) as e:
            log.warning('Config: cannot read %s (%s), using defaults', self.path, e)
            return AppConfig()

        if not isinstance(data, dict):
            log.warning('Config: %s is not a JSON object, using defaults', self.path)
            return AppConfig()

        return AppConfig.from_dict(data)

    def save(self, config: AppConfig) -> bool:
        """Rewrite the config file.  Returns False when the write failed."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(config.to_dict(), indent=2), encoding='utf-8')
            return True
        except OSError as e:
            log.error('Config: cannot write %s: %s', self.path, e)
            return False
