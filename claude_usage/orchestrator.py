"""
Refresh cycle: pick a credential, ask the API, merge local data, fall back.

Auth priority:
  1. OAuth bearer token from Claude Code's credentials (api.anthropic.com,
     no bot challenge, no org id needed)
  2. Manual ``sessionKey`` cookie (claude.ai, needs the org id)
  3. Local session logs / stats cache only
"""
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable

from .api import BearerUsageClient, CookieUsageClient
from .config import AppConfig, ConfigStore
from .credentials import Credential, CredentialStore
from .history import HistoryLog
from .local_stats import LocalStatsReader
from .models import (
    REASON_BLOCKED, REASON_NO_DATA, HistoryPoint, NotificationEvent, RefreshResult, Unavailable, UsageSnapshot,
    normalize_plan,
)
from .notifier import ThresholdNotifier

log = logging.getLogger(__name__)

MSG_BLOCKED = 'Could not load usage: API blocked or unreachable and no local stats found.'
MSG_NO_DATA = 'No credentials configured and no local usage data found.'
MSG_AUTH_EXPIRED = 'Claude Code login expired and no local usage data found.'


class RefreshOrchestrator:
    """Runs one refresh cycle at a time and remembers the last good snapshot."""

    def __init__(
        self,
        config_store: ConfigStore,
        credentials: CredentialStore,
        local_stats: LocalStatsReader,
        history: HistoryLog,
        notifier: ThresholdNotifier | None = None,
        bearer_client: Callable[[str], BearerUsageClient] = BearerUsageClient,
        cookie_client: Callable[[str], CookieUsageClient] = CookieUsageClient,
    ) -> None:
        self.config_store = config_store
        self.credentials = credentials
        self.local_stats = local_stats
        self.history_log = history
        self.notifier = notifier or ThresholdNotifier()
        self.bearer_client = bearer_client
        self.cookie_client = cookie_client

        self.last_result: RefreshResult | None = None
        self.last_snapshot: UsageSnapshot | None = None
        self.last_success_at: datetime | None = None
        self.last_local: UsageSnapshot | None = None
        self._cycle_lock = threading.Lock()
        self._notify_lock = threading.Lock()

    def refresh(self) -> RefreshResult:
        """Run one cycle.  Concurrent callers wait for the running cycle to finish."""
        with self._cycle_lock:
            try:
                result = self._cycle()
            except Exception:
                log.exception('RefreshData: unhandled exception')
                result = Unavailable(REASON_BLOCKED, MSG_BLOCKED)

            self.last_result = result
            if isinstance(result, UsageSnapshot):
                self.last_snapshot = result
                self.last_success_at = datetime.now(timezone.utc)
            return result

    def _cycle(self) -> RefreshResult:
        config = self.config_store.load()
        stored = self.credentials.read()
        cred = self._resolve_credential(stored)

        remote_configured = cred is not None or bool(config.session_key.strip())
        data = self._fetch_remote(cred, config)

        if data is not None:
            local = self._read_local()
            if local is not None:
                data = replace(data, today_messages=local.today_messages, today_tokens=local.today_tokens)
            if cred is not None and cred.subscription_type:
                data = replace(data, plan=normalize_plan(cred.subscription_type, data.plan))

            log.info('RefreshData: API success, 5h=%d%% 7d=%d%% plan=%s', data.five_hour_pct, data.weekly_pct, data.plan)
            self.history_log.append(data)
            return data

        log.info('RefreshData: API unavailable, trying local stats')
        local = self._read_local()
        if local is not None:
            return local

        if remote_configured:
            log.error('RefreshData: both API and local stats unavailable')
            return Unavailable(REASON_BLOCKED, MSG_BLOCKED)

        if stored is not None:
            log.warning('RefreshData: stored credential could not be refreshed and no local stats')
            return Unavailable(REASON_NO_DATA, MSG_AUTH_EXPIRED)

        log.warning('RefreshData: no credentials and no local stats')
        return Unavailable(REASON_NO_DATA, MSG_NO_DATA)

    def _resolve_credential(self, cred: Credential | None) -> Credential | None:
        if cred is not None and self.credentials.is_expired(cred):
            log.info('RefreshData: token expired, attempting refresh')
            cred = self.credentials.refresh(cred)
        return cred

    def _read_local(self) -> UsageSnapshot | None:
        try:
            self.last_local = self.local_stats.read()
        except Exception:
            log.exception('RefreshData: local stats failed')
            self.last_local = None
        return self.last_local

    def _fetch_remote(self, cred: Credential | None, config: AppConfig) -> UsageSnapshot | None:
        """Ask the API with the selected credential.  A bearer credential excludes the cookie path."""
        try:
            if cred is not None:
                log.info('RefreshData: using OAuth bearer token')
                return self.bearer_client(cred.access_token).get_usage(cred.subscription_type or None)
            if config.session_key.strip():
                log.info('RefreshData: using manual session key')
                return self._fetch_with_cookie(config)
        except Exception:
            log.exception('RefreshData: remote call failed')
            return None

        log.info('RefreshData: no credential configured, skipping remote')
        return None

    def _fetch_with_cookie(self, config: AppConfig) -> UsageSnapshot | None:
        client = self.cookie_client(config.session_key.strip())
        org_id = config.org_id
        if not org_id:
            log.info('RefreshData: org id empty, auto-detecting')
            org_id = client.get_org_id() or ''
            if not org_id:
                return None
            # Re-read so a concurrent settings change is not clobbered
            self.config_store.save(replace(self.config_store.load(), org_id=org_id))
            log.info('RefreshData: org id detected: %s', org_id)

        return client.get_usage(org_id)

    # ── Consumer API ───────────────────────────────────────────

    def check_thresholds(self, snapshot: UsageSnapshot) -> list[NotificationEvent]:
        """Return threshold notifications due for *snapshot*.

        Local-only snapshots carry no percentages, so they neither fire nor
        re-arm anything.
        """
        if snapshot.is_local_only:
            return []

        config = self.config_store.load()
        with self._notify_lock:
            return self.notifier.check(
                snapshot,
                five_hour=config.notify_five_hour,
                weekly=config.notify_weekly,
                thresholds=config.notify_thresholds,
            )

    def history(self) -> list[HistoryPoint]:
        return self.history_log.load()

    def offline_for(self, now: datetime | None = None) -> timedelta | None:
        """How long ago the last snapshot was obtained, while the last cycle had no data."""
        if not isinstance(self.last_result, Unavailable) or self.last_success_at is None:
            return None
        return (now or datetime.now(timezone.utc)) - self.last_success_at
