"""
Remote usage API clients.

``BearerUsageClient`` talks to the OAuth endpoint on api.anthropic.com with
the Claude Code access token.  ``CookieUsageClient`` talks to claude.ai with a
browser ``sessionKey`` cookie and needs the organization id first.

Both return a ``UsageSnapshot`` or None.  Every failure (network, non-2xx,
malformed body) collapses to None; only the log tells them apart.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any

import requests

from .config import API_TIMEOUT, API_URL_USAGE, API_URL_WEB
from .models import PLAN_FREE, PLAN_PRO, UsageSnapshot, normalize_plan

log = logging.getLogger(__name__)

BROWSER_UA = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36'
)


def parse_utilization(value: Any) -> int:
    """Parse a utilization value into a whole percentage.

    Accepts numbers and numeric strings with an optional trailing ``%``.
    Rounds half up.  Anything unparsable gives 0.

    Examples
    --------
    >>> [parse_utilization(v) for v in ('42', 42, 42.6, '42%', 'n/a')]
    [42, 42, 43, 42, 0]
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, str):
        text = value.strip().rstrip('%').strip()
        try:
            number = float(text)
        except ValueError:
            return 0
    elif isinstance(value, (int, float)):
        number = float(value)
    else:
        return 0

    if not math.isfinite(number):
        return 0

    return int(math.floor(number + 0.5))


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp into an aware datetime, or None."""
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        ts = datetime.fromisoformat(text)
    except ValueError:
        return None

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)

    return ts


def _window(body: dict[str, Any], key: str) -> tuple[int, datetime | None]:
    entry = body.get(key)
    if not isinstance(entry, dict):
        return 0, None

    return parse_utilization(entry.get('utilization')), parse_timestamp(entry.get('resets_at'))


def parse_usage(body: Any, default_plan: str) -> UsageSnapshot | None:
    """Convert a usage response body into a snapshot.

    Missing windows or fields count as 0; a body that is not a JSON object
    gives None.
    """
    if not isinstance(body, dict):
        return None

    five_pct, five_reset = _window(body, 'five_hour')
    week_pct, week_reset = _window(body, 'seven_day')

    today = body.get('today')
    today = today if isinstance(today, dict) else {}
    messages = today.get('message_count')
    tokens = today.get('token_count')

    plan = body.get('plan')
    return UsageSnapshot(
        five_hour_pct=five_pct,
        five_hour_reset_at=five_reset,
        weekly_pct=week_pct,
        weekly_reset_at=week_reset,
        today_messages=messages if isinstance(messages, int) and not isinstance(messages, bool) else 0,
        today_tokens=tokens if isinstance(tokens, int) and not isinstance(tokens, bool) else 0,
        plan=normalize_plan(plan if isinstance(plan, str) else None, default_plan),
    )


class _UsageClient:
    """Shared HTTP plumbing: one session, fixed timeout, failures as None."""

    def __init__(self, headers: dict[str, str], http: requests.Session | None = None) -> None:
        self.http = http or requests.Session()
        self.headers = headers

    def _get_json(self, url: str, what: str) -> Any | None:
        try:
            resp = self.http.get(url, headers=self.headers, timeout=API_TIMEOUT)
        except requests.Timeout:
            log.error('%s: timed out after %ss', what, API_TIMEOUT)
            return None
        except requests.RequestException as e:
            log.error('%s: request failed: %s', what, e)
            return None

        log.info('%s: status=%s body=%s', what, resp.status_code, resp.text[:300])
        if not 200 <= resp.status_code < 300:
            return None

        try:
            return resp.json()
        except ValueError:
            log.error('%s: malformed JSON', what)
            return None


class BearerUsageClient(_UsageClient):
    """OAuth bearer-token client.  No organization lookup is needed."""

    def __init__(self, access_token: str, http: requests.Session | None = None) -> None:
        super().__init__({
            'Authorization': f'Bearer {access_token}',
            'Content-Type': 'application/json',
            'User-Agent': 'usage-monitor-for-claude/1.0',
            'anthropic-beta': 'oauth-2025-04-20',
        }, http)

    def get_usage(self, plan_hint: str | None = None) -> UsageSnapshot | None:
        body = self._get_json(API_URL_USAGE, 'GetOAuthUsage')
        if body is None:
            return None

        return parse_usage(body, normalize_plan(plan_hint, PLAN_PRO))


class CookieUsageClient(_UsageClient):
    """claude.ai web client authenticated with a ``sessionKey`` cookie."""

    def __init__(self, session_key: str, http: requests.Session | None = None) -> None:
        super().__init__({
            'Cookie': f'sessionKey={session_key}',
            'User-Agent': BROWSER_UA,
            'Accept': 'application/json, text/plain, */*',
            'Accept-Language': 'en-US,en;q=0.9',
            'Origin': 'https://claude.ai',
            'Referer': 'https://claude.ai/',
            'anthropic-client-platform': 'web_claude_ai',
        }, http)

    def get_org_id(self) -> str | None:
        """Return the id used in org-scoped calls.

        Team and enterprise accounts use the first membership's organization
        uuid; personal accounts have no memberships and use the account uuid.
        """
        body = self._get_json(f'{API_URL_WEB}/auth/session', 'GetOrgId')
        if not isinstance(body, dict):
            return None

        account = body.get('account')
        if not isinstance(account, dict):
            return None

        org_id = None
        memberships = account.get('memberships')
        if isinstance(memberships, list) and memberships and isinstance(memberships[0], dict):
            org = memberships[0].get('organization')
            if isinstance(org, dict) and isinstance(org.get('uuid'), str):
                org_id = org['uuid']

        if not org_id and isinstance(account.get('uuid'), str):
            org_id = account['uuid']

        log.info('GetOrgId: resolved id=%s', org_id or '(none)')
        return org_id or None

    def get_usage(self, org_id: str) -> UsageSnapshot | None:
        body = self._get_json(f'{API_URL_WEB}/organizations/{org_id}/usage', 'GetUsage')
        if body is None:
            return None

        return parse_usage(body, PLAN_FREE)
