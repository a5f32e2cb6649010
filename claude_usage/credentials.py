"""
Claude Code OAuth credentials.

Reads ``~/.claude/.credentials.json`` and refreshes the access token against
the token endpoint when it is about to expire.  The file is shared with
Claude Code itself, so it is re-read on every call and only ever rewritten
as a whole.
"""
from __future__ import annotations

import contextlib
import json
import logging
import math
import os
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import requests

from .config import API_URL_TOKEN_REFRESH, CLAUDE_CREDENTIALS, REFRESH_TIMEOUT

log = logging.getLogger(__name__)

OAUTH_KEY = 'claudeAiOauth'
EXPIRY_MARGIN_MS = 5 * 60 * 1000


@dataclass(frozen=True)
class Credential:
    access_token: str
    refresh_token: str = ''
    expires_at: int = 0  # epoch milliseconds
    subscription_type: str = ''
    rate_limit_tier: str = ''


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ''


def _int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)) and math.isfinite(value):
        return int(value)
    return 0


class CredentialStore:
    """Read and refresh the bearer credential stored by Claude Code."""

    def __init__(self, path: Path = CLAUDE_CREDENTIALS, http: requests.Session | None = None) -> None:
        self.path = path
        self.http = http or requests.Session()

    def _load_file(self) -> dict[str, Any] | None:
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            log.warning('Credentials: cannot parse %s: %s', self.path, e)
            return None

        return data if isinstance(data, dict) else None

    def read(self) -> Credential | None:
        """Return the stored credential, or None if absent or unusable."""
        data = self._load_file()
        if data is None:
            return None

        oauth = data.get(OAUTH_KEY)
        if not isinstance(oauth, dict):
            return None

        token = _str(oauth.get('accessToken'))
        if not token:
            return None

        return Credential(
            access_token=token,
            refresh_token=_str(oauth.get('refreshToken')),
            expires_at=_int(oauth.get('expiresAt')),
            subscription_type=_str(oauth.get('subscriptionType')),
            rate_limit_tier=_str(oauth.get('rateLimitTier')),
        )

    def subscription_type(self) -> str | None:
        cred = self.read()
        return cred.subscription_type if cred and cred.subscription_type else None

    @staticmethod
    def is_expired(cred: Credential, now_ms: int | None = None) -> bool:
        """Return True once the token is within five minutes of its expiry."""
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return now_ms >= cred.expires_at - EXPIRY_MARGIN_MS

    def refresh(self, cred: Credential) -> Credential | None:
        """Exchange the refresh token for a new access token.

        On success the new ``accessToken`` / ``expiresAt`` are written back
        into the credential file, all other fields preserved.  Any failure
        returns None and leaves the file as it was.

        Parameters
        ----------
        cred : Credential
            The expired (or soon to expire) credential.

        Returns
        -------
        Credential or None
            The refreshed credential, keeping the old refresh token and tier
            labels.
        """
        if not cred.refresh_token:
            log.info('TokenRefresh: no refresh token available')
            return None

        log.info('TokenRefresh: attempting token refresh')
        try:
            resp = self.http.post(
                API_URL_TOKEN_REFRESH,
                json={'refresh_token': cred.refresh_token},
                headers={'Accept': 'application/json', 'User-Agent': 'usage-monitor-for-claude/1.0'},
                timeout=REFRESH_TIMEOUT,
            )
        except requests.RequestException as e:
            log.error('TokenRefresh: request failed: %s', e)
            return None

        if not 200 <= resp.status_code < 300:
            log.error('TokenRefresh: failed status=%s body=%s', resp.status_code, resp.text[:200])
            return None

        try:
            body = resp.json()
        except ValueError:
            log.error('TokenRefresh: malformed JSON body=%s', resp.text[:200])
            return None

        new_token = _str(body.get('accessToken')) if isinstance(body, dict) else ''
        new_expires = _int(body.get('expiresAt')) if isinstance(body, dict) else 0
        if not new_token or not new_expires:
            log.error('TokenRefresh: response missing accessToken or expiresAt')
            return None

        self._write_back(new_token, new_expires)
        log.info('TokenRefresh: success')

        return replace(cred, access_token=new_token, expires_at=new_expires)

    def _write_back(self, token: str, expires_at: int) -> None:
        """Update token and expiry in place, keeping every other field of the file."""
        data = self._load_file()
        if data is None or not isinstance(data.get(OAUTH_KEY), dict):
            log.warning('TokenRefresh: credential file changed underneath us, not rewriting it')
            return

        data[OAUTH_KEY]['accessToken'] = token
        data[OAUTH_KEY]['expiresAt'] = expires_at

        # Claude Code reads this file too, so never leave it half written
        tmp = self.path.with_name(self.path.name + '.tmp')
        try:
            tmp.write_text(json.dumps(data, indent=2), encoding='utf-8')
            os.replace(tmp, self.path)
        except OSError as e:
            log.error('TokenRefresh: cannot write %s: %s', self.path, e)
            with contextlib.suppress(OSError):
                tmp.unlink()
