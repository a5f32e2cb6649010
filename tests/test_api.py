"""Tests for claude_usage.api."""

from datetime import datetime, timezone

import pytest
import requests

from claude_usage.api import (
    BearerUsageClient, CookieUsageClient, parse_timestamp, parse_usage, parse_utilization,
)
from claude_usage.config import API_URL_USAGE, API_URL_WEB
from conftest import FakeHttp, FakeResponse

USAGE_BODY = {
    'five_hour': {'utilization': 42.6, 'resets_at': '2026-03-10T18:00:00.123456+00:00'},
    'seven_day': {'utilization': '17%', 'resets_at': '2026-03-14T09:00:00Z'},
    'seven_day_opus': None,
}


# ═══════════════════════ parse_utilization ═══════════════════════

class TestParseUtilization:
    @pytest.mark.parametrize('raw, expected', [
        ('42', 42),
        (42, 42),
        (42.6, 43),
        ('42%', 42),
        (' 7.5 % ', 8),
        (0.4, 0),
    ])
    def test_accepts_numbers_and_strings(self, raw, expected):
        assert parse_utilization(raw) == expected

    @pytest.mark.parametrize('raw', [None, '', 'n/a', '%', True, [], {}, float('nan'), float('inf'), 'nan'])
    def test_unparsable_is_zero(self, raw):
        assert parse_utilization(raw) == 0

    def test_half_rounds_up(self):
        assert parse_utilization(42.5) == 43
        assert parse_utilization('0.5%') == 1


# ═══════════════════════ parse_timestamp ═══════════════════════

class TestParseTimestamp:
    def test_z_suffix(self):
        assert parse_timestamp('2026-03-14T09:00:00Z') == datetime(2026, 3, 14, 9, tzinfo=timezone.utc)

    def test_offset_preserved_as_instant(self):
        ts = parse_timestamp('2026-03-14T11:00:00+02:00')
        assert ts == datetime(2026, 3, 14, 9, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_timestamp('2026-03-14T09:00:00').tzinfo == timezone.utc

    @pytest.mark.parametrize('raw', [None, '', 'tomorrow', 12345, '2026-13-45T00:00:00Z'])
    def test_invalid_is_none(self, raw):
        assert parse_timestamp(raw) is None


# ═══════════════════════ parse_usage ═══════════════════════

class TestParseUsage:
    def test_windows(self):
        snap = parse_usage(USAGE_BODY, 'pro')
        assert snap.five_hour_pct == 43
        assert snap.weekly_pct == 17
        assert snap.five_hour_reset_at.hour == 18
        assert snap.weekly_reset_at == datetime(2026, 3, 14, 9, tzinfo=timezone.utc)
        assert snap.plan == 'pro'
        assert snap.is_local_only is False

    def test_missing_fields_default_to_zero(self):
        snap = parse_usage({}, 'pro')
        assert (snap.five_hour_pct, snap.weekly_pct) == (0, 0)
        assert snap.five_hour_reset_at is None
        assert snap.today_messages == 0

    def test_over_100_is_clamped(self):
        assert parse_usage({'five_hour': {'utilization': 130}}, 'pro').five_hour_pct == 100

    def test_not_an_object(self):
        assert parse_usage(['five_hour'], 'pro') is None

    def test_today_block(self):
        snap = parse_usage({'today': {'message_count': 12, 'token_count': 3400}}, 'pro')
        assert (snap.today_messages, snap.today_tokens) == (12, 3400)


# ═══════════════════════ BearerUsageClient ═══════════════════════

class TestBearerUsageClient:
    def test_success(self):
        http = FakeHttp({API_URL_USAGE: FakeResponse(200, USAGE_BODY)})
        snap = BearerUsageClient('tok', http=http).get_usage('claude_max')
        assert snap.five_hour_pct == 43
        assert snap.plan == 'max'

        _method, _url, kwargs = http.calls[0]
        assert kwargs['headers']['Authorization'] == 'Bearer tok'
        assert kwargs['headers']['anthropic-beta'] == 'oauth-2025-04-20'
        assert kwargs['timeout'] == 20

    def test_plan_defaults_to_pro(self):
        http = FakeHttp({API_URL_USAGE: FakeResponse(200, USAGE_BODY)})
        assert BearerUsageClient('tok', http=http).get_usage().plan == 'pro'

    def test_single_endpoint_only(self):
        http = FakeHttp({API_URL_USAGE: FakeResponse(200, USAGE_BODY)})
        BearerUsageClient('tok', http=http).get_usage()
        assert http.urls() == [API_URL_USAGE]

    @pytest.mark.parametrize('reply', [
        FakeResponse(401, text='{"error": "unauthorized"}'),
        FakeResponse(500, text='oops'),
        FakeResponse(200, text='<html>challenge</html>'),
        requests.Timeout('slow'),
        requests.ConnectionError('down'),
    ])
    def test_failures_collapse_to_none(self, reply):
        http = FakeHttp({API_URL_USAGE: reply})
        assert BearerUsageClient('tok', http=http).get_usage() is None


# ═══════════════════════ CookieUsageClient ═══════════════════════

SESSION_URL = f'{API_URL_WEB}/auth/session'


class TestCookieUsageClient:
    def test_org_id_from_membership(self):
        body = {'account': {'uuid': 'acct-1', 'memberships': [{'organization': {'uuid': 'org-1'}}, {'organization': {'uuid': 'org-2'}}]}}
        http = FakeHttp({SESSION_URL: FakeResponse(200, body)})
        client = CookieUsageClient('sk-ant-sid', http=http)
        assert client.get_org_id() == 'org-1'
        assert http.calls[0][2]['headers']['Cookie'] == 'sessionKey=sk-ant-sid'

    def test_org_id_falls_back_to_account(self):
        body = {'account': {'uuid': 'acct-1', 'memberships': []}}
        http = FakeHttp({SESSION_URL: FakeResponse(200, body)})
        assert CookieUsageClient('sk', http=http).get_org_id() == 'acct-1'

    @pytest.mark.parametrize('reply', [
        FakeResponse(200, {'account': {}}),
        FakeResponse(200, {}),
        FakeResponse(403, text='Just a moment...'),
        requests.ConnectionError('down'),
    ])
    def test_org_id_unresolved(self, reply):
        http = FakeHttp({SESSION_URL: reply})
        assert CookieUsageClient('sk', http=http).get_org_id() is None

    def test_usage_is_org_scoped(self):
        url = f'{API_URL_WEB}/organizations/org-1/usage'
        http = FakeHttp({url: FakeResponse(200, {**USAGE_BODY, 'plan': 'Claude Pro'})})
        snap = CookieUsageClient('sk', http=http).get_usage('org-1')
        assert snap.plan == 'pro'
        assert snap.weekly_pct == 17
        assert http.urls() == [url]

    def test_usage_plan_default_and_passthrough(self):
        url = f'{API_URL_WEB}/organizations/org-1/usage'
        http = FakeHttp({url: FakeResponse(200, USAGE_BODY)})
        assert CookieUsageClient('sk', http=http).get_usage('org-1').plan == 'free'

        http = FakeHttp({url: FakeResponse(200, {**USAGE_BODY, 'plan': 'Team'})})
        assert CookieUsageClient('sk', http=http).get_usage('org-1').plan == 'team'
