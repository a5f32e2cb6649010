"""Shared fixtures: fake HTTP session and on-disk Claude files."""

import json
from datetime import datetime, timezone

import pytest
import requests


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else json.dumps(body)

    def json(self):
        if self._body is None:
            return json.loads(self.text)
        return self._body


class FakeHttp:
    """Stands in for ``requests.Session``; replies are queued per URL."""

    def __init__(self, replies=None):
        self.replies = replies or {}
        self.calls = []

    def _reply(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        reply = self.replies.get(url)
        if reply is None:
            raise requests.ConnectionError(f'no route to {url}')
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get(self, url, **kwargs):
        return self._reply('GET', url, **kwargs)

    def post(self, url, **kwargs):
        return self._reply('POST', url, **kwargs)

    def urls(self):
        return [url for _method, url, _kwargs in self.calls]


@pytest.fixture
def fake_http():
    return FakeHttp()


NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


def assistant_line(ts, model='claude-sonnet-4-5-20250929', inp=10, out=20, cache_read=0, cache_write=0):
    return json.dumps({
        'type': 'assistant',
        'timestamp': ts,
        'message': {
            'model': model,
            'usage': {
                'input_tokens': inp,
                'output_tokens': out,
                'cache_read_input_tokens': cache_read,
                'cache_creation_input_tokens': cache_write,
            },
        },
    })


@pytest.fixture
def write_session(tmp_path):
    """Write a session log under ``projects/<slug>/<name>.jsonl``."""
    projects = tmp_path / 'projects'

    def write(slug, lines, name='session'):
        path = projects / slug / f'{name}.jsonl'
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text('\n'.join(lines) + '\n', encoding='utf-8')
        return path

    write.root = projects
    return write


@pytest.fixture
def credentials_file(tmp_path):
    path = tmp_path / '.credentials.json'

    def write(**oauth):
        data = {
            'claudeAiOauth': {
                'accessToken': 'tok-old',
                'refreshToken': 'refresh-1',
                'expiresAt': 4_102_444_800_000,  # 2100-01-01
                'subscriptionType': 'max',
                'rateLimitTier': 'default_claude_max_5x',
                'scopes': ['user:inference'],
                **oauth,
            },
            'otherTool': {'keep': True},
        }
        path.write_text(json.dumps(data), encoding='utf-8')
        return path

    write.path = path
    return write
