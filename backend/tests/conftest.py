"""Shared fixtures: a controllable clock, in-process stores, fake HTTP."""

from unittest.mock import Mock

import pytest
import requests

from mailslot.core.message import KeyValueMessageStore, SqlMessageStore
from mailslot.infra.database import build_engine, build_session_factory, init_db
from mailslot.infra.kv import InMemoryKeyValueStore


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def fake_response(status_code=200, json_data=None, text="", cookies=None):
    """Mock shaped like requests.Response for the attributes our clients read."""
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.cookies = requests.cookies.cookiejar_from_dict(cookies or {})
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv(clock):
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def sql_store():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield SqlMessageStore(build_session_factory(engine))
    engine.dispose()


@pytest.fixture
def kv_store(kv):
    return KeyValueMessageStore(kv)


@pytest.fixture(params=["sql", "kv"])
def store(request):
    """Both backends, for tests of the shared contract."""
    return request.getfixturevalue(f"{request.param}_store")
