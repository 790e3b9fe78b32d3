import os
import tempfile
from pathlib import Path

# Настройки должны быть выставлены до импорта app.*
_tmp_dir = Path(tempfile.mkdtemp(prefix="auth-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmp_dir / 'test.db'}"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["VERIFICATION_SWEEP_INTERVAL_SECONDS"] = "3600"
for _name in ("SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD"):
    os.environ.pop(_name, None)

import itertools
from typing import List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from app.services.mailer import DeliveryResult
from app.services.verification import VerificationStore


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingDispatcher:
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, Optional[str]]] = []
        self.fail_reason: Optional[str] = None

    def send(self, identity, code, display_name=None):
        self.sent.append((identity, code, display_name))
        if self.fail_reason:
            return DeliveryResult.failure(self.fail_reason)
        return DeliveryResult.success("<test@local>")

    def last_code(self) -> str:
        return self.sent[-1][1]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return VerificationStore(ttl_seconds=600, clock=clock)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def client(store, dispatcher):
    from app.main import app

    with TestClient(app) as test_client:
        app.state.verification_store = store
        app.state.email_dispatcher = dispatcher
        yield test_client


_counter = itertools.count()


@pytest.fixture
def email():
    # БД общая на сессию тестов, адреса не должны повторяться
    return f"user{next(_counter)}@example.com"
