from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from pastebox.config import Settings
from pastebox.main import create_app
from pastebox.runtime import Runtime


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'pastebox.db'}",
        blob_backend="filesystem",
        blob_dir=str(tmp_path / "blobs"),
        rate_limit_backend="memory",
        ip_hash_secret="test-secret",
    )


@pytest.fixture
def runtime(settings, clock):
    rt = Runtime.from_settings(settings, create_tables=True, clock=clock)
    yield rt
    rt.close()


@pytest.fixture
def pastes(runtime):
    return runtime.pastes


@pytest.fixture
def metadata_store(runtime):
    return runtime.metadata


@pytest.fixture
def blobs(runtime):
    return runtime.blobs


@pytest.fixture
def client(runtime):
    with TestClient(create_app(runtime=runtime)) as c:
        yield c
