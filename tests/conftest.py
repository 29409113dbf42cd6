import os
import tempfile

os.environ["DATABASE_PATH"] = os.path.join(tempfile.mkdtemp(prefix="anihub-tests-"), "anihub.db")
os.environ["LOG_LEVEL"] = "WARNING"

import httpx
import pytest
from fastapi.testclient import TestClient

from anihub.main import app


def make_response(url: str, status_code: int = 200, json=None, method: str = "GET") -> httpx.Response:
    return httpx.Response(status_code, json=json, request=httpx.Request(method, url))


async def no_delay(min_ms, max_ms):
    return None


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture(scope="module")
def live_client():
    with TestClient(app) as test_client:
        yield test_client
