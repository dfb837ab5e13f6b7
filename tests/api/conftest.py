from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from watchrun.api.context import AppContext
from watchrun.api.main import create_app
from watchrun.runner import LogBuffer


@pytest.fixture()
def context() -> AppContext:
    return AppContext(buffers={"demo": LogBuffer()})


@pytest.fixture()
def app(context: AppContext):
    return create_app(context)


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client
