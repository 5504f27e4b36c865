"""
pytest configuration and fixtures.
"""

import logging
from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from demoapi.config import Settings
from demoapi.main import create_app


def make_settings(**overrides) -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    values = {
        "test_mode": True,
        "server_host": "127.0.0.1",
        "server_port": 0,
        "shutdown_timeout": 5.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    """Deterministic (test mode) settings."""
    return make_settings()


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    """Application built with fault injection disabled."""
    return create_app(settings)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client with the lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def access_records(caplog: pytest.LogCaptureFixture):
    """Return a callable giving the access log records captured so far."""
    caplog.set_level(logging.DEBUG)

    def _records() -> list[logging.LogRecord]:
        return [r for r in caplog.records if r.name == "demoapi.access"]

    return _records
