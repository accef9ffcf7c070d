"""Pytest fixtures for the Media Services example tests (mocked management and storage clients)."""

from unittest.mock import MagicMock

import pytest

from common import ExampleConfiguration

import stream_files_with_drm
from helpers import FakeClock


@pytest.fixture
def config():
    return ExampleConfiguration(
        subscription_id="00000000-0000-0000-0000-000000000000",
        resource_group="amsResourceGroup",
        account_name="amsaccount",
        client_id="client-id",
        client_secret="client-secret",
        tenant_id="tenant-id",
        input_url="https://example/video.mp4",
        job_timeout_seconds=60,
        poll_interval_seconds=15,
    )


@pytest.fixture
def media_services_client():
    return MagicMock()


@pytest.fixture
def fake_clock(monkeypatch):
    clock = FakeClock()
    monkeypatch.setattr(stream_files_with_drm, "time", clock)
    return clock


@pytest.fixture
def blob_service(monkeypatch):
    """Replaces BlobServiceClient; the returned mock is the service class."""
    service_class = MagicMock()
    monkeypatch.setattr(stream_files_with_drm, "BlobServiceClient", service_class)
    return service_class


@pytest.fixture
def container_client(blob_service):
    return blob_service.return_value.get_container_client.return_value
