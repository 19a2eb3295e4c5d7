"""
Pytest configuration and shared fixtures.

Registers the `integration` marker (tests that call the real vision model)
and provides a temporary session store plus a scripted vision client that
is injected into the app through dependency overrides.
"""

import io
import zipfile
import pytest
from PIL import Image
from fastapi.testclient import TestClient
from ticket_scanner.api.deps import get_session_store, get_vision_client
from ticket_scanner.api.main import app
from ticket_scanner.core.errors import ConfigurationError
from ticket_scanner.services.storage.sessions import SessionStore


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against the real vision model API"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring a real OPENROUTER_API_KEY"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


class FakeVisionClient:
    """
    Stand-in for VisionClient that replays scripted replies.

    A reply that is an exception instance is raised instead of returned.
    """

    def __init__(self, replies=None, configured=True):
        self.replies = list(replies or [])
        self.calls = []
        self._configured = configured

    @property
    def configured(self):
        return self._configured

    def require_configured(self):
        if not self._configured:
            raise ConfigurationError("OPENROUTER_API_KEY not configured")

    async def complete(self, prompt, images, max_tokens=4096):
        self.calls.append({"prompt": prompt, "images": list(images), "max_tokens": max_tokens})
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "uploads")


@pytest.fixture
def session_id(store):
    return store.create()


@pytest.fixture
def vision():
    return FakeVisionClient()


@pytest.fixture
def unconfigured_vision():
    return FakeVisionClient(configured=False)


@pytest.fixture
def client(store, vision):
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_vision_client] = lambda: vision
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_image():
    """Factory for small in-memory images"""
    def _make(fmt="PNG", size=(40, 20), color=(255, 255, 255)):
        img = Image.new("RGB", size, color)
        out = io.BytesIO()
        img.save(out, format=fmt)
        return out.getvalue()
    return _make


@pytest.fixture
def make_zip():
    """Factory for in-memory ZIP archives from {name: bytes}; names ending in / become directories"""
    def _make(entries):
        out = io.BytesIO()
        with zipfile.ZipFile(out, "w") as archive:
            for name, data in entries.items():
                if name.endswith("/"):
                    archive.writestr(zipfile.ZipInfo(name), b"")
                else:
                    archive.writestr(name, data)
        return out.getvalue()
    return _make
