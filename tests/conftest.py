"""
Pytest configuration for the image studio tests.
Forces the testing environment and offline images, and provides fake services.
"""

import io
import logging
import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Generator, List, Optional, Tuple

import pytest
from PIL import Image

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ["IMAGE_STUDIO_ENV"] = "testing"
os.environ["USE_MOCK_IMAGES"] = "1"
os.environ.setdefault("API_RATE_LIMIT", "1000/minute")

from config import Config, reset_config  # noqa: E402
from utils.providers.base import ImageServiceError  # noqa: E402


class FakeImageService:
    """Records calls and returns canned references or raises canned errors."""

    def __init__(self, result: str = "data:image/png;base64,UkVTVUxU", error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.edit_calls: List[Tuple[object, str]] = []
        self.generate_calls: List[str] = []

    def edit_image(self, encoded_image, prompt):
        self.edit_calls.append((encoded_image, prompt))
        if self.error is not None:
            raise self.error
        return self.result

    def generate_image(self, prompt):
        self.generate_calls.append(prompt)
        if self.error is not None:
            raise self.error
        return self.result

    @property
    def call_count(self) -> int:
        return len(self.edit_calls) + len(self.generate_calls)


class BlockingImageService(FakeImageService):
    """Holds every call until ``release`` is set, so tests can observe in-flight state."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.started = threading.Event()
        self.release = threading.Event()

    def _wait(self):
        self.started.set()
        assert self.release.wait(timeout=5), "test never released the blocking service"

    def edit_image(self, encoded_image, prompt):
        self._wait()
        return super().edit_image(encoded_image, prompt)

    def generate_image(self, prompt):
        self._wait()
        return super().generate_image(prompt)


@pytest.fixture(autouse=True)
def _propagate_studio_logs(monkeypatch):
    """Let caplog see records even after the JSON handler disabled propagation."""
    monkeypatch.setattr(logging.getLogger("imagestudio"), "propagate", True)


@pytest.fixture
def fake_service() -> FakeImageService:
    return FakeImageService()


@pytest.fixture
def failing_service() -> FakeImageService:
    return FakeImageService(error=ImageServiceError("quota exceeded"))


@pytest.fixture
def blocking_service() -> Generator[BlockingImageService, None, None]:
    service = BlockingImageService()
    yield service
    service.release.set()


@pytest.fixture
def executor() -> Generator[ThreadPoolExecutor, None, None]:
    pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="test-panel")
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 6), (200, 40, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def test_config(monkeypatch) -> Generator[Config, None, None]:
    """A fresh testing configuration with a fixed secret key."""
    monkeypatch.setenv("IMAGE_STUDIO_ENV", "testing")
    reset_config()
    config = Config(env="testing")
    config.set("ui.secret_key", "test-secret")
    yield config
    reset_config()


@pytest.fixture
def make_app(test_config, executor):
    """Build a studio app around the given image service."""
    from studio import create_app

    def _make(service):
        app = create_app(test_config, image_service=service, executor=executor)
        app.config["TESTING"] = True
        return app

    return _make


@pytest.fixture
def client(make_app, fake_service):
    with make_app(fake_service).test_client() as test_client:
        yield test_client
