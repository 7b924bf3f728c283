"""Unit tests for choosing the image service from configuration."""

from __future__ import annotations

import pytest

from config import Config
from utils.providers import GeminiImageService, ImageService
from utils.providers.registry import get_image_service
from utils.vision import LocalImageGenerator


@pytest.fixture
def config(monkeypatch: pytest.MonkeyPatch) -> Config:
    for name in ("USE_MOCK_IMAGES", "GEMINI_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    return Config(env="development")


def test_mock_images_select_local_generator(config: Config) -> None:
    config.set("images.use_mock", True)
    config.set("images.mock_size", 32)

    service = get_image_service(config)

    assert isinstance(service, LocalImageGenerator)
    assert service.default_size == (32, 32)
    assert isinstance(service, ImageService)


def test_gemini_service_uses_configured_models(config: Config) -> None:
    config.set("gemini.api_key", "secret")
    config.set("gemini.edit_model", "edit-model")
    config.set("gemini.generate_model", "generate-model")

    service = get_image_service(config)

    assert isinstance(service, GeminiImageService)
    assert service.api_key == "secret"
    assert service.edit_model == "edit-model"
    assert service.generate_model == "generate-model"


def test_missing_api_key_is_logged_but_not_fatal(config: Config, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING", logger="imagestudio.providers"):
        service = get_image_service(config)

    assert isinstance(service, GeminiImageService)
    assert service.api_key is None
    assert any(r.getMessage() == "image_service.missing_api_key" for r in caplog.records)
