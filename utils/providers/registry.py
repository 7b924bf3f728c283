"""Pick the image service the studio should use for the current configuration."""

from __future__ import annotations

import logging

from utils.providers.base import ImageService
from utils.providers.gemini import GeminiImageService
from utils.vision.image_generator import LocalImageGenerator

logger = logging.getLogger("imagestudio.providers")


def get_image_service(config) -> ImageService:
    """Return the mock generator when mock images are enabled, Gemini otherwise."""

    if config.use_mock_images:
        size = int(config.get("images.mock_size", 512))
        logger.info("image_service.selected", extra={"provider": "mock", "size": size})
        return LocalImageGenerator(default_size=(size, size))

    service = GeminiImageService.from_config(config)
    if not service.api_key:
        logger.warning(
            "image_service.missing_api_key",
            extra={"provider": "gemini"},
        )
    logger.info(
        "image_service.selected",
        extra={
            "provider": "gemini",
            "edit_model": service.edit_model,
            "generate_model": service.generate_model,
        },
    )
    return service


__all__ = ["get_image_service"]
