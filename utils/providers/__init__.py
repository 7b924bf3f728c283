"""Image service adapters for the AI Image Studio."""

from .base import ImageService, ImageServiceError
from .gemini import GeminiImageService

__all__ = ["ImageService", "ImageServiceError", "GeminiImageService"]
