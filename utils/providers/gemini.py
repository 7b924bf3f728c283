"""Google Gemini / Imagen adapter for image editing and generation.

Editing sends the uploaded image as an inline part next to the prompt text and
asks ``generate_content`` for an image modality back. Generation goes through
Imagen's ``generate_images``. Both return a ``data:`` URL so the browser can
show the result without a second round trip.

SDK failures are re-raised as :class:`ImageServiceError` with the upstream
message preserved, because that message is what the user sees.
"""

from __future__ import annotations

import base64
import logging
import threading
from typing import Any, Iterable, List, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from utils.providers.base import ImageServiceError
from utils.vision.file_encoder import EncodedImage, to_data_url

logger = logging.getLogger("imagestudio.providers.gemini")

NO_IMAGE_MESSAGE = "The model did not return an image. It might have refused the request."
NO_GENERATED_IMAGES_MESSAGE = "Image generation failed: no images were returned."


def _as_base64(data: Any) -> str:
    # The SDK hands back raw bytes; REST-shaped fakes may already be base64 text
    if isinstance(data, (bytes, bytearray)):
        return base64.b64encode(bytes(data)).decode("ascii")
    return str(data)


def _error_message(exc: Exception) -> str:
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message.strip():
        return message.strip()
    return str(exc)


class GeminiImageService:
    """Image service backed by the ``google-genai`` SDK."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        edit_model: str = "gemini-2.5-flash-image",
        generate_model: str = "imagen-4.0-generate-001",
        output_mime_type: str = "image/jpeg",
        aspect_ratio: str = "1:1",
        client: Any = None,
    ):
        self.api_key = api_key
        self.edit_model = edit_model
        self.generate_model = generate_model
        self.output_mime_type = output_mime_type
        self.aspect_ratio = aspect_ratio
        self._client = client
        self._client_lock = threading.Lock()

    @classmethod
    def from_config(cls, config) -> "GeminiImageService":
        settings = config.gemini_settings
        return cls(
            settings.get("api_key"),
            edit_model=settings.get("edit_model", "gemini-2.5-flash-image"),
            generate_model=settings.get("generate_model", "imagen-4.0-generate-001"),
            output_mime_type=settings.get("output_mime_type", "image/jpeg"),
            aspect_ratio=settings.get("aspect_ratio", "1:1"),
        )

    @property
    def client(self) -> Any:
        """Create the SDK client on first use so a missing key only fails requests."""
        with self._client_lock:
            if self._client is None:
                if not self.api_key:
                    raise ImageServiceError(
                        "GEMINI_API_KEY is not configured; set it or enable mock images."
                    )
                self._client = genai.Client(api_key=self.api_key)
            return self._client

    def edit_image(self, encoded_image: EncodedImage, prompt: str) -> str:
        """Apply ``prompt`` to ``encoded_image`` and return the edited image URL."""
        try:
            image_bytes = encoded_image.to_bytes()
        except ValueError as exc:
            raise ImageServiceError("The uploaded image is not valid base64 data.") from exc

        image_part = types.Part.from_bytes(data=image_bytes, mime_type=encoded_image.mime_type)
        try:
            response = self.client.models.generate_content(
                model=self.edit_model,
                contents=[image_part, prompt],
                config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
            )
        except genai_errors.APIError as exc:
            logger.warning(
                "gemini.edit.failed",
                extra={"model": self.edit_model, "status": getattr(exc, "code", None)},
            )
            raise ImageServiceError(_error_message(exc), status_code=getattr(exc, "code", None)) from exc

        texts: List[str] = []
        for part in self._first_candidate_parts(response):
            inline = getattr(part, "inline_data", None)
            if inline is not None and getattr(inline, "data", None):
                mime_type = getattr(inline, "mime_type", None) or "image/png"
                return to_data_url(_as_base64(inline.data), mime_type)
            text = getattr(part, "text", None)
            if text:
                texts.append(text.strip())

        message = NO_IMAGE_MESSAGE
        if texts:
            message = f"{message} Response: {' '.join(texts)}"
        raise ImageServiceError(message)

    def generate_image(self, prompt: str) -> str:
        """Generate a single image for ``prompt`` and return it as a data URL."""
        try:
            response = self.client.models.generate_images(
                model=self.generate_model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    output_mime_type=self.output_mime_type,
                    aspect_ratio=self.aspect_ratio,
                ),
            )
        except genai_errors.APIError as exc:
            logger.warning(
                "gemini.generate.failed",
                extra={"model": self.generate_model, "status": getattr(exc, "code", None)},
            )
            raise ImageServiceError(_error_message(exc), status_code=getattr(exc, "code", None)) from exc

        generated = getattr(response, "generated_images", None) or []
        if not generated:
            raise ImageServiceError(NO_GENERATED_IMAGES_MESSAGE)

        image = getattr(generated[0], "image", None)
        image_bytes = getattr(image, "image_bytes", None)
        if not image_bytes:
            raise ImageServiceError(NO_GENERATED_IMAGES_MESSAGE)

        mime_type = getattr(image, "mime_type", None) or self.output_mime_type
        return to_data_url(_as_base64(image_bytes), mime_type)

    @staticmethod
    def _first_candidate_parts(response: Any) -> Iterable[Any]:
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            return []
        content = getattr(candidates[0], "content", None)
        return getattr(content, "parts", None) or []


__all__ = ["GeminiImageService", "NO_IMAGE_MESSAGE", "NO_GENERATED_IMAGES_MESSAGE"]
