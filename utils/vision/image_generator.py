"""Deterministic local stand-in for the remote image service."""

from __future__ import annotations

import base64
import hashlib
import io
import random
import textwrap
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from utils.providers.base import ImageServiceError
from utils.vision.file_encoder import EncodedImage, to_data_url

Palette = Tuple[Tuple[int, int, int], Tuple[int, int, int]]


class ImageGenerationError(ImageServiceError):
    """Raised when local image generation fails."""


@dataclass
class LocalImageGenerator:
    """Produce placeholder PNGs for prompts without calling any remote API.

    Used when mock mode is enabled so the studio and its tests run offline.
    Generation paints a prompt-seeded gradient with the prompt text; editing
    draws the prompt as a banner across the decoded source image.
    """

    default_size: Tuple[int, int] = (512, 512)

    def generate(
        self,
        prompt: str,
        *,
        width: int | None = None,
        height: int | None = None,
        seed: Optional[int] = None,
    ) -> str:
        """Return a base64-encoded PNG depicting the provided prompt."""
        prompt = self._require_prompt(prompt)

        width = width or self.default_size[0]
        height = height or self.default_size[1]
        if width <= 0 or height <= 0:
            raise ImageGenerationError("Image dimensions must be positive")

        entropy = seed
        if entropy is None:
            digest = hashlib.sha256(prompt.encode("utf-8")).digest()
            entropy = int.from_bytes(digest[:8], "big")
        rng = random.Random(entropy)

        image = Image.new("RGB", (width, height))
        draw = ImageDraw.Draw(image)
        palette = self._choose_palette(rng)
        self._paint_gradient(draw, width, height, palette)
        self._overlay_prompt(draw, prompt, width, height, palette)
        return self._encode_png(image)

    def edit(self, source: EncodedImage, prompt: str) -> str:
        """Return a base64 PNG of ``source`` with the prompt drawn on a banner."""
        prompt = self._require_prompt(prompt)

        try:
            image = Image.open(io.BytesIO(source.to_bytes()))
            image.load()
        except (ValueError, UnidentifiedImageError, OSError) as exc:
            raise ImageGenerationError("Unable to decode the uploaded image") from exc

        image = image.convert("RGB")
        width, height = image.size
        banner_height = max(16, height // 5)
        draw = ImageDraw.Draw(image)
        draw.rectangle([(0, height - banner_height), (width, height)], fill=(20, 20, 20))
        font = ImageFont.load_default()
        wrapped = textwrap.shorten(prompt, width=max(12, width // 7), placeholder="...")
        draw.text((4, height - banner_height + 2), wrapped, font=font, fill=(255, 255, 255))
        return self._encode_png(image)

    # ImageService interface -------------------------------------------------

    def generate_image(self, prompt: str) -> str:
        return to_data_url(self.generate(prompt), "image/png")

    def edit_image(self, encoded_image: EncodedImage, prompt: str) -> str:
        return to_data_url(self.edit(encoded_image, prompt), "image/png")

    # helpers ------------------------------------------------------------------

    @staticmethod
    def _require_prompt(prompt: str) -> str:
        if not isinstance(prompt, str) or not prompt.strip():
            raise ImageGenerationError("Prompt must be a non-empty string")
        return prompt.strip()

    @staticmethod
    def _encode_png(image: Image.Image) -> str:
        buffer = io.BytesIO()
        try:
            image.save(buffer, format="PNG")
        except OSError as exc:  # pragma: no cover - unexpected Pillow failure
            raise ImageGenerationError("Failed to encode PNG") from exc
        return base64.b64encode(buffer.getvalue()).decode("ascii")

    @staticmethod
    def _choose_palette(rng: random.Random) -> Palette:
        base = tuple(rng.randint(32, 128) for _ in range(3))
        accent = tuple(min(255, value + rng.randint(64, 120)) for value in base)
        return base, accent

    @staticmethod
    def _paint_gradient(draw: ImageDraw.ImageDraw, width: int, height: int, palette: Palette) -> None:
        base, accent = palette
        for y in range(height):
            factor = y / max(height - 1, 1)
            color = tuple(
                int(base[idx] * (1 - factor) + accent[idx] * factor)
                for idx in range(3)
            )
            draw.line([(0, y), (width, y)], fill=color)

    @staticmethod
    def _overlay_prompt(
        draw: ImageDraw.ImageDraw,
        prompt: str,
        width: int,
        height: int,
        palette: Palette,
    ) -> None:
        font = ImageFont.load_default()
        wrapped = textwrap.fill(prompt, width=max(12, width // 8))

        bbox = draw.multiline_textbbox((0, 0), wrapped, font=font, align="center")
        position = (
            max(4, (width - (bbox[2] - bbox[0])) // 2),
            max(4, (height - (bbox[3] - bbox[1])) // 2),
        )

        base, _ = palette
        text_color = (255, 255, 255) if sum(base) / 3 < 128 else (20, 20, 20)
        draw.multiline_text(position, wrapped, font=font, fill=text_color, align="center")


__all__ = ["ImageGenerationError", "LocalImageGenerator"]
