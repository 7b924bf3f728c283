"""Interface shared by every image service the studio can talk to."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover
    from utils.vision.file_encoder import EncodedImage


class ImageServiceError(RuntimeError):
    """Raised when an image service rejects or fails a request.

    ``str(error)`` is the human-readable message shown to the user.
    """

    def __init__(self, message: str, *, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@runtime_checkable
class ImageService(Protocol):
    """Edit and generate operations returning ``data:`` URL image references."""

    def edit_image(self, encoded_image: "EncodedImage", prompt: str) -> str:
        ...

    def generate_image(self, prompt: str) -> str:
        ...


__all__ = ["ImageService", "ImageServiceError"]
