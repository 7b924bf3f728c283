"""Image payload helpers and the offline image generator."""

from .file_encoder import EncodedImage, encode_file, split_data_url, to_data_url
from .image_generator import ImageGenerationError, LocalImageGenerator

__all__ = [
    "EncodedImage",
    "encode_file",
    "split_data_url",
    "to_data_url",
    "ImageGenerationError",
    "LocalImageGenerator",
]
