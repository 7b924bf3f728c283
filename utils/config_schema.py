"""Typed configuration schema and defaults for the image studio.

The ``TypedDict`` views below describe each section of the configuration tree,
followed by the default payload and the per-environment overrides merged by
:class:`~config.Config` at runtime.
"""

from __future__ import annotations

from typing import Dict, List, Optional, TypedDict


class ServerSettings(TypedDict, total=False):
    host: str
    port: int
    debug: bool
    workers: int


class GeminiSettings(TypedDict, total=False):
    api_key: Optional[str]
    edit_model: str
    generate_model: str
    output_mime_type: str
    aspect_ratio: str


class UISettings(TypedDict, total=False):
    editor_default_prompt: str
    generator_default_prompt: str
    max_upload_mb: int
    accepted_mime_types: List[str]
    session_ttl_seconds: int
    secret_key: Optional[str]


class ImageSettings(TypedDict, total=False):
    use_mock: bool
    mock_size: int


class AppConfig(TypedDict):
    server: ServerSettings
    gemini: GeminiSettings
    ui: UISettings
    images: ImageSettings


class PartialAppConfig(TypedDict, total=False):
    server: ServerSettings
    gemini: GeminiSettings
    ui: UISettings
    images: ImageSettings


# Default configuration values used to seed :class:`~config.Config`.
DEFAULT_CONFIG: AppConfig = {
    "server": {
        "host": "127.0.0.1",
        "port": 5010,
        "debug": False,
        "workers": 4,
    },
    "gemini": {
        "api_key": None,
        "edit_model": "gemini-2.5-flash-image",
        "generate_model": "imagen-4.0-generate-001",
        "output_mime_type": "image/jpeg",
        "aspect_ratio": "1:1",
    },
    "ui": {
        "editor_default_prompt": (
            "Change the background of this image to a hall with several people at a lecture"
        ),
        "generator_default_prompt": (
            "A photorealistic image of a futuristic city skyline at sunset."
        ),
        "max_upload_mb": 10,
        "accepted_mime_types": ["image/png", "image/jpeg", "image/webp"],
        "session_ttl_seconds": 1800,
        "secret_key": None,
    },
    "images": {
        "use_mock": False,
        "mock_size": 512,
    },
}


ENV_OVERRIDES: Dict[str, PartialAppConfig] = {
    "development": {
        "server": {
            "debug": True,
        },
    },
    "testing": {
        "server": {
            "debug": True,
            "port": 5011,
        },
        "images": {
            "use_mock": True,
            "mock_size": 64,
        },
    },
    "production": {
        "server": {
            "debug": False,
            "workers": 8,
        },
        "ui": {
            "session_ttl_seconds": 900,
        },
    },
}
