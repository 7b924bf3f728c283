"""
Configuration for the AI Image Studio.
Values are loaded from environment variables with sensible defaults.
"""

import os
import json
import logging
import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, cast

from utils.config_schema import (
    AppConfig,
    DEFAULT_CONFIG,
    ENV_OVERRIDES,
    GeminiSettings,
    ImageSettings,
    ServerSettings,
    UISettings,
)
from utils.env_loader import ENV_NAME_VAR, EnvLoadResult, load_project_env

logger = logging.getLogger('imagestudio.config')


@dataclass(frozen=True)
class SensitiveKey:
    """A dot-delimited config key that should never persist to disk."""

    path: str

    @property
    def parts(self) -> List[str]:
        return self.path.split('.')


SENSITIVE_CONFIG_KEYS: List[SensitiveKey] = [
    SensitiveKey("gemini.api_key"),
    SensitiveKey("ui.secret_key"),
]


class Config:
    """Configuration manager for the image studio"""

    def __init__(self, env: Optional[str] = None, config_path: Optional[str] = None):
        """
        Initialize configuration for the given environment.
        When env is None the IMAGE_STUDIO_ENV variable is used, falling back
        to 'development'.
        """
        self.env_bootstrap: EnvLoadResult = load_project_env(env)
        self.loaded_env_files = self.env_bootstrap.loaded_files

        self.env = (
            env
            or self.env_bootstrap.resolved_env
            or os.environ.get(ENV_NAME_VAR)
            or 'development'
        )
        os.environ.setdefault(ENV_NAME_VAR, self.env)

        if self.loaded_env_files:
            logger.debug(
                "Loaded environment files for %s: %s",
                self.env,
                ", ".join(str(path) for path in self.loaded_env_files),
            )

        # Deep copy so DEFAULT_CONFIG and the override tables stay pristine
        self.config: AppConfig = copy.deepcopy(DEFAULT_CONFIG)
        if self.env in ENV_OVERRIDES:
            self._merge_configs(self.config, copy.deepcopy(ENV_OVERRIDES[self.env]))

        self.config_path = config_path or os.environ.get('IMAGE_STUDIO_CONFIG')
        if self.config_path:
            self._load_user_config()

        self._apply_runtime_env_overrides()

        logger.info(f"Configuration initialized for environment: {self.env}")

    def _load_user_config(self):
        """Load the user configuration file and merge it over the current config"""
        try:
            with open(self.config_path, 'r') as f:
                user_config = json.load(f)
                self._merge_configs(self.config, user_config)
                logger.info(f"Loaded user configuration from {self.config_path}")
        except FileNotFoundError:
            logger.warning(f"User configuration file not found: {self.config_path}")
        except json.JSONDecodeError:
            logger.error(f"Error decoding JSON in user configuration file: {self.config_path}")
        except OSError as e:
            logger.error(f"Error loading user configuration: {str(e)}")

    def _merge_configs(self, base_config: Dict[str, Any], override_config: Dict[str, Any]):
        """
        Recursively merge override_config into base_config.
        """
        for key, value in override_config.items():
            if key in base_config and isinstance(base_config[key], dict) and isinstance(value, dict):
                self._merge_configs(base_config[key], value)
            else:
                base_config[key] = value

    def _apply_runtime_env_overrides(self) -> None:
        """Apply environment variables that take precedence over every file."""

        api_key = os.environ.get('GEMINI_API_KEY') or os.environ.get('GOOGLE_API_KEY')
        if api_key and api_key.strip():
            self.set('gemini.api_key', api_key.strip())

        for env_name, key in (
            ('GEMINI_EDIT_MODEL', 'gemini.edit_model'),
            ('GEMINI_GENERATE_MODEL', 'gemini.generate_model'),
            ('IMAGE_STUDIO_SECRET_KEY', 'ui.secret_key'),
        ):
            value = os.environ.get(env_name, '').strip()
            if value:
                self.set(key, value)

        mock_env = os.environ.get('USE_MOCK_IMAGES')
        if mock_env is not None:
            parsed = self._parse_bool(mock_env)
            if parsed is not None:
                self.set('images.use_mock', parsed)
            elif mock_env.strip():
                logger.warning("Invalid USE_MOCK_IMAGES value: %s", mock_env)

        upload_env = os.environ.get('IMAGE_STUDIO_MAX_UPLOAD_MB', '').strip()
        if upload_env:
            try:
                self.set('ui.max_upload_mb', int(upload_env))
            except ValueError:
                logger.warning("Invalid IMAGE_STUDIO_MAX_UPLOAD_MB value: %s", upload_env)

    @staticmethod
    def _parse_bool(value: Optional[str]) -> Optional[bool]:
        """Parse boolean-like environment overrides."""

        if value is None:
            return None

        lowered = str(value).strip().lower()
        if not lowered:
            return None

        if lowered in {'1', 'true', 'yes', 'on'}:
            return True
        if lowered in {'0', 'false', 'no', 'off'}:
            return False

        return None

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by dot-separated key path.
        E.g., config.get('gemini.edit_model')
        """
        value = self.config
        try:
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any):
        """
        Set a configuration value by dot-separated key path.
        E.g., config.set('server.port', 8080)
        """
        keys = key.split('.')
        config = self.config
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value

    def _redacted_config_copy(self) -> Dict[str, Any]:
        """Return a deepcopy of the config with sensitive values blanked."""

        redacted = copy.deepcopy(self.config)
        for key in SENSITIVE_CONFIG_KEYS:
            cursor: Any = redacted
            for segment in key.parts[:-1]:
                cursor = cursor.get(segment) if isinstance(cursor, dict) else None
                if cursor is None:
                    break
            if isinstance(cursor, dict) and key.parts[-1] in cursor:
                cursor[key.parts[-1]] = None
        return redacted

    def save_user_config(self, config_path: Optional[str] = None):
        """Save the current configuration to a JSON file.

        Secrets listed in ``SENSITIVE_CONFIG_KEYS`` are written as ``null``.
        Missing parent directories are created.
        """
        path = config_path or self.config_path
        if not path:
            raise ValueError("No configuration path provided")

        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        try:
            with open(path, 'w') as f:
                json.dump(self._redacted_config_copy(), f, indent=2)
            logger.info(f"Configuration saved to {path}")
        except OSError as e:
            logger.error(f"Error saving configuration: {str(e)}")

    @property
    def is_development(self) -> bool:
        return self.env == 'development'

    @property
    def is_testing(self) -> bool:
        return self.env == 'testing'

    @property
    def is_production(self) -> bool:
        return self.env == 'production'

    @property
    def use_mock_images(self) -> bool:
        return bool(self.get('images.use_mock', False))

    @property
    def max_upload_bytes(self) -> int:
        return int(self.get('ui.max_upload_mb', 10)) * 1024 * 1024

    # ------------------------------------------------------------------
    # Typed section helpers
    # ------------------------------------------------------------------

    @property
    def server_settings(self) -> ServerSettings:
        return cast(ServerSettings, self.config['server'])

    @property
    def gemini_settings(self) -> GeminiSettings:
        return cast(GeminiSettings, self.config['gemini'])

    @property
    def ui_settings(self) -> UISettings:
        return cast(UISettings, self.config['ui'])

    @property
    def image_settings(self) -> ImageSettings:
        return cast(ImageSettings, self.config['images'])


_config: Optional[Config] = None


def get_config() -> Config:
    """Return the process-wide configuration, building it on first use"""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration so the next lookup re-reads the environment"""
    global _config
    _config = None
