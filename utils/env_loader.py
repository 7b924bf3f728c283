"""Load ``.env`` files for the image studio before configuration is built."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from dotenv import dotenv_values

logger = logging.getLogger(__name__)


ENV_NAME_VAR = "IMAGE_STUDIO_ENV"
EXPLICIT_ENV_FILE_VAR = "IMAGE_STUDIO_ENV_FILE"


@dataclass(frozen=True)
class EnvLoadResult:
    """Which env files were read and what they contributed."""

    loaded_files: Tuple[Path, ...]
    applied_values: Mapping[str, str]
    resolved_env: Optional[str]


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _candidate_files(root: Path, env: Optional[str], explicit: Optional[str]) -> List[Path]:
    candidates = [root / ".env"]
    if env:
        candidates.append(root / f".env.{env}")
    candidates.append(root / ".env.local")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    return candidates


def load_project_env(
    env: Optional[str] = None,
    *,
    root: Optional[Path] = None,
    explicit: Optional[str] = None,
) -> EnvLoadResult:
    """Apply ``.env`` values to ``os.environ`` without overriding existing keys.

    Files are read in this order, later files winning over earlier ones:

    1. ``.env``
    2. ``.env.<environment>``
    3. ``.env.local``
    4. the file named by ``IMAGE_STUDIO_ENV_FILE`` (or ``explicit``)

    The environment name may itself come from ``.env``, so the base file is
    read before the environment-specific one is located. A name already set
    in the process environment wins over the one in ``.env``.
    """

    search_root = root or _project_root()
    explicit_file = explicit or os.environ.get(EXPLICIT_ENV_FILE_VAR)

    aggregated: Dict[str, str] = {}
    loaded: List[Path] = []

    def merge(path: Path) -> None:
        if not path.is_file():
            if explicit_file and path == Path(explicit_file).expanduser():
                logger.warning("Explicit env file %s does not exist", path)
            return
        try:
            values = dotenv_values(path)
        except OSError as exc:
            logger.warning("Failed to read env file %s: %s", path, exc)
            return
        aggregated.update({key: value for key, value in values.items() if value is not None})
        loaded.append(path)

    merge(search_root / ".env")
    resolved_env = env or os.environ.get(ENV_NAME_VAR) or aggregated.get(ENV_NAME_VAR)

    for path in _candidate_files(search_root, resolved_env, explicit_file)[1:]:
        merge(path)

    applied: Dict[str, str] = {}
    for key, value in aggregated.items():
        if key not in os.environ:
            os.environ[key] = value
            applied[key] = value

    return EnvLoadResult(
        loaded_files=tuple(loaded),
        applied_values=applied,
        resolved_env=resolved_env,
    )


__all__ = ["EnvLoadResult", "load_project_env", "ENV_NAME_VAR", "EXPLICIT_ENV_FILE_VAR"]
