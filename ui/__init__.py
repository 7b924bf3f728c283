"""Panels and tab shell behind the studio's browser UI."""

from .panels import (
    EditorPanel,
    GeneratorPanel,
    InteractionState,
    PanelBusyError,
)
from .shell import SessionStore, Shell

__all__ = [
    "EditorPanel",
    "GeneratorPanel",
    "InteractionState",
    "PanelBusyError",
    "SessionStore",
    "Shell",
]
