"""Tab switcher holding the active panel, and the per-session registry of shells."""

from __future__ import annotations

import logging
import secrets
import threading
import time
from typing import Callable, Dict, Optional, Tuple, Union

from utils.providers.base import ImageService
from ui.panels import EditorPanel, GeneratorPanel

logger = logging.getLogger("imagestudio.ui.shell")

EDITOR_TAB = "editor"
GENERATOR_TAB = "generator"

TABS: Tuple[Tuple[str, str], ...] = (
    (EDITOR_TAB, "Image Editor"),
    (GENERATOR_TAB, "Image Generator"),
)

Panel = Union[EditorPanel, GeneratorPanel]


class Shell:
    """Renders exactly one panel at a time.

    Switching to another tab drops the current panel and builds a fresh one,
    so state does not survive a round trip through the other tab. Selecting
    the tab that is already active keeps its panel untouched.
    """

    def __init__(
        self,
        service: ImageService,
        *,
        editor_prompt: str = "",
        generator_prompt: str = "",
        executor=None,
        active_tab: str = EDITOR_TAB,
    ):
        self.service = service
        self.editor_prompt = editor_prompt
        self.generator_prompt = generator_prompt
        self._executor = executor
        self._lock = threading.Lock()
        self._active_tab = self._check_tab(active_tab)
        self._panel: Panel = self._build_panel(self._active_tab)

    @property
    def tabs(self) -> Tuple[Tuple[str, str], ...]:
        return TABS

    @property
    def active_tab(self) -> str:
        with self._lock:
            return self._active_tab

    @property
    def active_panel(self) -> Panel:
        with self._lock:
            return self._panel

    def select(self, tab: str) -> Panel:
        """Make ``tab`` the active tab and return its panel."""
        tab = self._check_tab(tab)
        with self._lock:
            if tab != self._active_tab:
                logger.debug("shell.tab.switched", extra={"from_tab": self._active_tab, "to_tab": tab})
                self._active_tab = tab
                self._panel = self._build_panel(tab)
            return self._panel

    @staticmethod
    def _check_tab(tab: str) -> str:
        if tab not in dict(TABS):
            raise ValueError(f"Unknown tab: {tab!r}")
        return tab

    def _build_panel(self, tab: str) -> Panel:
        if tab == EDITOR_TAB:
            return EditorPanel(self.service, self.editor_prompt, executor=self._executor)
        return GeneratorPanel(self.service, self.generator_prompt, executor=self._executor)


class SessionStore:
    """In-memory map from browser session id to its :class:`Shell`.

    Shells idle for longer than ``ttl_seconds`` are dropped on the next access.
    """

    def __init__(
        self,
        factory: Callable[[], Shell],
        *,
        ttl_seconds: float = 1800,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._factory = factory
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, Tuple[Shell, float]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get(self, session_id: Optional[str]) -> Tuple[str, Shell]:
        """Return ``(session_id, shell)``, creating a shell for unknown ids."""
        now = self._clock()
        with self._lock:
            self._evict_expired(now)
            entry = self._sessions.get(session_id) if session_id else None
            if entry is None:
                session_id = secrets.token_urlsafe(16)
                shell = self._factory()
                logger.debug("session.created", extra={"active_sessions": len(self._sessions) + 1})
            else:
                shell = entry[0]
            self._sessions[session_id] = (shell, now)
            return session_id, shell

    def _evict_expired(self, now: float) -> None:
        expired = [
            key for key, (_, last_seen) in self._sessions.items()
            if now - last_seen > self.ttl_seconds
        ]
        for key in expired:
            del self._sessions[key]
        if expired:
            logger.debug("session.evicted", extra={"count": len(expired)})


__all__ = ["EDITOR_TAB", "GENERATOR_TAB", "TABS", "SessionStore", "Shell"]
