"""Editor and generator panels and the interaction state they own.

Each panel is a small state machine driven by the web layer. Submissions run
on a shared thread pool and hand back a :class:`concurrent.futures.Future`;
the panel's own lock guards its state, so the request thread rendering the
page and the worker finishing the call never see a half-updated state.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any, Optional, Tuple

from utils.providers.base import ImageService
from utils.vision.file_encoder import EncodedImage, encode_file

logger = logging.getLogger("imagestudio.ui.panels")

EDITOR_VALIDATION_MESSAGE = "Please upload an image and provide a prompt."
GENERATOR_VALIDATION_MESSAGE = "Please provide a prompt."
DEFAULT_ERROR_MESSAGE = "An unexpected error occurred."

_executor_lock = threading.Lock()
_executor: Optional[ThreadPoolExecutor] = None


def get_executor(max_workers: int = 4) -> ThreadPoolExecutor:
    """Return the process-wide pool that runs panel submissions."""
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="panel-submit",
            )
        return _executor


def shutdown_executor(wait: bool = True) -> None:
    global _executor
    with _executor_lock:
        if _executor is not None:
            _executor.shutdown(wait=wait)
            _executor = None


class PanelBusyError(RuntimeError):
    """Raised when a panel is asked to submit while a request is in flight."""


@dataclass
class InteractionState:
    prompt: str = ""
    is_loading: bool = False
    error: Optional[str] = None
    result: Optional[str] = None


def _resolved(value: Any) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future


class _PromptPanel:
    """Submit bookkeeping shared by both panels."""

    name = "panel"
    validation_message = DEFAULT_ERROR_MESSAGE

    def __init__(
        self,
        service: ImageService,
        prompt: str = "",
        *,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.service = service
        self._executor = executor
        self._lock = threading.RLock()
        self._state = InteractionState(prompt=prompt)

    @property
    def state(self) -> InteractionState:
        """A copy of the current state, safe to render."""
        with self._lock:
            return replace(self._state)

    @property
    def can_submit(self) -> bool:
        with self._lock:
            return not self._state.is_loading and self._has_prerequisites()

    def set_prompt(self, prompt: str) -> None:
        with self._lock:
            self._state.prompt = prompt

    def submit(self, prompt: Optional[str] = None) -> Future:
        """Validate inputs and start the service call.

        Returns a future resolving to the image reference, or to ``None`` when
        validation fails or the call errors; either way the outcome is also
        recorded on the panel state. Raises :class:`PanelBusyError` when a
        previous submission has not completed yet.
        """
        with self._lock:
            if self._state.is_loading:
                raise PanelBusyError("A request is already in progress.")
            if prompt is not None:
                self._state.prompt = prompt

            if not self._inputs_ready():
                self._state.error = self.validation_message
                logger.info("panel.submit.rejected", extra={"panel": self.name})
                return _resolved(None)

            self._state.is_loading = True
            self._state.error = None
            self._state.result = None
            request = self._request()

        logger.info("panel.submit.started", extra={"panel": self.name})
        executor = self._executor or get_executor()
        try:
            return executor.submit(self._complete, request)
        except RuntimeError:
            with self._lock:
                self._state.is_loading = False
            raise

    def _complete(self, request: Tuple[Any, ...]) -> Optional[str]:
        try:
            result = self._call(*request)
        except Exception as exc:
            message = str(exc) or DEFAULT_ERROR_MESSAGE
            logger.warning(
                "panel.submit.failed",
                extra={"panel": self.name, "error_type": type(exc).__name__, "error": message},
            )
            with self._lock:
                self._state.error = message
                self._state.is_loading = False
            return None

        with self._lock:
            self._state.result = result
            self._state.is_loading = False
        logger.info("panel.submit.succeeded", extra={"panel": self.name})
        return result

    # Subclass hooks. Called with the lock held, except _call.

    def _has_prerequisites(self) -> bool:
        return True

    def _inputs_ready(self) -> bool:
        return bool(self._state.prompt)

    def _request(self) -> Tuple[Any, ...]:
        return (self._state.prompt,)

    def _call(self, *request: Any) -> str:
        raise NotImplementedError


class EditorPanel(_PromptPanel):
    """Edit an uploaded image with a text prompt."""

    name = "editor"
    validation_message = EDITOR_VALIDATION_MESSAGE

    def __init__(self, service: ImageService, prompt: str = "", *, executor=None):
        super().__init__(service, prompt, executor=executor)
        self._image: Optional[EncodedImage] = None
        self._preview: Optional[str] = None

    @property
    def image(self) -> Optional[EncodedImage]:
        with self._lock:
            return self._image

    @property
    def preview(self) -> Optional[str]:
        """Data URL of the uploaded original, for display."""
        with self._lock:
            return self._preview

    def select_file(self, file: Any) -> EncodedImage:
        """Encode ``file`` and make it the image the next submit will edit."""
        with self._lock:
            self._state.result = None
            self._state.error = None

        encoded = encode_file(file)

        with self._lock:
            self._image = encoded
            self._preview = None if encoded.is_empty else encoded.to_data_url()
        logger.info(
            "panel.file.selected",
            extra={
                "panel": self.name,
                "mime_type": encoded.mime_type,
                "payload_chars": len(encoded.payload),
            },
        )
        return encoded

    def _has_prerequisites(self) -> bool:
        return self._image is not None

    def _inputs_ready(self) -> bool:
        return self._image is not None and not self._image.is_empty and bool(self._state.prompt)

    def _request(self) -> Tuple[Any, ...]:
        return (self._image, self._state.prompt)

    def _call(self, image: EncodedImage, prompt: str) -> str:
        return self.service.edit_image(image, prompt)


class GeneratorPanel(_PromptPanel):
    """Generate a new image from a text prompt."""

    name = "generator"
    validation_message = GENERATOR_VALIDATION_MESSAGE

    def _call(self, prompt: str) -> str:
        return self.service.generate_image(prompt)


__all__ = [
    "DEFAULT_ERROR_MESSAGE",
    "EDITOR_VALIDATION_MESSAGE",
    "GENERATOR_VALIDATION_MESSAGE",
    "EditorPanel",
    "GeneratorPanel",
    "InteractionState",
    "PanelBusyError",
    "get_executor",
    "shutdown_executor",
]
