"""Typewriter reveal of assistant messages.

A ``TypingEffect`` belongs to one rendered message. Depending on its props it
either passes live-stream text straight through, shows text instantly because
this message was already revealed once, or reveals it one character per
timer step and then records it as revealed.

Steps run one at a time on a ``Scheduler``. Every ``start()`` returns a
``RevealHandle``; calling it (or ``dispose()``) cancels the pending step, after
which nothing touches the effect's state.
"""
import logging
import random
from collections.abc import Callable

from sorvx.reveal.markdown import render_markdown
from sorvx.reveal.records import AnimatedMessages
from sorvx.reveal.scheduler import Cancellable, LoopScheduler, Scheduler

logger = logging.getLogger(__name__)

DEFAULT_SPEED_MS = 30
DEFAULT_JITTER_MS = 5


class RevealHandle:
    """Cancels one run of a TypingEffect; calling the handle is the same as cancel()."""

    def __init__(self, on_cancel: Callable[["RevealHandle"], None] | None = None):
        self.cancelled = False
        self.timer: Cancellable | None = None
        self.on_cancel = on_cancel

    @property
    def pending(self) -> bool:
        return not self.cancelled and self.timer is not None

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        if self.on_cancel is not None:
            self.on_cancel(self)

    __call__ = cancel


class TypingEffect:
    def __init__(
        self,
        text: str,
        message_id: str,
        chat_id: str,
        records: AnimatedMessages,
        scheduler: Scheduler | None = None,
        *,
        speed: float = DEFAULT_SPEED_MS,
        jitter: float = DEFAULT_JITTER_MS,
        is_streaming: bool = False,
        on_render: Callable[[str], None] | None = None,
        on_finish: Callable[[], None] | None = None,
        rng: random.Random | None = None,
    ):
        self.text = text
        self.message_id = message_id
        self.chat_id = chat_id
        self.records = records
        self.scheduler = scheduler or LoopScheduler()
        self.speed = speed
        self.jitter = jitter
        self.is_streaming = is_streaming
        self.on_render = on_render
        self.on_finish = on_finish
        self.rng = rng or random.Random()

        self.displayed_text = ""
        self.is_animating = False
        self.disposed = False
        self._handle: RevealHandle | None = None

    @property
    def html(self) -> str:
        return render_markdown(self.displayed_text)

    def next_delay(self) -> float:
        """Seconds until the next step: speed ± jitter milliseconds."""
        delay_ms = self.speed + self.rng.uniform(-self.jitter, self.jitter)
        return max(delay_ms, 0.0) / 1000.0

    def start(self) -> RevealHandle:
        if self.disposed:
            raise RuntimeError("TypingEffect used after dispose()")
        if self._handle is not None:
            self._handle.cancel()
        handle = self._handle = RevealHandle(on_cancel=self._cancelled)

        if self.is_streaming:
            self._show(self.text, animating=True)
            return handle

        if self.records.is_animated(self.chat_id, self.message_id):
            self._show(self.text, animating=False)
            if self.on_finish is not None:
                self.on_finish()
            return handle

        self._animate(handle, self.text)
        return handle

    def update(self, text: str | None = None, is_streaming: bool | None = None) -> RevealHandle:
        """Apply new props and re-run the effect."""
        if self.is_streaming and is_streaming is False:
            # The user watched this text arrive live; don't replay it.
            self.records.mark_animated(self.chat_id, self.message_id)
        if text is not None:
            self.text = text
        if is_streaming is not None:
            self.is_streaming = is_streaming
        return self.start()

    def dispose(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.disposed = True

    def _cancelled(self, handle: RevealHandle) -> None:
        # A stale handle must not reset a newer run.
        if self._handle is handle:
            self._handle = None
            self.is_animating = False

    def _show(self, text: str, animating: bool) -> None:
        self.displayed_text = text
        self.is_animating = animating
        if self.on_render is not None:
            self.on_render(text)

    def _animate(self, handle: RevealHandle, full_text: str) -> None:
        index = 0

        def step() -> None:
            nonlocal index
            if handle.cancelled:
                return
            handle.timer = None
            if index <= len(full_text):
                self._show(full_text[:index], animating=True)
                index += 1
                handle.timer = self.scheduler.call_later(self.next_delay(), step)
                return
            self.is_animating = False
            self.records.mark_animated(self.chat_id, self.message_id)
            logger.debug("Revealed message %s of chat %s", self.message_id, self.chat_id)
            if self.on_finish is not None:
                self.on_finish()

        self.is_animating = True
        step()
