from sorvx.reveal.markdown import render_markdown
from sorvx.reveal.records import AnimatedMessages, JsonFileStore, KeyValueStore, MemoryStore
from sorvx.reveal.scheduler import LoopScheduler, Scheduler
from sorvx.reveal.typing_effect import RevealHandle, TypingEffect

__all__ = [
    "AnimatedMessages",
    "JsonFileStore",
    "KeyValueStore",
    "LoopScheduler",
    "MemoryStore",
    "RevealHandle",
    "Scheduler",
    "TypingEffect",
    "render_markdown",
]
