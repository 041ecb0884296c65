from .models import BuildEvent, BuildEventType
from .emitter import BuildEventEmitter, NullEventEmitter
from .memory_emitter import MemoryQueueEventEmitter

__all__ = [
    "BuildEvent",
    "BuildEventType",
    "BuildEventEmitter",
    "NullEventEmitter",
    "MemoryQueueEventEmitter",
]
