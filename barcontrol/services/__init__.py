"""Services package."""

from barcontrol.services.capture import (
    CaptureAttempt,
    FilePickerStrategy,
    LiveCameraStrategy,
    PhotoCapturePipeline,
    PhotoProcessor,
    StaticImageStrategy,
)
from barcontrol.services.storage import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    PersistenceService,
    SaveOutcome,
)

__all__ = [
    # Capture services
    "CaptureAttempt",
    "FilePickerStrategy",
    "LiveCameraStrategy",
    "PhotoCapturePipeline",
    "PhotoProcessor",
    "StaticImageStrategy",
    # Storage services
    "FileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "PersistenceService",
    "SaveOutcome",
]
