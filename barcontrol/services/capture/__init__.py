"""
Photo capture: strategy chain, attempt state machine and processing.
"""

from barcontrol.services.capture.pipeline import PhotoCapturePipeline
from barcontrol.services.capture.processor import PhotoProcessor, decode_data_url
from barcontrol.services.capture.strategies import (
    CameraDevice,
    CaptureAttempt,
    CaptureStrategy,
    CaptureStream,
    FilePicker,
    FilePickerStrategy,
    LiveCameraStrategy,
    StaticImageStrategy,
)

__all__ = [
    "PhotoCapturePipeline",
    "PhotoProcessor",
    "decode_data_url",
    "CameraDevice",
    "CaptureAttempt",
    "CaptureStrategy",
    "CaptureStream",
    "FilePicker",
    "FilePickerStrategy",
    "LiveCameraStrategy",
    "StaticImageStrategy",
]
