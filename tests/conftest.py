"""
Shared fixtures.

No real devices and no disk outside tmp_path: stores are in memory
unless a test asks for a directory, and images are generated with PIL.
"""

import io

import pytest
from PIL import Image

from barcontrol.audit import AuditLogger
from barcontrol.services.storage import MemoryKeyValueStore, PersistenceService


TINY_PHOTO = "data:image/jpeg;base64,/9j/4AAQSkZJRg=="


def _encode(image: Image.Image, image_format: str) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def make_image():
    """Factory for encoded test images."""
    def _make(width=1600, height=1200, color=(200, 120, 40), image_format="JPEG", mode="RGB"):
        if mode == "RGBA":
            color = color + (128,)
        return _encode(Image.new(mode, (width, height), color), image_format)
    return _make


@pytest.fixture
def jpeg_bytes(make_image):
    return make_image()


@pytest.fixture
def noisy_jpeg_bytes():
    """A photo that compresses badly, to exercise the size cap."""
    noise = Image.effect_noise((800, 800), 120).convert("RGB")
    return _encode(noise, "JPEG")


@pytest.fixture
def photo():
    return TINY_PHOTO


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def persistence(store, audit_logger):
    return PersistenceService(store, audit_logger=audit_logger)


@pytest.fixture
def event_types(audit_logger):
    """Types of the events logged so far, oldest first."""
    def _types():
        return [event.event_type for event in audit_logger.recent_events]
    return _types
