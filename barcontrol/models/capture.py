"""
Photo Capture Models

States and payloads of the photo capture flow. A capture attempt moves
through:

    IDLE -> REQUESTING -> LIVE | DEVICE_INTENT | ERROR -> CAPTURED
                                                       -> IDLE (cancelled)

ERROR is not terminal while strategies remain: the next strategy in the
chain picks up from there.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class CaptureState(str, Enum):
    """Where a capture attempt currently is."""
    IDLE = "idle"                    # Nothing running (initial, or cancelled)
    REQUESTING = "requesting"        # Waiting for the platform to grant a device
    LIVE = "live"                    # Camera stream open, preview running
    DEVICE_INTENT = "device_intent"  # Native capture / file picker is open
    ERROR = "error"                  # Last strategy failed
    CAPTURED = "captured"            # Photo processed and ready for the draft


class CaptureConstraints(BaseModel):
    """What the live camera strategy asks the device for."""

    facing_mode: str = Field(
        default="environment",
        pattern="^(environment|user)$",
        description="environment = rear-facing camera"
    )
    aspect_ratio: float = Field(
        default=1.0,
        gt=0.0,
        description="Requested width / height"
    )
    ideal_width: int = Field(
        default=800,
        ge=64,
        description="Requested frame width in pixels"
    )


class CapturedPhoto(BaseModel):
    """A downsampled, re-encoded photo ready to attach to an item."""

    data_url: str = Field(
        ...,
        description="data:image/jpeg;base64,... payload stored on the item"
    )
    width: int = Field(ge=1)
    height: int = Field(ge=1)
    jpeg_quality: int = Field(ge=1, le=100)
    source: str = Field(
        default="unknown",
        description="Name of the strategy that produced the photo"
    )
    captured_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @field_validator('data_url')
    @classmethod
    def validate_data_url(cls, v: str) -> str:
        if not v.startswith("data:image/"):
            raise ValueError("Photo payload must be an image data URL")
        return v

    @property
    def size_bytes(self) -> int:
        """Bytes the payload occupies in storage."""
        return len(self.data_url.encode("ascii"))
