"""
Capture Strategies

A capture attempt tries an ordered list of strategies until one yields
image bytes:

1. LiveCameraStrategy - open a camera stream, wait for the shutter
2. FilePickerStrategy - hand off to the platform's native capture or a
   plain image picker
3. StaticImageStrategy - bytes that were already supplied (uploads, tests)

The platform side (camera hardware, picker dialog) sits behind the
CameraDevice / CaptureStream / FilePicker interfaces so the chain can be
driven by the Streamlit widgets or by test doubles.

A strategy signals "try the next one" with CaptureDeniedError and "the
user walked away" with CaptureCancelledError.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Optional, TypeVar
from uuid import UUID

from barcontrol.audit import create_correlation_id
from barcontrol.exceptions import CaptureCancelledError, CaptureDeniedError
from barcontrol.models.capture import CaptureConstraints, CaptureState, CapturedPhoto


T = TypeVar("T")


# =============================================================================
# PLATFORM INTERFACES
# =============================================================================

class CaptureStream(ABC):
    """An open camera stream. Must be closed exactly once."""

    @abstractmethod
    def read_frame(self) -> bytes:
        """Encoded bytes of the current frame."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Stop every track of the stream."""
        pass


class CameraDevice(ABC):
    """Grants camera streams."""

    @abstractmethod
    async def open_stream(self, constraints: CaptureConstraints) -> CaptureStream:
        """
        Request a stream matching `constraints`.

        Raises:
            CaptureDeniedError: Permission refused or no camera present
        """
        pass


class FilePicker(ABC):
    """Native capture intent or image file picker."""

    @abstractmethod
    async def pick_image(self) -> Optional[bytes]:
        """Bytes of the chosen image, or None if the user dismissed the picker."""
        pass


# =============================================================================
# CAPTURE ATTEMPT
# =============================================================================

class CaptureAttempt:
    """
    One run of the capture flow.

    Holds the state machine, the shutter and cancel signals, and the
    stream currently held, so the stream can be released no matter how
    the attempt ends. The UI keeps a reference to call press_shutter()
    or cancel().
    """

    def __init__(self, correlation_id: Optional[UUID] = None):
        self.correlation_id = correlation_id or create_correlation_id()
        self.state = CaptureState.IDLE
        self.transitions: list[CaptureState] = [CaptureState.IDLE]
        self.error: Optional[str] = None
        self.photo: Optional[CapturedPhoto] = None

        self._stream: Optional[CaptureStream] = None
        self._shutter = asyncio.Event()
        self._cancelled = asyncio.Event()

    def transition(self, state: CaptureState) -> None:
        self.state = state
        self.transitions.append(state)

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def holds_stream(self) -> bool:
        return self._stream is not None

    def hold_stream(self, stream: CaptureStream) -> None:
        """
        Take ownership of a granted stream.

        A stream granted after the attempt was cancelled is closed at once.
        """
        if self.is_cancelled:
            stream.close()
            raise CaptureCancelledError("Capture cancelled while the camera was starting")
        self.release_stream()
        self._stream = stream

    def release_stream(self) -> None:
        """Close the held stream, if any. Safe to call repeatedly."""
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.close()

    def press_shutter(self) -> None:
        self._shutter.set()

    def cancel(self) -> None:
        """Abandon the attempt. Releases the stream immediately."""
        self._cancelled.set()
        self.release_stream()

    async def wait_for_shutter(self) -> None:
        """
        Block until the shutter is pressed.

        Raises:
            CaptureCancelledError: If the attempt is cancelled first
        """
        await self.until_cancelled(self._shutter.wait())

    async def until_cancelled(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` unless the attempt is cancelled first.

        Raises:
            CaptureCancelledError: If cancel() wins the race
        """
        if self.is_cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise CaptureCancelledError("Capture cancelled")

        work = asyncio.ensure_future(awaitable)
        watcher = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {work, watcher},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            watcher.cancel()
            if not work.done():
                work.cancel()

        if work in done:
            return work.result()
        raise CaptureCancelledError("Capture cancelled")


# =============================================================================
# STRATEGIES
# =============================================================================

class CaptureStrategy(ABC):
    """One way of getting image bytes."""

    name: str = "strategy"

    @abstractmethod
    async def acquire(self, attempt: CaptureAttempt) -> bytes:
        """
        Produce raw image bytes.

        Raises:
            CaptureDeniedError: This strategy cannot deliver; try the next
            CaptureCancelledError: The user abandoned the capture
        """
        pass


class LiveCameraStrategy(CaptureStrategy):
    """Rear camera preview with an in-app shutter button."""

    name = "live_camera"

    def __init__(self, device: CameraDevice, constraints: Optional[CaptureConstraints] = None):
        self._device = device
        self._constraints = constraints or CaptureConstraints()

    async def acquire(self, attempt: CaptureAttempt) -> bytes:
        try:
            stream = await attempt.until_cancelled(self._device.open_stream(self._constraints))
        except (CaptureCancelledError, CaptureDeniedError):
            raise
        except Exception as e:
            raise CaptureDeniedError(f"Camera unavailable: {e}") from e

        attempt.hold_stream(stream)
        attempt.transition(CaptureState.LIVE)
        try:
            await attempt.wait_for_shutter()
            try:
                frame = stream.read_frame()
            except Exception as e:
                raise CaptureDeniedError(f"Could not read camera frame: {e}") from e
        finally:
            attempt.release_stream()

        if not frame:
            raise CaptureDeniedError("Camera returned an empty frame")
        return frame


class FilePickerStrategy(CaptureStrategy):
    """Native capture intent, or a plain image picker."""

    name = "file_picker"

    def __init__(self, picker: FilePicker):
        self._picker = picker

    async def acquire(self, attempt: CaptureAttempt) -> bytes:
        attempt.transition(CaptureState.DEVICE_INTENT)
        try:
            data = await attempt.until_cancelled(self._picker.pick_image())
        except (CaptureCancelledError, CaptureDeniedError):
            raise
        except Exception as e:
            raise CaptureDeniedError(f"Picker failed: {e}") from e

        if data is None:
            raise CaptureCancelledError("Picker dismissed")
        if not data:
            raise CaptureDeniedError("Picker returned an empty file")
        return data


class StaticImageStrategy(CaptureStrategy):
    """Bytes supplied up front, e.g. by an upload widget."""

    name = "static_image"

    def __init__(self, image_bytes: Optional[bytes], name: Optional[str] = None):
        self._image_bytes = image_bytes
        if name:
            self.name = name

    async def acquire(self, attempt: CaptureAttempt) -> bytes:
        if not self._image_bytes:
            raise CaptureDeniedError("No image supplied")
        return self._image_bytes
