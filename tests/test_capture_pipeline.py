"""
Tests for photo capture

Camera and picker are test doubles; async flows are driven with
asyncio.run.
"""

import asyncio
import base64
import io

import pytest
from PIL import Image

from barcontrol.exceptions import (
    CaptureCancelledError,
    CaptureDeniedError,
    CaptureUnavailableError,
    PhotoProcessingError,
)
from barcontrol.ledger import ItemDraft
from barcontrol.models import AuditEventType, CaptureConstraints, CaptureState
from barcontrol.services.capture import (
    CameraDevice,
    CaptureAttempt,
    CaptureStream,
    FilePicker,
    FilePickerStrategy,
    LiveCameraStrategy,
    PhotoCapturePipeline,
    PhotoProcessor,
    StaticImageStrategy,
    decode_data_url,
)


class FakeStream(CaptureStream):
    def __init__(self, frame: bytes, error: Exception = None):
        self.frame = frame
        self.error = error
        self.close_calls = 0

    def read_frame(self) -> bytes:
        if self.error:
            raise self.error
        return self.frame

    def close(self) -> None:
        self.close_calls += 1


class FakeCamera(CameraDevice):
    def __init__(
        self,
        frame: bytes = b"",
        deny: bool = False,
        delay: float = 0.0,
        error: Exception = None,
        frame_error: Exception = None,
    ):
        self.frame = frame
        self.deny = deny
        self.delay = delay
        self.error = error
        self.frame_error = frame_error
        self.streams: list[FakeStream] = []
        self.constraints = None

    async def open_stream(self, constraints):
        self.constraints = constraints
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.deny:
            raise CaptureDeniedError("Permission denied")
        if self.error:
            raise self.error
        stream = FakeStream(self.frame, self.frame_error)
        self.streams.append(stream)
        return stream


class FakePicker(FilePicker):
    def __init__(self, data, error: Exception = None):
        self.data = data
        self.error = error
        self.calls = 0

    async def pick_image(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.data


async def wait_for_state(attempt: CaptureAttempt, state: CaptureState) -> None:
    for _ in range(100):
        if attempt.state == state:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"attempt never reached {state}")


@pytest.fixture
def pipeline_factory(audit_logger):
    def _make(*strategies, processor=None):
        return PhotoCapturePipeline(list(strategies), processor or PhotoProcessor(), audit_logger)
    return _make


class TestPhotoProcessor:
    """Tests for downsampling and re-encoding."""

    def test_downsamples_to_max_dimension(self, jpeg_bytes):
        """Test that the long edge is capped and the aspect ratio kept."""
        photo = PhotoProcessor(max_dimension=800).process(jpeg_bytes)
        assert (photo.width, photo.height) == (800, 600)
        assert photo.data_url.startswith("data:image/jpeg;base64,")
        assert photo.jpeg_quality == 70

    def test_output_is_a_readable_jpeg(self, jpeg_bytes):
        photo = PhotoProcessor().process(jpeg_bytes)
        with Image.open(io.BytesIO(decode_data_url(photo.data_url))) as image:
            assert image.format == "JPEG"
            assert image.size == (photo.width, photo.height)

    def test_small_image_is_not_enlarged(self, make_image):
        photo = PhotoProcessor().process(make_image(width=200, height=100))
        assert (photo.width, photo.height) == (200, 100)

    def test_png_with_alpha_is_flattened(self, make_image):
        """Test that transparent PNGs become JPEGs."""
        photo = PhotoProcessor().process(make_image(image_format="PNG", mode="RGBA"))
        assert photo.data_url.startswith("data:image/jpeg;base64,")

    def test_size_cap_is_respected(self, noisy_jpeg_bytes):
        """Test that quality and size step down until the photo fits."""
        processor = PhotoProcessor(max_photo_bytes=20_000)
        photo = processor.process(noisy_jpeg_bytes)
        assert photo.size_bytes <= 20_000
        assert photo.jpeg_quality < 70 or photo.width < 800

    @pytest.mark.parametrize("raw", [b"", b"not an image"])
    def test_unreadable_payload(self, raw):
        with pytest.raises(PhotoProcessingError):
            PhotoProcessor().process(raw)

    def test_decode_data_url_rejects_garbage(self):
        with pytest.raises(PhotoProcessingError):
            decode_data_url("data:image/jpeg;base64,***")

    def test_decode_data_url(self):
        assert decode_data_url("data:image/jpeg;base64," + base64.b64encode(b"abc").decode()) == b"abc"


class TestCaptureAttempt:
    """Tests for stream ownership."""

    def test_release_is_idempotent(self):
        """Test that a held stream is closed exactly once."""
        attempt = CaptureAttempt()
        stream = FakeStream(b"")
        attempt.hold_stream(stream)
        attempt.release_stream()
        attempt.release_stream()
        attempt.cancel()
        assert stream.close_calls == 1
        assert not attempt.holds_stream

    def test_stream_granted_after_cancel_is_closed(self):
        """Test that a late grant does not leak the camera."""
        attempt = CaptureAttempt()
        attempt.cancel()
        stream = FakeStream(b"")
        with pytest.raises(CaptureCancelledError):
            attempt.hold_stream(stream)
        assert stream.close_calls == 1

    def test_wait_for_shutter_after_cancel(self):
        async def scenario():
            attempt = CaptureAttempt()
            attempt.cancel()
            await attempt.wait_for_shutter()

        with pytest.raises(CaptureCancelledError):
            asyncio.run(scenario())


class TestLiveCamera:
    """Tests for the live camera strategy."""

    def test_capture_with_shutter(self, pipeline_factory, jpeg_bytes, event_types):
        """Test Idle -> Requesting -> Live -> Captured."""
        camera = FakeCamera(frame=jpeg_bytes)
        pipeline = pipeline_factory(LiveCameraStrategy(camera))

        async def scenario():
            attempt = CaptureAttempt()
            task = asyncio.create_task(pipeline.capture(attempt))
            await wait_for_state(attempt, CaptureState.LIVE)
            attempt.press_shutter()
            return attempt, await task

        attempt, photo = asyncio.run(scenario())

        assert photo.source == "live_camera"
        assert max(photo.width, photo.height) <= 800
        assert attempt.state == CaptureState.CAPTURED
        assert attempt.transitions == [
            CaptureState.IDLE,
            CaptureState.REQUESTING,
            CaptureState.LIVE,
            CaptureState.CAPTURED,
        ]
        assert camera.streams[0].close_calls == 1
        assert not attempt.holds_stream
        assert AuditEventType.CAPTURE_COMPLETED in event_types()

    def test_requests_rear_square_camera(self, pipeline_factory, jpeg_bytes):
        camera = FakeCamera(frame=jpeg_bytes)
        attempt = CaptureAttempt()
        attempt.press_shutter()
        asyncio.run(pipeline_factory(LiveCameraStrategy(camera)).capture(attempt))
        assert camera.constraints == CaptureConstraints(facing_mode="environment", aspect_ratio=1.0)

    def test_cancel_while_live_releases_stream(self, pipeline_factory, jpeg_bytes, event_types):
        """Test that abandoning the preview frees the camera and returns to idle."""
        camera = FakeCamera(frame=jpeg_bytes)
        pipeline = pipeline_factory(LiveCameraStrategy(camera))

        async def scenario():
            attempt = CaptureAttempt()
            task = asyncio.create_task(pipeline.capture(attempt))
            await wait_for_state(attempt, CaptureState.LIVE)
            attempt.cancel()
            return attempt, await task

        attempt, photo = asyncio.run(scenario())

        assert photo is None
        assert attempt.state == CaptureState.IDLE
        assert camera.streams[0].close_calls == 1
        assert AuditEventType.CAPTURE_CANCELLED in event_types()

    def test_cancel_while_requesting(self, pipeline_factory, jpeg_bytes):
        """Test that cancelling before the camera answers opens no stream."""
        camera = FakeCamera(frame=jpeg_bytes, delay=10)
        picker = FakePicker(jpeg_bytes)
        pipeline = pipeline_factory(LiveCameraStrategy(camera), FilePickerStrategy(picker))

        async def scenario():
            attempt = CaptureAttempt()
            task = asyncio.create_task(pipeline.capture(attempt))
            await wait_for_state(attempt, CaptureState.REQUESTING)
            await asyncio.sleep(0)
            attempt.cancel()
            return attempt, await task

        attempt, photo = asyncio.run(scenario())

        assert photo is None
        assert attempt.state == CaptureState.IDLE
        assert camera.streams == []
        assert picker.calls == 0


class TestFallback:
    """Tests for the strategy chain."""

    def test_denied_camera_falls_back_to_picker(self, pipeline_factory, jpeg_bytes, event_types):
        """Test Requesting -> Error -> DeviceIntent -> Captured."""
        pipeline = pipeline_factory(
            LiveCameraStrategy(FakeCamera(deny=True)),
            FilePickerStrategy(FakePicker(jpeg_bytes)),
        )
        attempt = CaptureAttempt()

        photo = asyncio.run(pipeline.capture(attempt))

        assert photo.source == "file_picker"
        assert attempt.transitions == [
            CaptureState.IDLE,
            CaptureState.REQUESTING,
            CaptureState.ERROR,
            CaptureState.DEVICE_INTENT,
            CaptureState.CAPTURED,
        ]
        assert AuditEventType.CAPTURE_STRATEGY_FAILED in event_types()

    def test_camera_error_falls_back_to_picker(self, pipeline_factory, jpeg_bytes):
        """Test that any device error, not only a denial, moves to the next strategy."""
        pipeline = pipeline_factory(
            LiveCameraStrategy(FakeCamera(error=RuntimeError("NotReadableError: device busy"))),
            FilePickerStrategy(FakePicker(jpeg_bytes)),
        )
        attempt = CaptureAttempt()

        photo = asyncio.run(pipeline.capture(attempt))

        assert photo.source == "file_picker"
        assert CaptureState.ERROR in attempt.transitions

    def test_frame_error_releases_stream_and_falls_back(self, pipeline_factory, jpeg_bytes):
        camera = FakeCamera(frame=jpeg_bytes, frame_error=RuntimeError("track ended"))
        pipeline = pipeline_factory(LiveCameraStrategy(camera), StaticImageStrategy(jpeg_bytes))
        attempt = CaptureAttempt()
        attempt.press_shutter()

        photo = asyncio.run(pipeline.capture(attempt))

        assert photo.source == "static_image"
        assert camera.streams[0].close_calls == 1

    def test_picker_error_falls_back(self, pipeline_factory, jpeg_bytes):
        pipeline = pipeline_factory(
            FilePickerStrategy(FakePicker(None, error=ValueError("bad intent"))),
            StaticImageStrategy(jpeg_bytes, name="upload"),
        )
        assert asyncio.run(pipeline.capture()).source == "upload"

    def test_unreadable_photo_falls_back(self, pipeline_factory, jpeg_bytes):
        """Test that a payload that cannot be decoded moves to the next strategy."""
        pipeline = pipeline_factory(
            StaticImageStrategy(b"garbage", name="camera"),
            StaticImageStrategy(jpeg_bytes, name="upload"),
        )
        photo = asyncio.run(pipeline.capture())
        assert photo.source == "upload"

    def test_missing_static_image_falls_back(self, pipeline_factory, jpeg_bytes):
        pipeline = pipeline_factory(
            StaticImageStrategy(None, name="camera"),
            StaticImageStrategy(jpeg_bytes, name="upload"),
        )
        assert asyncio.run(pipeline.capture()).source == "upload"

    def test_every_strategy_fails(self, pipeline_factory, event_types):
        """Test that an exhausted chain is reported to the user."""
        pipeline = pipeline_factory(
            LiveCameraStrategy(FakeCamera(deny=True)),
            FilePickerStrategy(FakePicker(b"not an image")),
        )
        attempt = CaptureAttempt()

        with pytest.raises(CaptureUnavailableError) as excinfo:
            asyncio.run(pipeline.capture(attempt))

        assert [name for name, _ in excinfo.value.failures] == ["live_camera", "file_picker"]
        assert attempt.state == CaptureState.ERROR
        assert AuditEventType.CAPTURE_UNAVAILABLE in event_types()

    def test_empty_chain(self, pipeline_factory):
        with pytest.raises(CaptureUnavailableError):
            asyncio.run(pipeline_factory().capture())

    def test_dismissed_picker_is_cancel(self, pipeline_factory, jpeg_bytes):
        """Test that closing the picker stops the chain without an error."""
        static = StaticImageStrategy(jpeg_bytes)
        pipeline = pipeline_factory(FilePickerStrategy(FakePicker(None)), static)
        attempt = CaptureAttempt()

        assert asyncio.run(pipeline.capture(attempt)) is None
        assert attempt.state == CaptureState.IDLE


class TestCaptureIntoDraft:
    """Tests for attaching photos to drafts."""

    def test_captured_photo_goes_to_draft(self, pipeline_factory, jpeg_bytes):
        draft = ItemDraft(name="Beer", price="10")
        pipeline = pipeline_factory(StaticImageStrategy(jpeg_bytes))

        assert asyncio.run(pipeline.capture_into(draft)) is True
        assert draft.photo.startswith("data:image/jpeg;base64,")

    def test_cancel_leaves_draft_untouched(self, pipeline_factory, photo):
        """Test that a cancelled capture keeps the draft's current photo."""
        draft = ItemDraft(name="Beer", price="10", photo=photo)
        pipeline = pipeline_factory(FilePickerStrategy(FakePicker(None)))

        assert asyncio.run(pipeline.capture_into(draft)) is False
        assert draft.photo == photo
