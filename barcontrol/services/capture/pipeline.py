"""
Photo Capture Pipeline

Runs the strategy chain for one capture attempt and processes the result.

FLOW:
1. REQUESTING
2. For each strategy in order:
   - acquire bytes
   - downsample / re-encode them
   - on denial or an unreadable payload: ERROR, log, next strategy
   - on cancel: IDLE, return None
3. CAPTURED with the photo, or CaptureUnavailableError once the chain
   is exhausted

Whatever happens, the attempt does not hold a camera stream when
capture() returns or raises.
"""

from typing import Optional, Sequence

from barcontrol.audit import AuditLogger
from barcontrol.exceptions import (
    CaptureCancelledError,
    CaptureDeniedError,
    CaptureUnavailableError,
    PhotoProcessingError,
)
from barcontrol.ledger.draft import ItemDraft
from barcontrol.models.capture import CaptureState, CapturedPhoto
from barcontrol.services.capture.processor import PhotoProcessor
from barcontrol.services.capture.strategies import CaptureAttempt, CaptureStrategy


class PhotoCapturePipeline:
    """
    Strategy chain plus photo processing.

    Usage:
        pipeline = PhotoCapturePipeline(
            [LiveCameraStrategy(camera), FilePickerStrategy(picker)],
            PhotoProcessor(),
            audit_logger,
        )
        attempt = CaptureAttempt()
        photo = await pipeline.capture(attempt)   # UI calls attempt.press_shutter()
    """

    def __init__(
        self,
        strategies: Sequence[CaptureStrategy],
        processor: Optional[PhotoProcessor] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._strategies = list(strategies)
        self._processor = processor or PhotoProcessor()
        self._audit = audit_logger or AuditLogger()

    @property
    def strategy_names(self) -> list[str]:
        return [strategy.name for strategy in self._strategies]

    async def capture(self, attempt: Optional[CaptureAttempt] = None) -> Optional[CapturedPhoto]:
        """
        Acquire and process one photo.

        Returns:
            The processed photo, or None if the user cancelled

        Raises:
            CaptureUnavailableError: If every strategy failed
        """
        attempt = attempt or CaptureAttempt()
        failures: list[tuple[str, str]] = []

        attempt.transition(CaptureState.REQUESTING)
        self._audit.log_capture_started(self.strategy_names, attempt.correlation_id)

        try:
            for strategy in self._strategies:
                try:
                    raw = await strategy.acquire(attempt)
                    photo = self._processor.process(raw, source=strategy.name)
                except CaptureCancelledError:
                    attempt.transition(CaptureState.IDLE)
                    self._audit.log_capture_cancelled(attempt.correlation_id)
                    return None
                except (CaptureDeniedError, PhotoProcessingError) as e:
                    failures.append((strategy.name, str(e)))
                    attempt.error = str(e)
                    attempt.transition(CaptureState.ERROR)
                    self._audit.log_capture_strategy_failed(
                        strategy.name, str(e), attempt.correlation_id
                    )
                    continue
                finally:
                    attempt.release_stream()

                attempt.photo = photo
                attempt.error = None
                attempt.transition(CaptureState.CAPTURED)
                self._audit.log_capture_completed(
                    strategy=strategy.name,
                    width=photo.width,
                    height=photo.height,
                    size_bytes=photo.size_bytes,
                    correlation_id=attempt.correlation_id,
                )
                return photo
        finally:
            attempt.release_stream()

        if attempt.state != CaptureState.ERROR:
            attempt.transition(CaptureState.ERROR)
        self._audit.log_capture_unavailable(
            [f"{name}: {reason}" for name, reason in failures],
            attempt.correlation_id,
        )
        raise CaptureUnavailableError(failures)

    async def capture_into(
        self,
        draft: ItemDraft,
        attempt: Optional[CaptureAttempt] = None,
    ) -> bool:
        """
        Capture a photo and attach it to `draft`.

        Returns:
            True if a photo was attached, False if the user cancelled
            (the draft's previous photo is left alone)
        """
        photo = await self.capture(attempt)
        if photo is None:
            return False
        draft.attach_photo(photo.data_url)
        return True
