"""
QR attendance scan session.

    IDLE --start()--> SCANNING --detection--> PROCESSING --> RESULT
      ^                                                        |
      +------------------------- reset() ----------------------+

The camera stream is the one resource this module owns. It is acquired in
start() and released in stop(), and stop() runs on every way out: a
detection, a camera failure, close(), or leaving an `async with` block.
stop() sets the cancellation token first so a frame decoded after it is
dropped, then cancels the decode task and stops every track.

Detections are debounced: the same payload within the cooldown of the last
accepted one is ignored, and nothing is accepted while a scan is being
submitted. start() and reset() clear the debounce memory.

A scan that cannot be processed still leaves PROCESSING. A rejected
credential is kept on `error` (see `auth_required`) so the caller can send
the user to sign in; a frame decoded in the background cannot raise it.
"""

import asyncio
import time
from typing import Callable, Optional, Protocol

from medbook.client.api import SCAN_NETWORK_FAILURE, BookingClient
from medbook.client.errors import AuthenticationRequired, BookingClientError, CameraError
from medbook.client.notifier import LogNotifier, Notifier
from medbook.core.config import get_settings
from medbook.core.logging import get_logger
from medbook.domain.debounce import ScanDebouncer
from medbook.schemas.qr_code import ScanFailure, ScanOutcome

SIGN_IN_REQUIRED = "Please sign in to mark attendance"

logger = get_logger(__name__)


class MediaTrack(Protocol):
    ready_state: str  # "live" or "ended"

    def stop(self) -> None: ...


class MediaStream(Protocol):
    def get_tracks(self) -> list[MediaTrack]: ...


class Camera(Protocol):
    async def open(self) -> MediaStream:
        """Acquire a video stream. Raises a CameraError subclass on failure."""
        ...


class FrameDecoder(Protocol):
    async def decode(self, stream: MediaStream) -> Optional[str]:
        """Wait for the next frame and return a QR payload, or None."""
        ...


class ScanState:
    IDLE = "idle"
    SCANNING = "scanning"
    PROCESSING = "processing"
    RESULT = "result"


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class ScanSession:
    def __init__(
        self,
        client: BookingClient,
        camera: Camera,
        decoder: FrameDecoder,
        *,
        event_id: Optional[int] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], float] = monotonic_ms,
        cooldown_ms: Optional[int] = None,
    ):
        self.client = client
        self.camera = camera
        self.decoder = decoder
        self.event_id = event_id
        self.notifier = notifier or LogNotifier()
        self.clock = clock
        self.debouncer = ScanDebouncer(cooldown_ms if cooldown_ms is not None else get_settings().SCAN_DEBOUNCE_MS)

        self.state = ScanState.IDLE
        self.result: Optional[ScanOutcome] = None
        self.error: Optional[Exception] = None
        self._stream: Optional[MediaStream] = None
        self._token: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "ScanSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def auth_required(self) -> bool:
        return isinstance(self.error, AuthenticationRequired)

    @property
    def camera_active(self) -> bool:
        return self._stream is not None

    async def start(self) -> None:
        """Open the camera and begin decoding frames."""
        if self.state in (ScanState.SCANNING, ScanState.PROCESSING):
            return

        self.result = None
        self.error = None
        self.debouncer.reset()
        self.state = ScanState.SCANNING

        try:
            self._stream = await self.camera.open()
        except CameraError as e:
            logger.warning("camera_start_failed", error_type=type(e).__name__, error=str(e))
            self.notifier.error(e.user_message)
            await self.stop()
            self.state = ScanState.IDLE
            raise

        self._token = asyncio.Event()
        self._task = asyncio.create_task(self._decode_loop(self._stream, self._token))
        logger.info("scanner_started", event_id=self.event_id)

    async def _decode_loop(self, stream: MediaStream, token: asyncio.Event) -> None:
        while not token.is_set():
            payload = await self.decoder.decode(stream)
            if token.is_set():
                return
            if not payload:
                continue
            try:
                await self.handle_detection(payload)
            except AuthenticationRequired:
                # recorded on self.error by handle_detection
                return
            except Exception as e:
                logger.exception("scan_processing_failed")
                self.error = e
                self.notifier.error(SCAN_NETWORK_FAILURE)
                return

    async def stop(self) -> None:
        """Release the camera. Safe to call in any state, any number of times."""
        if self._token is not None:
            self._token.set()
            self._token = None

        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        stream, self._stream = self._stream, None
        if stream is not None:
            for track in stream.get_tracks():
                track.stop()
            logger.info("camera_released")

        if self.state == ScanState.SCANNING:
            self.state = ScanState.IDLE

    async def handle_detection(self, payload: str) -> Optional[ScanOutcome]:
        """
        Process a decoded payload. Returns the outcome, or None when the
        payload was suppressed as a duplicate or a scan is in flight.
        """
        if self.state == ScanState.PROCESSING:
            return None
        if not self.debouncer.accept(payload, self.clock()):
            logger.debug("scan_suppressed", reason="duplicate_within_cooldown")
            return None

        self.state = ScanState.PROCESSING
        await self.stop()

        try:
            try:
                outcome = await self.client.submit_scan(payload, self.event_id)
            except AuthenticationRequired as e:
                logger.warning("scan_auth_required", event_id=self.event_id)
                self.error = e
                self.notifier.error(SIGN_IN_REQUIRED)
                raise
            except BookingClientError as e:
                outcome = ScanFailure(message=e.message or SCAN_NETWORK_FAILURE)

            self.result = outcome
            self.state = ScanState.RESULT
        finally:
            if self.state == ScanState.PROCESSING:
                self.state = ScanState.IDLE

        if outcome.success:
            self.notifier.success("Attendance marked successfully!")
        else:
            self.notifier.error(outcome.message)
        logger.info("scan_processed", success=outcome.success)
        return outcome

    async def reset(self) -> None:
        await self.stop()
        self.result = None
        self.error = None
        self.debouncer.reset()
        self.state = ScanState.IDLE

    async def close(self) -> None:
        await self.stop()
        self.state = ScanState.IDLE
