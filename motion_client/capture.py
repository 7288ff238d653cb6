"""
capture.py
----------
Main loop of the capture side. Wires the camera, the motion detector, the
shared observation and the upload scheduler together on one asyncio loop.

The camera delivers frames on its own thread. Motion is scored there, and the
result is handed to the main loop with ``call_soon_threadsafe``; nothing on the
acquisition thread touches the observation or the status line directly.
"""

import asyncio
import logging

from motion_client.camera import CameraError, Frame, MockCamera, VideoSource
from motion_client.config import (CAMERA_INDEX, DEBUG_MODE, DEMO_MODE, LATEST_FRAME_PATH,
                                  LOG_FILE, MOTION_THRESHOLD, SETTINGS_FILE,
                                  STATUS_MOTION_DETECTED)
from motion_client.cv_model import MotionDetector
from motion_client.scheduler import UploadScheduler
from motion_client.settings import ClientSettings
from motion_client.state import ObservationState
from motion_client.uploader import InvalidDestination, UploadClient, validate_destination
from motion_client.utils import setup_logging, write_latest_frame


class ClassifierFault(Exception):
    """The motion detector failed on a frame; the session cannot continue."""


def default_source_factory(on_frame):
    if DEMO_MODE:
        logging.info("Demo mode enabled, using mock camera")
        return MockCamera(on_frame)
    return VideoSource(CAMERA_INDEX, on_frame)


class CaptureSession:
    def __init__(self, loop, detector, state, scheduler, settings,
                 source_factory=default_source_factory, threshold=MOTION_THRESHOLD,
                 settings_path=SETTINGS_FILE):
        self._loop = loop
        self.detector = detector
        self.state = state
        self.scheduler = scheduler
        self.settings = settings
        self.source_factory = source_factory
        self.threshold = threshold
        self.settings_path = settings_path
        self.source = None
        self._session = 0
        self._first_frame = True

    @property
    def is_running(self):
        return self.source is not None

    def start(self, destination=None):
        """(Re)start capture. A new destination is saved when it is a valid address."""
        self.stop()

        if destination is not None:
            self.settings.destination_address = destination
            try:
                validate_destination(destination)
            except InvalidDestination as e:
                logging.warning(str(e))
            else:
                self.settings.save(self.settings_path)

        self._session += 1
        self._first_frame = True
        self.detector.reset()
        self.state.reset()
        self.state.set_status("")

        source = self.source_factory(self.on_frame)
        try:
            source.start()
        except CameraError as e:
            logging.error(f"Camera initialization failed: {e}")
            self.state.set_status(str(e))
            raise

        self.source = source
        self.scheduler.start(self.settings.duration, self.settings.destination_address)
        logging.info(f"Capture session {self._session} started")

    def stop(self):
        # Any in-flight upload completes on its own; the scheduler ignores its result
        if self.source is None:
            self.detector.reset()
            return
        self._session += 1
        source, self.source = self.source, None
        source.stop()
        # Reset only once the acquisition thread has stopped classifying
        self.detector.reset()
        self.scheduler.stop()
        logging.info("Capture session stopped")

    def on_frame(self, frame):
        """Frame callback, runs on the acquisition thread."""
        session = self._session
        frame = frame.copy()
        try:
            score, annotated = self.detector.classify(frame.image)
        except Exception as e:
            logging.exception("Motion detection failed")
            self._post(self._fail, ClassifierFault(f"Motion detection failed: {e}"), session)
            return

        published = Frame(annotated, frame.captured_at)
        if self._first_frame:
            self._first_frame = False
            self._post(self._publish, published, False, session)
        elif score >= self.threshold:
            logging.debug(f"Motion score {score:.4f}")
            self._post(self._publish, published, True, session)

    def _post(self, callback, *args):
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(callback, *args)

    def _publish(self, frame, motion, session):
        if session != self._session:
            return
        self.state.publish(frame, pending=motion)
        if motion:
            self.state.set_status(STATUS_MOTION_DETECTED)

    def _fail(self, fault, session):
        if session != self._session:
            return
        self.stop()
        self.state.set_status(str(fault))


class LatestFrameWriter:
    """Observation listener that keeps ``path`` in sync with the current frame."""

    def __init__(self, path=LATEST_FRAME_PATH):
        self.path = path
        self._last = None

    def __call__(self, observation):
        frame = observation.frame
        if frame is None or frame is self._last:
            return
        self._last = frame
        try:
            write_latest_frame(frame, self.path)
        except OSError as e:
            logging.warning(f"Could not update latest frame: {e}")


async def run(settings_path=SETTINGS_FILE, source_factory=default_source_factory):
    loop = asyncio.get_running_loop()
    settings = ClientSettings.load(settings_path)

    state = ObservationState()
    state.add_observation_listener(LatestFrameWriter())

    scheduler = UploadScheduler(loop, state, UploadClient(), settings, settings_path)
    session = CaptureSession(loop, MotionDetector(), state, scheduler, settings,
                             source_factory=source_factory, settings_path=settings_path)
    session.start()
    try:
        await asyncio.Event().wait()
    finally:
        session.stop()


def main():
    """Main capture loop"""
    setup_logging(LOG_FILE, logging.DEBUG if DEBUG_MODE else logging.INFO)
    logging.info("=" * 50)
    logging.info("Starting motion capture service...")
    logging.info(f"Motion threshold: {MOTION_THRESHOLD}")
    logging.info(f"Demo mode: {'ENABLED' if DEMO_MODE else 'DISABLED'}")
    logging.info("=" * 50)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logging.info("Stopping capture service...")
    except CameraError:
        logging.error("Capture service could not start")
        raise SystemExit(1)
    finally:
        logging.info("Capture service stopped")


if __name__ == "__main__":
    main()
