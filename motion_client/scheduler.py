"""
scheduler.py
------------
Timer driven upload scheduler. Runs on the asyncio main loop and never has
more than one upload outstanding: the timer is stopped while an upload is in
flight and restarted once its result has been applied.

States:
    STOPPED    no capture session
    IDLE       timer armed, waiting for a pending frame
    UPLOADING  one upload in flight, timer stopped
    DISABLED   destination address invalid, timer stopped until restart
"""

import logging
from enum import Enum

from motion_client.config import (SETTINGS_FILE, STATUS_CADENCE_CHANGED,
                                  STATUS_INVALID_DESTINATION, STATUS_UPLOADING)
from motion_client.uploader import InvalidDestination, UploadError, validate_destination


class SchedulerState(Enum):
    STOPPED = "stopped"
    IDLE = "idle"
    UPLOADING = "uploading"
    DISABLED = "disabled"


class PeriodicTimer:
    """Repeating timer on an asyncio loop. Changing the interval of a running timer restarts it."""

    def __init__(self, loop, interval, callback):
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._handle = None

    @property
    def interval(self):
        return self._interval

    @interval.setter
    def interval(self, seconds):
        self._interval = seconds
        if self.is_running:
            self.start()

    @property
    def is_running(self):
        return self._handle is not None

    def start(self):
        self.stop()
        self._handle = self._loop.call_later(self._interval, self._fire)

    def stop(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self):
        self._handle = self._loop.call_later(self._interval, self._fire)
        self._callback()


class UploadScheduler:
    def __init__(self, loop, state, client, settings, settings_path=SETTINGS_FILE):
        self._loop = loop
        self.state = state
        self.client = client
        self.settings = settings
        self.settings_path = settings_path
        self.timer = PeriodicTimer(loop, settings.duration, self.tick)
        self.scheduler_state = SchedulerState.STOPPED
        self.destination = settings.destination_address
        self._session = 0
        self._task = None

    @property
    def interval(self):
        return self.timer.interval

    def start(self, interval=None, destination=None):
        """Begin a new session. Results of uploads from earlier sessions are ignored."""
        self._session += 1
        self.timer.stop()
        self.timer.interval = interval if interval is not None else self.settings.duration
        if destination is not None:
            self.destination = destination
        self.scheduler_state = SchedulerState.IDLE
        self.timer.start()
        logging.info(f"Upload scheduler started, interval {self.timer.interval}s")

    def stop(self):
        self._session += 1
        self.timer.stop()
        self.scheduler_state = SchedulerState.STOPPED
        logging.info("Upload scheduler stopped")

    def tick(self):
        """Timer callback. Returns the upload task when an upload was started."""
        if self.scheduler_state != SchedulerState.IDLE:
            return None
        if self.state.frame is None or not self.state.pending_upload:
            return None

        try:
            destination = validate_destination(self.destination)
        except InvalidDestination as e:
            logging.warning(str(e))
            self.timer.stop()
            self.scheduler_state = SchedulerState.DISABLED
            self.state.set_status(STATUS_INVALID_DESTINATION)
            return None

        self.timer.stop()
        self.scheduler_state = SchedulerState.UPLOADING
        snapshot = self.state.frame.copy()
        self.state.set_status(STATUS_UPLOADING)
        self._task = self._loop.create_task(self._upload(snapshot, destination, self._session))
        return self._task

    async def _upload(self, snapshot, destination, session):
        try:
            config = await self._loop.run_in_executor(None, self.client.upload, snapshot, destination)
        except UploadError as e:
            self._finish_failed(e, session)
        except Exception as e:
            logging.exception("Unexpected error during upload")
            self._finish_failed(e, session)
        else:
            self._finish_succeeded(config, destination, session)

    def _finish_failed(self, error, session):
        self.state.set_status(str(error))
        if session != self._session:
            logging.info("Discarding failed upload from a previous session")
            return
        # A failed frame is dropped, not retried
        self.state.clear_pending()
        self.scheduler_state = SchedulerState.IDLE
        self.timer.start()

    def _finish_succeeded(self, config, destination, session):
        self.state.set_status("")
        if session != self._session:
            logging.info("Discarding upload result from a previous session")
            return
        self.state.clear_pending()

        if config.duration != self.timer.interval:
            self.state.set_status(STATUS_CADENCE_CHANGED.format(duration=config.duration))
            self.settings.duration = config.duration
            self.timer.interval = config.duration
        self.settings.destination_address = destination
        try:
            self.settings.save(self.settings_path)
        except OSError as e:
            logging.error(f"Failed to save settings: {e}")

        self.scheduler_state = SchedulerState.IDLE
        self.timer.start()
