"""
state.py
--------
The shared observation: the single most recent frame plus its pending-upload
flag, and the status line shown to the user. Only the main loop mutates it;
the acquisition thread posts its updates there instead.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from motion_client.camera import Frame


@dataclass
class Observation:
    frame: Optional[Frame] = None
    pending_upload: bool = False


class ObservationState:
    def __init__(self):
        self._observation = Observation()
        self._status = ""
        self._observation_listeners: List[Callable[[Observation], None]] = []
        self._status_listeners: List[Callable[[str], None]] = []

    @property
    def frame(self):
        return self._observation.frame

    @property
    def pending_upload(self):
        return self._observation.pending_upload

    @property
    def status(self):
        return self._status

    def add_observation_listener(self, listener):
        self._observation_listeners.append(listener)

    def add_status_listener(self, listener):
        self._status_listeners.append(listener)

    def publish(self, frame, pending=False):
        """Replace the current frame. ``pending`` only ever raises the flag."""
        self._observation = Observation(frame, self._observation.pending_upload or pending)
        self._notify_observation()

    def clear_pending(self):
        if not self._observation.pending_upload:
            return
        self._observation = Observation(self._observation.frame, False)
        self._notify_observation()

    def reset(self):
        self._observation = Observation()
        self._notify_observation()

    def set_status(self, text):
        self._status = text
        if text:
            logging.info(f"Status: {text}")
        for listener in self._status_listeners:
            listener(text)

    def _notify_observation(self):
        for listener in self._observation_listeners:
            listener(self._observation)
