"""
settings.py
-----------
Persisted client settings: the upload cadence negotiated with the server and
the destination address of the image store. Loaded once at startup and written
back explicitly with ``save``.
"""

import json
import logging
import os
from dataclasses import dataclass

from motion_client.config import DEFAULT_DURATION, DEFAULT_SITE_URL, SETTINGS_FILE
from motion_client.utils import ensure_directory


@dataclass
class ClientSettings:
    duration: int = DEFAULT_DURATION
    destination_address: str = DEFAULT_SITE_URL

    @classmethod
    def load(cls, path=SETTINGS_FILE):
        """Load settings from ``path``, falling back to defaults for anything missing or invalid."""
        if not os.path.exists(path):
            logging.info(f"No settings file at {path}, using defaults")
            return cls()

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logging.warning(f"Failed to read settings from {path}: {e}")
            return cls()

        if not isinstance(data, dict):
            logging.warning(f"Ignoring malformed settings in {path}")
            return cls()

        settings = cls()
        duration = data.get("Duration")
        if isinstance(duration, int) and not isinstance(duration, bool) and duration > 0:
            settings.duration = duration
        elif duration is not None:
            logging.warning(f"Ignoring invalid Duration {duration!r} in {path}")

        # Older settings files stored the address under AzureSiteUrl
        address = data.get("DestinationAddress", data.get("AzureSiteUrl"))
        if isinstance(address, str):
            settings.destination_address = address
        return settings

    def save(self, path=SETTINGS_FILE):
        directory = os.path.dirname(os.path.abspath(path))
        ensure_directory(directory)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump({
                "Duration": self.duration,
                "DestinationAddress": self.destination_address,
            }, f, indent=2)
        logging.debug(f"Settings saved to {path}")
