"""
uploader.py
-----------
Sends evidence frames to the image store. The frame is encoded to JPEG, posted
as the raw request body to ``<destination>/Images/UploadImage`` and the JSON
reply tells us how often the server wants to hear from us.
"""

import logging
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

import cv2
import requests

from motion_client.config import BACKEND_TIMEOUT, JPEG_QUALITY, UPLOAD_PATH


class UploadError(Exception):
    """Base class for everything that can go wrong during an upload."""


class InvalidDestination(UploadError):
    """The configured destination is not an absolute http(s) address."""


class TransferFailed(UploadError):
    """The upload was attempted but did not produce a usable server reply."""


@dataclass
class ServerConfig:
    duration: int


def validate_destination(address):
    """Return the address unchanged if it is an absolute http(s) URI, raise InvalidDestination otherwise."""
    if not isinstance(address, str) or not address.strip():
        raise InvalidDestination("Destination address is empty")
    parsed = urlparse(address.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc or " " in parsed.netloc:
        raise InvalidDestination(f"Destination address is not a valid URL: {address!r}")
    return address.strip()


def upload_url(address):
    """Upload endpoint for a destination; the path replaces any path on the address."""
    return urljoin(validate_destination(address), UPLOAD_PATH)


def encode_jpeg(frame, quality=JPEG_QUALITY):
    ok, buffer = cv2.imencode(".jpg", frame.image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise TransferFailed("Could not encode frame as JPEG")
    return buffer.tobytes()


def parse_server_config(response):
    try:
        payload = response.json()
    except ValueError as e:
        raise TransferFailed(f"Server reply is not JSON: {e}") from e

    duration = payload.get("Duration") if isinstance(payload, dict) else None
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        raise TransferFailed(f"Server reply has no valid Duration: {payload!r}")
    return ServerConfig(duration=duration)


class UploadClient:
    def __init__(self, timeout=BACKEND_TIMEOUT, quality=JPEG_QUALITY):
        self.timeout = timeout
        self.quality = quality

    def upload(self, frame, destination):
        """
        Upload one frame and return the server's configuration.

        Raises InvalidDestination before any network access when the address
        is malformed, and TransferFailed for every other failure.
        """
        url = upload_url(destination)
        payload = encode_jpeg(frame, self.quality)

        try:
            response = requests.post(url, data=payload, headers={'Content-Type': 'image/jpeg'},
                                     timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logging.error(f"Upload to {url} failed: {e}")
            raise TransferFailed(str(e)) from e

        config = parse_server_config(response)
        logging.info(f"Uploaded {len(payload)} bytes to {url}, server duration {config.duration}s")
        return config
