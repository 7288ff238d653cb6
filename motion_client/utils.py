"""
utils.py
--------
Helper functions shared across the capture modules: logging setup, directory
creation and the latest-frame file used by viewers.
"""

import os
import logging
from pathlib import Path

import cv2


def setup_logging(log_file="capture.log", level=logging.INFO):
    """Setup logging configuration"""
    logging.basicConfig(
        filename=log_file,
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Also log to console
    console = logging.StreamHandler()
    console.setLevel(level)
    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
    console.setFormatter(formatter)
    logging.getLogger('').addHandler(console)


def ensure_directory(dir_path):
    """Ensure a directory exists, create if it doesn't"""
    Path(dir_path).mkdir(parents=True, exist_ok=True)


def write_latest_frame(frame, path):
    """
    Write the frame as a JPEG to ``path`` so an external viewer can display it.

    The file is written next to the target and moved into place, so a reader
    never sees a half-written image.
    """
    directory = os.path.dirname(os.path.abspath(path))
    ensure_directory(directory)
    tmp_path = f"{path}.tmp"
    ok, buffer = cv2.imencode(".jpg", frame.image)
    if not ok:
        logging.warning(f"Could not encode latest frame for {path}")
        return False
    with open(tmp_path, 'wb') as f:
        f.write(buffer.tobytes())
    os.replace(tmp_path, path)
    logging.debug(f"Updated latest frame: {path}")
    return True
