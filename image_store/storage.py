"""
storage.py
----------
File handling for stored images. Every image is named after the UTC time it
was received, to the second, so names sort chronologically:
``YYYY-MM-DD HH-MM-SS.jpg``.
"""

import os
from datetime import datetime, timezone
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError
from werkzeug.security import safe_join

from image_store.config import (FILE_NAME_FORMAT, JPEG_QUALITY, MAX_IMAGE_PIXELS, OVERLAY_FONT_SIZE,
                                OVERLAY_POSITION)


class InvalidImage(Exception):
    """The uploaded payload could not be decoded as an image."""


class InvalidFileName(Exception):
    """The requested file name points outside the image folder."""


def image_file_name(when):
    return when.strftime(FILE_NAME_FORMAT)


def overlay_text(when):
    # e.g. "Friday, January 05, 2024 13:07:22 (UTC)"
    return f"{when.strftime('%A, %B %d, %Y')} {when.strftime('%H:%M:%S')} (UTC)"


def stamp_timestamp(image, when, font_size=OVERLAY_FONT_SIZE):
    """Draw the UTC receive time in the top left corner of the image."""
    draw = ImageDraw.Draw(image)
    font = ImageFont.load_default(size=font_size)
    draw.text(OVERLAY_POSITION, overlay_text(when), fill='white', font=font)
    return image


def save_image(data, folder, now=None, quality=JPEG_QUALITY, max_pixels=MAX_IMAGE_PIXELS):
    """
    Decode, stamp and store an uploaded image.

    Args:
        data: Raw image bytes as received
        folder: Directory holding the stored images
        now: Receive time, defaults to the current UTC time
        quality: JPEG quality of the stored file
        max_pixels: Largest accepted width x height

    Returns:
        The stored file name
    """
    if not data:
        raise InvalidImage("Empty image payload")

    when = now or datetime.now(timezone.utc)
    try:
        image = Image.open(BytesIO(data))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise InvalidImage(f"Could not decode image: {e}") from e

    # The header is read on open; check its size before decoding any pixels
    if image.width * image.height > max_pixels:
        raise InvalidImage(f"Image too large: {image.width}x{image.height}")

    try:
        image.load()
    except (Image.DecompressionBombError, OSError) as e:
        raise InvalidImage(f"Could not decode image: {e}") from e

    image = stamp_timestamp(image.convert('RGB'), when)

    os.makedirs(folder, exist_ok=True)
    filename = image_file_name(when)
    # Two uploads within the same second share a name; the later one wins
    image.save(os.path.join(folder, filename), 'JPEG', quality=quality)
    return filename


def list_images(folder, date):
    """Names of the images stored on ``date``, most recent first."""
    if not os.path.isdir(folder):
        return []
    prefix = date.strftime('%Y-%m-%d')
    names = [name for name in os.listdir(folder)
             if name.startswith(prefix) and name.endswith('.jpg')
             and os.path.isfile(os.path.join(folder, name))]
    return sorted(names, reverse=True)


def delete_image(folder, name):
    """Delete a stored image. Deleting a file that does not exist is not an error."""
    path = safe_join(folder, name) if name else None
    if path is None or os.path.dirname(os.path.abspath(path)) != os.path.abspath(folder):
        raise InvalidFileName(f"Invalid file name: {name!r}")
    if os.path.isfile(path):
        os.remove(path)
        return True
    return False
