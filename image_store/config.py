"""
Image Store Configuration
Centralized settings for the image store web application
"""

import os

# Storage locations
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.path.join(BASE_DIR, 'Datas')
DATABASE_PATH = os.path.join(BASE_DIR, 'data', 'store.db')

# Upload cadence handed to clients until changed through /Parametrage
DEFAULT_DURATION = 15  # seconds

# Stored image settings
JPEG_QUALITY = 70
MAX_IMAGE_PIXELS = 4096 * 4096  # Larger uploads are rejected before decoding
OVERLAY_FONT_SIZE = 20
OVERLAY_POSITION = (5, 5)
FILE_NAME_FORMAT = '%Y-%m-%d %H-%M-%S.jpg'

# Web app settings
MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB for image uploads
PORT = 5001
