"""
config.py
---------
Stores configuration parameters for the capture side: camera settings, motion
detection thresholds, upload endpoint details and file paths. Central location
for modifying behavior without touching main code.
"""

# Camera settings
CAMERA_INDEX = 0
CAMERA_WIDTH = 640
CAMERA_HEIGHT = 480
CAMERA_FRAMERATE = 15

# Motion detection
MOTION_THRESHOLD = 0.005  # Fraction of the frame covered by moving blobs
DIFFERENCE_THRESHOLD = 15  # Grey levels between two frames to count as changed
MIN_BLOB_WIDTH = 10
MIN_BLOB_HEIGHT = 10

# Upload settings
UPLOAD_PATH = "/Images/UploadImage"
JPEG_QUALITY = 70
BACKEND_TIMEOUT = 10  # Request timeout in seconds
DEFAULT_DURATION = 15  # Seconds between upload attempts until the server says otherwise
DEFAULT_SITE_URL = "http://localhost:5001"

# File paths
SETTINGS_FILE = "motion_client_settings.json"
LATEST_FRAME_PATH = "latest_frame.jpg"
LOG_FILE = "capture.log"

# Debug settings
DEBUG_MODE = False

# Demo mode (runs with a synthetic camera if True)
DEMO_MODE = False

# Status messages shown to the user
STATUS_MOTION_DETECTED = "Motion detected!"
STATUS_UPLOADING = "Upload in progress..."
STATUS_INVALID_DESTINATION = "Invalid destination address!"
STATUS_CADENCE_CHANGED = "Upload cadence changed: {duration}s"
