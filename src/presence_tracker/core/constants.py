"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from datetime import time

DEFAULT_PER_PAGE = 15
MAX_PER_PAGE = 100

# Synthetic check-in written when an exception request is approved.
DEFAULT_MANUAL_CHECKIN_TIME = time(8, 0)

MAX_NOTES_LENGTH = 500
MAX_REASON_LENGTH = 500
MAX_ADDRESS_LENGTH = 255
MAX_ATTACHMENT_PATH_LENGTH = 255

DEFAULT_MAX_PHOTO_BYTES = 2 * 1024 * 1024
DEFAULT_TOKEN_MAX_AGE = 7 * 24 * 3600
