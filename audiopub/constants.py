"""
Application Constants for Audiopub.

Centralizes limits and magic numbers. Dynamic configuration (from environment
variables) lives in config.py; this file only holds true constants.
"""

# =============================================================================
# Upload Limits
# =============================================================================

MAX_UPLOAD_SIZE_BYTES = 500 * 1024 * 1024  # 500MB max audio upload
ALLOWED_AUDIO_EXTENSIONS = ["mp3", "wav", "ogg", "flac", "m4a", "aac", "opus", "webm"]

# =============================================================================
# Content Limits
# =============================================================================

MIN_TITLE_LENGTH = 3
MAX_TITLE_LENGTH = 120
MAX_DESCRIPTION_LENGTH = 5000
MIN_COMMENT_LENGTH = 3
MAX_COMMENT_LENGTH = 4000
MAX_RENDERED_THREAD_DEPTH = 32  # Deeper replies are listed under their ancestor at this depth
MAX_BIO_LENGTH = 2000
MAX_SYSTEM_MESSAGE_LENGTH = 2000

# =============================================================================
# Account Limits
# =============================================================================

MIN_USERNAME_LENGTH = 3
MAX_USERNAME_LENGTH = 24
MIN_DISPLAY_NAME_LENGTH = 3
MAX_DISPLAY_NAME_LENGTH = 30
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 64
MAX_VERIFICATION_ATTEMPTS = 5

# =============================================================================
# Pagination & Search
# =============================================================================

AUDIOS_PER_PAGE = 30
QUICKFEED_PAGE_SIZE = 50
MAX_NOTIFICATIONS = 100
MIN_SEARCH_QUERY_LENGTH = 5

VALID_SORT_FIELDS = ["created_at", "plays", "title", "random", "favorite_count"]
VALID_SORT_ORDERS = ["ASC", "DESC"]
DEFAULT_SORT_FIELD = "created_at"
DEFAULT_SORT_ORDER = "DESC"

# =============================================================================
# Plays
# =============================================================================

MIN_LISTEN_SECONDS = 5  # A play needs min(5s, half the track) of listening
MIN_LISTEN_FRACTION = 0.5

# =============================================================================
# Notifications
# =============================================================================

NOTIFICATION_TYPES = ["comment", "upload", "system", "favorite"]
NOTIFICATION_TARGET_TYPES = ["audio", "comment"]

# =============================================================================
# Authentication Configuration
# =============================================================================

JWT_ALGORITHM = "HS256"
FROM_AI_HEADER = "X-From-AI"
