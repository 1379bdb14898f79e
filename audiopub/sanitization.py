"""
Input Sanitization Module

Provides functions to sanitize and validate user inputs to prevent:
- Path traversal through uploaded filenames
- Null bytes and control characters in stored text
- Look-alike or reserved usernames

All user inputs should pass through these functions before processing.
"""

import os
import re
from typing import Optional
from fastapi import HTTPException

from .constants import (
    ALLOWED_AUDIO_EXTENSIONS,
    MAX_USERNAME_LENGTH,
    MIN_USERNAME_LENGTH,
)


# =============================================================================
# Configuration
# =============================================================================

MAX_FILENAME_LENGTH = 255

USERNAME_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')

RESERVED_USERNAMES = ['admin', 'root', 'system', 'audiopub', 'null', 'undefined']


# =============================================================================
# Filename Sanitization
# =============================================================================

def audio_extension(filename: str) -> str:
    """
    Extract and validate the extension of an uploaded audio file.

    Only the extension is kept; files are stored under the audio id, so the
    rest of the client-supplied name never touches the filesystem.

    Raises:
        HTTPException: If the name is empty, too long, or not an audio type

    Examples:
        >>> audio_extension("take 3.MP3")
        "mp3"
        >>> audio_extension("../../etc/passwd")
        HTTPException (400)
    """
    if not filename or not filename.strip():
        raise HTTPException(status_code=400, detail="Audio file is required")

    if len(filename) > MAX_FILENAME_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Filename too long. Maximum {MAX_FILENAME_LENGTH} characters."
        )

    if '\x00' in filename:
        raise HTTPException(status_code=400, detail="Filename contains forbidden null bytes")

    base = os.path.basename(filename.replace('\\', '/'))
    _, ext = os.path.splitext(base)
    ext = ext.lstrip('.').lower()

    if ext not in ALLOWED_AUDIO_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type. Allowed: {', '.join(ALLOWED_AUDIO_EXTENSIONS)}"
        )
    return ext


# =============================================================================
# Text Sanitization
# =============================================================================

def sanitize_text_content(content: str, max_length: int) -> str:
    """
    Validate length, reject null bytes and normalize line endings.

    HTML is not stripped; escaping happens at render time.
    """
    if content is None:
        raise HTTPException(status_code=400, detail="Content cannot be empty")

    if len(content) > max_length:
        raise HTTPException(
            status_code=400,
            detail=f"Content too long. Maximum {max_length} characters."
        )

    if '\x00' in content:
        raise HTTPException(status_code=400, detail="Content contains forbidden null bytes")

    return content.replace('\r\n', '\n').replace('\r', '\n')


def sanitize_optional_text(content: Optional[str], max_length: int) -> Optional[str]:
    if content is None:
        return None
    return sanitize_text_content(content, max_length)


# =============================================================================
# Username Sanitization
# =============================================================================

def sanitize_username(username: str) -> str:
    """
    Sanitize a username and return its lower-cased handle.

    Raises:
        HTTPException: If username is invalid or reserved

    Examples:
        >>> sanitize_username("John_Doe")
        "john_doe"
        >>> sanitize_username("john'; DROP TABLE users; --")
        HTTPException (400)
    """
    if not username or not username.strip():
        raise HTTPException(status_code=400, detail="Username cannot be empty")

    username = username.strip()

    if len(username) < MIN_USERNAME_LENGTH or len(username) > MAX_USERNAME_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Username must be between {MIN_USERNAME_LENGTH} and {MAX_USERNAME_LENGTH} characters."
        )

    if not USERNAME_PATTERN.match(username):
        raise HTTPException(
            status_code=400,
            detail="Username can only contain letters, numbers, underscores, and hyphens"
        )

    if username.lower() in RESERVED_USERNAMES:
        raise HTTPException(
            status_code=400,
            detail=f"Username '{username}' is reserved"
        )

    return username.lower()
