"""
API Routers for Audiopub.

Each router handles a specific domain:
- auth: Registration, login, profile, verification, password reset
- audios: Listing, upload, editing, plays, AI mirror moves
- comments: Threaded comments
- favorites: Favorites and follows
- users: Profiles and admin moderation
- notifications: Notification inbox and system notices
- feed: Quickfeed and search
"""

from . import (
    auth,
    audios,
    comments,
    favorites,
    users,
    notifications,
    feed,
)
