"""
OAuth authorization scopes.

Scopes are granted to the application by the user and restrict which endpoints the
application can call. See https://developer.spotify.com/documentation/web-api/concepts/scopes
"""

from collections.abc import Iterable
from enum import Enum


class Scope(str, Enum):
    UGC_IMAGE_UPLOAD = "ugc-image-upload"
    USER_MODIFY_PLAYBACK_STATE = "user-modify-playback-state"
    USER_READ_PLAYBACK_STATE = "user-read-playback-state"
    USER_READ_CURRENTLY_PLAYING = "user-read-currently-playing"
    USER_FOLLOW_MODIFY = "user-follow-modify"
    USER_FOLLOW_READ = "user-follow-read"
    USER_READ_RECENTLY_PLAYED = "user-read-recently-played"
    USER_READ_PLAYBACK_POSITION = "user-read-playback-position"
    USER_TOP_READ = "user-top-read"
    PLAYLIST_READ_COLLABORATIVE = "playlist-read-collaborative"
    PLAYLIST_MODIFY_PUBLIC = "playlist-modify-public"
    PLAYLIST_READ_PRIVATE = "playlist-read-private"
    PLAYLIST_MODIFY_PRIVATE = "playlist-modify-private"
    APP_REMOTE_CONTROL = "app-remote-control"
    STREAMING = "streaming"
    USER_READ_EMAIL = "user-read-email"
    USER_READ_PRIVATE = "user-read-private"
    USER_LIBRARY_MODIFY = "user-library-modify"
    USER_LIBRARY_READ = "user-library-read"

    def __str__(self) -> str:
        return self.value


def to_scopes_string(scopes: Iterable[Scope | str]) -> str:
    """Join scopes into the space-separated form the authorize endpoint expects, keeping first-seen order."""
    return " ".join(dict.fromkeys(str(scope) for scope in scopes))
