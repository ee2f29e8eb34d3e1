from __future__ import annotations

from dataclasses import dataclass

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"

MISSING_COVER = "missing-cover"


def album_key(artist: str, album: str) -> str:
    return f"{artist} - {album}"


@dataclass(frozen=True)
class TrackIdentity:
    artist: str
    title: str
    album: str


@dataclass(frozen=True)
class PlaybackSnapshot:
    identity: TrackIdentity
    is_playing: bool
    position_seconds: int = 0
    duration_seconds: int = 0      # 0 = unknown, no progress bar
    has_position: bool = False

    @property
    def album_key(self) -> str:
        return album_key(self.identity.artist, self.identity.album)

    @property
    def is_fully_unknown(self) -> bool:
        ident = self.identity
        return (
            ident.artist == UNKNOWN_ARTIST
            and ident.album == UNKNOWN_ALBUM
            and ident.title == UNKNOWN_TITLE
        )

    @property
    def is_usable(self) -> bool:
        """False for snapshots that mean "nothing meaningful playing"."""
        if self.is_fully_unknown:
            return False
        return bool(self.identity.artist) and bool(self.identity.title)
