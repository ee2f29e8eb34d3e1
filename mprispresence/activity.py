from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from urllib.parse import quote

from pypresence.types import ActivityType

from mprispresence.types import MISSING_COVER, PlaybackSnapshot

YOUTUBE_SEARCH_URL = "https://www.youtube.com/results?search_query={}"
LASTFM_PROFILE_URL = "https://www.last.fm/user/{}"

# Same set of characters a JS encodeURIComponent leaves alone
_COMPONENT_SAFE = "!~*'()"

# Discord rejects activity strings longer than this
MAX_TEXT_LENGTH = 128


def encode_component(text: str) -> str:
    return quote(text, safe=_COMPONENT_SAFE)


def clip(text: str, limit: int = MAX_TEXT_LENGTH) -> str:
    return text if len(text) <= limit else text[:limit]


@dataclass(frozen=True)
class Button:
    label: str
    url: str


@dataclass(frozen=True)
class Timestamps:
    start: Optional[int] = None     # epoch seconds
    end: Optional[int] = None


@dataclass(frozen=True)
class Activity:
    state: str
    details: str
    large_image: str
    small_image: str
    large_text: str
    small_text: str
    timestamps: Timestamps = field(default_factory=Timestamps)
    buttons: Tuple[Button, ...] = ()

    def to_update_kwargs(self) -> dict:
        """Keyword arguments for pypresence.Presence.update."""
        kwargs = {
            "state": self.state,
            "details": self.details,
            "large_image": self.large_image,
            "small_image": self.small_image,
            "large_text": self.large_text,
            "small_text": self.small_text,
            "activity_type": ActivityType.LISTENING,
        }
        if self.timestamps.start is not None:
            kwargs["start"] = self.timestamps.start
        if self.timestamps.end is not None:
            kwargs["end"] = self.timestamps.end
        if self.buttons:
            kwargs["buttons"] = [{"label": b.label, "url": b.url} for b in self.buttons]
        return kwargs


def compute_timestamps(snapshot: PlaybackSnapshot, now: int) -> Timestamps:
    """
    Start time is anchored at now - position so it stays put across polls.

    Without a known position and duration there is no progress bar, only a
    single end marker at the start time.
    """
    start = max(0, now - snapshot.position_seconds)
    if snapshot.has_position and snapshot.duration_seconds > 0:
        if snapshot.is_playing:
            return Timestamps(start=start, end=start + snapshot.duration_seconds)
        return Timestamps(start=start)
    return Timestamps(end=start)


def build_buttons(snapshot: PlaybackSnapshot, youtube_button: bool, lastfm_profile: Optional[str]) -> Tuple[Button, ...]:
    buttons: List[Button] = []
    ident = snapshot.identity
    if youtube_button:
        song_name = f"{ident.artist} - {ident.title}"
        buttons.append(Button(
            "Search this song on YouTube",
            YOUTUBE_SEARCH_URL.format(encode_component(song_name)),
        ))
    if lastfm_profile:
        buttons.append(Button(
            "Open user's last.fm profile",
            LASTFM_PROFILE_URL.format(encode_component(lastfm_profile)),
        ))
    return tuple(buttons)


def status_text(snapshot: PlaybackSnapshot) -> str:
    return "playing" if snapshot.is_playing else "paused"


def build_activity(
    snapshot: PlaybackSnapshot,
    cover_url: str,
    now: int,
    youtube_button: bool = False,
    lastfm_profile: Optional[str] = None,
) -> Activity:
    ident = snapshot.identity
    status = status_text(snapshot)
    return Activity(
        # Discord refuses 1-char strings
        details=f"{clip(ident.title, MAX_TEXT_LENGTH - 1)} ",
        state=clip(f"by: {ident.artist}"),
        large_image=cover_url or MISSING_COVER,
        small_image=status,
        large_text=clip(f"album: {ident.album}"),
        small_text=status,
        timestamps=compute_timestamps(snapshot, now),
        buttons=build_buttons(snapshot, youtube_button, lastfm_profile),
    )
