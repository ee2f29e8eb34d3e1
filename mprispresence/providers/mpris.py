from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from mprispresence.types import (
    UNKNOWN_ALBUM,
    UNKNOWN_ARTIST,
    UNKNOWN_TITLE,
    PlaybackSnapshot,
    TrackIdentity,
)

MPRIS_PREFIX = "org.mpris.MediaPlayer2."
MPRIS_PATH = "/org/mpris/MediaPlayer2"
DBUS_NAME = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"

_MICROSECONDS = 1_000_000


class MprisError(RuntimeError):
    pass


class BusUnavailable(MprisError):
    pass


class PlayerNotFound(MprisError):
    pass


class PlayerReadError(MprisError):
    pass


def connect_bus() -> "MprisSource":
    """Open the D-Bus session bus. Any failure is BusUnavailable."""
    try:
        from pydbus import SessionBus

        bus = SessionBus()
    except Exception as e:
        raise BusUnavailable(str(e) or type(e).__name__) from e
    return MprisSource(bus)


def _first_string(value: Any) -> Optional[str]:
    # xesam:artist is a list of strings, everything else a plain string
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0]
    if value is None:
        return None
    return str(value)


class Player:
    def __init__(self, bus_name: str, proxy: Any):
        self.bus_name = bus_name
        self._proxy = proxy

    @property
    def identity(self) -> str:
        try:
            ident = self._proxy.Identity
        except Exception:
            ident = None
        return str(ident) if ident else self.bus_name[len(MPRIS_PREFIX):]

    def playback_status(self) -> str:
        try:
            return str(self._proxy.PlaybackStatus)
        except Exception as e:
            raise PlayerReadError(f"Could not get playback status from player: {e}") from e

    def read_snapshot(self) -> PlaybackSnapshot:
        try:
            metadata: Dict[str, Any] = dict(self._proxy.Metadata or {})
        except Exception as e:
            raise PlayerReadError(f"Could not get metadata from player: {e}") from e

        status = self.playback_status()

        title = _first_string(metadata.get("xesam:title"))
        artist = _first_string(metadata.get("xesam:artist"))
        album = _first_string(metadata.get("xesam:album"))

        length = metadata.get("mpris:length")
        try:
            duration = max(0, int(length) // _MICROSECONDS) if length is not None else 0
        except (TypeError, ValueError):
            duration = 0

        # Position is optional in MPRIS, plenty of players refuse to report it
        try:
            position = max(0, int(self._proxy.Position) // _MICROSECONDS)
            has_position = True
        except Exception:
            position = 0
            has_position = False

        return PlaybackSnapshot(
            identity=TrackIdentity(
                artist=UNKNOWN_ARTIST if artist is None else artist,
                title=UNKNOWN_TITLE if title is None else title,
                album=album or UNKNOWN_ALBUM,
            ),
            is_playing=status == "Playing",
            position_seconds=position,
            duration_seconds=duration,
            has_position=has_position,
        )

    def __repr__(self) -> str:
        return f"Player({self.bus_name!r})"


class MprisSource:
    """Player discovery over an MPRIS capable session bus."""

    def __init__(self, bus: Any):
        self.bus = bus

    def _bus_names(self) -> List[str]:
        try:
            dbus = self.bus.get(DBUS_NAME, DBUS_PATH)
            names = dbus.ListNames()
        except Exception as e:
            raise BusUnavailable(f"Could not list bus names: {e}") from e
        return sorted(n for n in names if n.startswith(MPRIS_PREFIX))

    def list_players(self) -> List[Player]:
        players: List[Player] = []
        for name in self._bus_names():
            try:
                proxy = self.bus.get(name, MPRIS_PATH)
            except Exception:
                # vanished between ListNames and get
                continue
            players.append(Player(name, proxy))
        return players

    def find_by_name(self, name: str) -> Player:
        wanted = name.casefold()
        for p in self.list_players():
            if p.identity.casefold() == wanted or p.bus_name[len(MPRIS_PREFIX):].casefold() == wanted:
                return p
        raise PlayerNotFound(name)

    def find_active(self) -> Player:
        players = self.list_players()
        if not players:
            raise PlayerNotFound("no MPRIS players on the bus")

        by_status: Dict[str, Player] = {}
        for p in players:
            try:
                status = p.playback_status()
            except PlayerReadError:
                continue
            by_status.setdefault(status, p)

        for status in ("Playing", "Paused"):
            if status in by_status:
                return by_status[status]
        return players[0]

    def find_active_player(self, allowlist: Iterable[str] = ()) -> Player:
        """
        Allow-list entries are a priority order: the first entry that resolves
        to a live player wins. Without an allow-list the active player wins.
        """
        entries = list(allowlist)
        if not entries:
            return self.find_active()

        for entry in entries:
            try:
                return self.find_by_name(entry)
            except PlayerNotFound:
                continue
        raise PlayerNotFound(", ".join(entries))
