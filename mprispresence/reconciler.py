from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from mprispresence.activity import build_activity, status_text
from mprispresence.artwork import ArtworkResolver
from mprispresence.config import PROG, Settings
from mprispresence.presence import Outcome, PresenceManager
from mprispresence.providers.mpris import (
    BusUnavailable,
    MprisSource,
    Player,
    PlayerNotFound,
    PlayerReadError,
    connect_bus,
)
from mprispresence.suppression import NotificationTracker, Source
from mprispresence.types import PlaybackSnapshot

logger = logging.getLogger(__name__)


@dataclass
class ReconcilerState:
    previous_snapshot: Optional[PlaybackSnapshot] = None
    previous_album_key: str = ""
    last_cover_url: str = ""
    interrupted: bool = False      # an error path skipped a publish, republish next poll
    notifications: NotificationTracker = field(default_factory=lambda: NotificationTracker(logger))


def metadata_changed(previous: Optional[PlaybackSnapshot], current: PlaybackSnapshot) -> bool:
    """
    True when the presence has to be republished.

    A position going backwards is taken as "song restarted"; a seek backwards
    looks the same and is treated the same.
    """
    if previous is None:
        return True
    if current.identity != previous.identity:
        return True
    if current.is_playing != previous.is_playing:
        return True
    return current.position_seconds < previous.position_seconds


class Reconciler:
    """
    Polls the player, decides whether the Discord presence must change and
    drives the artwork resolver and the presence connection accordingly.
    """

    def __init__(
        self,
        settings: Settings,
        presence: PresenceManager,
        resolver: ArtworkResolver,
        connect_bus: Callable[[], MprisSource] = connect_bus,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        state: Optional[ReconcilerState] = None,
    ):
        self.settings = settings
        self.presence = presence
        self.resolver = resolver
        self.state = state or ReconcilerState()
        self._connect_bus = connect_bus
        self._sleep = sleep
        self._clock = clock

    @property
    def notifications(self) -> NotificationTracker:
        return self.state.notifications

    def sleep(self) -> None:
        self._sleep(self.settings.interval)

    def run_forever(self) -> int:
        while True:
            code = self.cycle()
            if code is not None:
                return code

    def cycle(self) -> Optional[int]:
        """
        One pass of the outer loop. Returns an exit code only when the
        process should stop (player listing).
        """
        logger.debug("─── outer loop ───")
        try:
            source = self._connect_bus()
        except BusUnavailable as e:
            self._bus_down(e)
            return None
        self.notifications.reset(Source.BUS)

        if self.settings.list_players:
            return self.list_players(source)

        try:
            player = source.find_active_player(self.settings.allowlist)
        except BusUnavailable as e:
            self._bus_down(e)
            return None
        except PlayerNotFound:
            self._player_lost()
            self.sleep()
            return None

        self.notifications.notify(Source.PLAYER, "found", "Found active player with MPRIS support.")
        logger.debug("Using player %r", player)

        if not self._open_presence():
            self.sleep()
            return None

        self.track(player)
        self.sleep()
        return None

    def _bus_down(self, err: Exception) -> None:
        self.notifications.notify(Source.BUS, "unavailable", "Could not connect to D-Bus: %s", err)
        self.sleep()

    def _player_lost(self) -> None:
        if self.settings.allowlist:
            msg = ("Could not find any active player from your allowlist with MPRIS support. "
                   "Waiting for any player from your allowlist...")
        else:
            msg = "Could not find any player with MPRIS support. Waiting for any player..."
        if self.notifications.notify(Source.PLAYER, "missing", msg):
            # report a Discord outage again once a player is back
            self.notifications.reset(Source.PEER)

        self.state.interrupted = True
        self.presence.clear()

    def _open_presence(self) -> bool:
        recovering = self.presence.has_connected
        if self.presence.open() is not Outcome.OK:
            if recovering:
                msg = "Could not reconnect to Discord. Waiting for discord to start..."
            else:
                msg = "Could not connect to Discord. Waiting for discord to start..."
            self.notifications.notify(Source.PEER, "down", msg)
            return False

        if self.presence.reconnected:
            if self.notifications.condition(Source.PEER) == "down":
                logger.info("Reconnected to Discord.")
            self.state.interrupted = True
        else:
            logger.info("Connected to Discord.")
        self.notifications.set_quietly(Source.PEER, "up")
        return True

    def track(self, player: Player) -> None:
        """Inner loop: keep polling the same player until something breaks."""
        while self.poll(player):
            self.sleep()

    def poll(self, player: Player) -> bool:
        logger.debug("─── inner loop ───")
        try:
            snapshot = player.read_snapshot()
        except PlayerReadError as e:
            logger.warning("%s", e)
            self.presence.clear()
            return False

        if not snapshot.is_usable:
            logger.debug("Unknown metadata, skipping...")
            return False

        return self.reconcile(snapshot)

    def reconcile(self, snapshot: PlaybackSnapshot) -> bool:
        """
        Publish `snapshot` if it differs from what was last published.

        Returns False when the presence connection broke and the caller has
        to go back to discovery.
        """
        state = self.state
        ident = snapshot.identity

        changed = metadata_changed(state.previous_snapshot, snapshot)
        logger.debug("metadata_changed: %s (interrupted: %s)", changed, state.interrupted)
        if not changed and not state.interrupted:
            logger.debug("The same metadata and status, skipping...")
            return True

        now = int(self._clock())
        key = snapshot.album_key
        cover_url = self.resolver.resolve(
            key,
            state.previous_album_key,
            ident.album,
            ident.artist,
            self.settings.cache_enabled,
            state.last_cover_url,
        )

        activity = build_activity(
            snapshot,
            cover_url,
            now,
            youtube_button=self.settings.yt_button,
            lastfm_profile=self.settings.profile_button,
        )

        if self.presence.publish(activity) is not Outcome.OK:
            logger.warning("Could not set activity.")
            state.interrupted = True
            return False

        state.interrupted = False
        state.previous_snapshot = snapshot
        state.previous_album_key = key
        state.last_cover_url = cover_url
        logger.info("=> Set activity [%s]: %s - %s", status_text(snapshot), ident.artist, ident.title)
        return True

    def list_players(self, source: MprisSource) -> int:
        try:
            players = source.list_players()
        except BusUnavailable:
            players = []

        if not players:
            print("Could not find any player with MPRIS support.")
            return 0

        first = players[0].identity
        print()
        print("─" * 52)
        print("List of available music players with MPRIS support:")
        for p in players:
            print(f" * {p.identity}")
        print()
        print("Use the name to choose from which source the script should take data for the Discord status.")
        print("Usage instructions:")
        print()
        print(f' {PROG} -a "{first}"')
        print()
        print("You can use the -a argument multiple times to add more than one player to the allowlist:")
        print()
        print(f' {PROG} -a "{first}" -a "Second Player" -a "Any other player"')
        return 0
