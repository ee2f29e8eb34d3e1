from __future__ import annotations

import enum
import logging
from typing import Callable, Optional

from pypresence import Presence
from pypresence.exceptions import PyPresenceException

from mprispresence.activity import Activity

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID = "1129859263741837373"

_TRANSPORT_ERRORS = (PyPresenceException, OSError)


class PresenceError(RuntimeError):
    pass


class DiscordTransport:
    """
    Thin wrapper over a pypresence Presence handle.

    pypresence has no notion of reconnecting, so reconnect() throws the old
    handle away and dials again with a new one.
    """

    def __init__(self, client_id: str = DEFAULT_CLIENT_ID, presence_factory: Callable[[str], Presence] = Presence):
        self.client_id = client_id
        self._factory = presence_factory
        self._rpc: Optional[Presence] = None

    def connect(self) -> None:
        try:
            rpc = self._factory(self.client_id)
            rpc.connect()
        except _TRANSPORT_ERRORS as e:
            raise PresenceError(f"connect failed: {e}") from e
        self._rpc = rpc

    def reconnect(self) -> None:
        self._discard()
        self.connect()

    def set_activity(self, activity: Activity) -> None:
        rpc = self._require()
        try:
            rpc.update(**activity.to_update_kwargs())
        except _TRANSPORT_ERRORS as e:
            raise PresenceError(f"set activity failed: {e}") from e

    def clear_activity(self) -> None:
        rpc = self._require()
        try:
            rpc.clear()
        except _TRANSPORT_ERRORS as e:
            raise PresenceError(f"clear activity failed: {e}") from e

    def close(self) -> None:
        rpc, self._rpc = self._rpc, None
        if rpc is None:
            return
        try:
            rpc.close()
        except _TRANSPORT_ERRORS as e:
            raise PresenceError(f"close failed: {e}") from e

    def _require(self) -> Presence:
        if self._rpc is None:
            raise PresenceError("not connected")
        return self._rpc

    def _discard(self) -> None:
        try:
            self.close()
        except PresenceError as e:
            logger.debug("Dropping stale Discord handle: %s", e)


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    PUBLISHING = "publishing"


class Outcome(enum.Enum):
    OK = "ok"
    RECONNECT = "reconnect"     # caller restarts discovery from the top
    FATAL = "fatal"             # transport is dead, gave up without raising


class PresenceManager:
    """
    Owns the single connection to the presence peer.

    DISCONNECTED -> CONNECTED -> (PUBLISHING <-> CONNECTED) -> DISCONNECTED
    """

    def __init__(self, transport: DiscordTransport):
        self.transport = transport
        self.state = ConnectionState.DISCONNECTED
        self.published = False
        self.reconnected = False
        self.has_connected = False

    def open(self) -> Outcome:
        """connect() on first contact, reconnect() on every later attempt."""
        try:
            if self.has_connected:
                self.transport.reconnect()
            else:
                self.transport.connect()
        except PresenceError as e:
            logger.debug("Discord connection attempt failed: %s", e)
            self.state = ConnectionState.DISCONNECTED
            return Outcome.RECONNECT

        self.reconnected = self.has_connected
        self.has_connected = True
        self.state = ConnectionState.CONNECTED
        return Outcome.OK

    def publish(self, activity: Activity) -> Outcome:
        if self.state is not ConnectionState.CONNECTED:
            return Outcome.RECONNECT

        self.state = ConnectionState.PUBLISHING
        try:
            self.transport.set_activity(activity)
        except PresenceError as e:
            logger.debug("Publish failed: %s", e)
            self.published = False
            self.close()
            return Outcome.RECONNECT

        self.state = ConnectionState.CONNECTED
        self.published = True
        return Outcome.OK

    def clear(self) -> Outcome:
        if not self.published:
            return Outcome.OK

        try:
            self.transport.clear_activity()
        except PresenceError as e:
            logger.debug("Clear failed, reconnecting once: %s", e)
        else:
            self.published = False
            return Outcome.OK

        try:
            self.transport.reconnect()
        except PresenceError as e:
            logger.debug("Reconnect before clear failed: %s", e)
            self.state = ConnectionState.DISCONNECTED
            return Outcome.FATAL
        self.state = ConnectionState.CONNECTED

        try:
            self.transport.clear_activity()
        except PresenceError as e:
            logger.debug("Clear after reconnect failed: %s", e)
            return Outcome.FATAL

        self.published = False
        return Outcome.OK

    def close(self) -> None:
        try:
            self.transport.close()
        except PresenceError as e:
            logger.debug("Closing Discord connection failed: %s", e)
        self.state = ConnectionState.DISCONNECTED
