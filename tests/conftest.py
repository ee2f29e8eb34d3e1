"""Pytest configuration and shared fixtures."""

from unittest.mock import Mock

import pytest
import requests

from mprispresence.presence import DiscordTransport, PresenceManager
from mprispresence.providers.mpris import DBUS_NAME, MPRIS_PREFIX, MprisSource

SAMPLE_COVER = "http://img/x.jpg"


class FakePlayerProxy:
    """Stands in for a pydbus proxy of /org/mpris/MediaPlayer2."""

    def __init__(
        self,
        identity="Fake Player",
        metadata=None,
        status="Playing",
        position=0,
        position_error=False,
        fail_after=None,
    ):
        self._identity = identity
        self.metadata = metadata if metadata is not None else {}
        self.status = status
        self.position = position
        self.position_error = position_error
        self.fail_after = fail_after
        self.metadata_reads = 0

    @property
    def Identity(self):
        return self._identity

    @property
    def Metadata(self):
        self.metadata_reads += 1
        if self.fail_after is not None and self.metadata_reads > self.fail_after:
            raise RuntimeError("org.freedesktop.DBus.Error.ServiceUnknown")
        return self.metadata

    @property
    def PlaybackStatus(self):
        return self.status

    @property
    def Position(self):
        if self.position_error:
            raise RuntimeError("org.freedesktop.DBus.Error.NotSupported")
        return self.position


class FakeDBusDaemon:
    def __init__(self, bus):
        self._bus = bus

    def ListNames(self):
        if self._bus.list_error:
            raise RuntimeError("connection closed")
        return [DBUS_NAME, ":1.42", "org.freedesktop.Notifications", *self._bus.players]


class FakeBus:
    def __init__(self, players=None, list_error=False):
        self.players = dict(players or {})
        self.list_error = list_error

    def get(self, name, path=None):
        if name == DBUS_NAME:
            return FakeDBusDaemon(self)
        try:
            return self.players[name]
        except KeyError:
            raise LookupError(name)


def make_metadata(artist="A", title="T", album="Alb", length_s=200):
    md = {}
    if artist is not None:
        md["xesam:artist"] = [artist]
    if title is not None:
        md["xesam:title"] = title
    if album is not None:
        md["xesam:album"] = album
    if length_s is not None:
        md["mpris:length"] = length_s * 1_000_000
    return md


def lastfm_response(url=SAMPLE_COVER, status_code=200):
    resp = Mock()
    resp.status_code = status_code
    resp.json.return_value = {"album": {"image": [{}, {}, {}, {"#text": url}]}}
    return resp


@pytest.fixture
def mock_session():
    """Mock requests.Session answering album.getinfo with a cover url."""
    session = Mock(spec=requests.Session)
    session.get.return_value = lastfm_response()
    return session


@pytest.fixture
def mock_transport():
    return Mock(spec=DiscordTransport)


@pytest.fixture
def presence(mock_transport):
    return PresenceManager(mock_transport)


@pytest.fixture
def fake_source():
    proxy = FakePlayerProxy(metadata=make_metadata())
    return MprisSource(FakeBus({MPRIS_PREFIX + "fake": proxy}))
