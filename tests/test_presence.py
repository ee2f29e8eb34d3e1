"""Unit tests for the Discord transport and the presence connection state machine."""

from unittest.mock import Mock, call

import pytest
from pypresence.exceptions import DiscordNotFound, PipeClosed

from mprispresence.activity import Activity
from mprispresence.presence import (
    ConnectionState,
    DiscordTransport,
    Outcome,
    PresenceError,
    PresenceManager,
)

ACTIVITY = Activity(
    state="by: A",
    details="T ",
    large_image="http://img/x.jpg",
    small_image="playing",
    large_text="album: Alb",
    small_text="playing",
)


# DiscordTransport


def test_transport_connect_builds_fresh_handle():
    rpc = Mock()
    factory = Mock(return_value=rpc)
    transport = DiscordTransport("123", presence_factory=factory)

    transport.connect()

    factory.assert_called_once_with("123")
    rpc.connect.assert_called_once_with()


def test_transport_connect_failure_is_presence_error():
    factory = Mock(side_effect=DiscordNotFound())
    transport = DiscordTransport("123", presence_factory=factory)

    with pytest.raises(PresenceError):
        transport.connect()


def test_transport_reconnect_discards_dead_handle():
    old, new = Mock(), Mock()
    old.close.side_effect = PipeClosed()
    factory = Mock(side_effect=[old, new])
    transport = DiscordTransport("123", presence_factory=factory)
    transport.connect()

    transport.reconnect()
    transport.clear_activity()

    new.connect.assert_called_once_with()
    new.clear.assert_called_once_with()
    old.clear.assert_not_called()


def test_transport_set_activity_passes_update_kwargs():
    rpc = Mock()
    transport = DiscordTransport("123", presence_factory=Mock(return_value=rpc))
    transport.connect()

    transport.set_activity(ACTIVITY)

    rpc.update.assert_called_once_with(**ACTIVITY.to_update_kwargs())


def test_transport_broken_pipe_is_presence_error():
    rpc = Mock()
    rpc.update.side_effect = BrokenPipeError()
    transport = DiscordTransport("123", presence_factory=Mock(return_value=rpc))
    transport.connect()

    with pytest.raises(PresenceError):
        transport.set_activity(ACTIVITY)


def test_transport_requires_connection():
    transport = DiscordTransport("123", presence_factory=Mock())

    with pytest.raises(PresenceError):
        transport.clear_activity()


# PresenceManager.open


def test_first_open_connects_then_reconnects(presence, mock_transport):
    assert presence.open() is Outcome.OK
    assert presence.reconnected is False
    assert presence.open() is Outcome.OK
    assert presence.reconnected is True

    assert mock_transport.method_calls == [call.connect(), call.reconnect()]
    assert presence.state is ConnectionState.CONNECTED


def test_failed_first_connect_keeps_using_connect(presence, mock_transport):
    mock_transport.connect.side_effect = [PresenceError("no discord"), None]

    assert presence.open() is Outcome.RECONNECT
    assert presence.state is ConnectionState.DISCONNECTED
    assert presence.open() is Outcome.OK

    assert mock_transport.method_calls == [call.connect(), call.connect()]


def test_failed_reconnect(presence, mock_transport):
    presence.open()
    mock_transport.reconnect.side_effect = PresenceError("gone")

    assert presence.open() is Outcome.RECONNECT
    assert presence.state is ConnectionState.DISCONNECTED


# PresenceManager.publish


def test_publish_requires_connection(presence, mock_transport):
    assert presence.publish(ACTIVITY) is Outcome.RECONNECT
    mock_transport.set_activity.assert_not_called()


def test_publish_success(presence, mock_transport):
    presence.open()

    assert presence.publish(ACTIVITY) is Outcome.OK
    mock_transport.set_activity.assert_called_once_with(ACTIVITY)
    assert presence.published is True
    assert presence.state is ConnectionState.CONNECTED


def test_publish_failure_closes_without_retry(presence, mock_transport):
    presence.open()
    mock_transport.set_activity.side_effect = PresenceError("pipe closed")

    assert presence.publish(ACTIVITY) is Outcome.RECONNECT

    assert mock_transport.set_activity.call_count == 1
    mock_transport.close.assert_called_once_with()
    assert presence.state is ConnectionState.DISCONNECTED
    assert presence.published is False


# PresenceManager.clear


def test_clear_when_nothing_published_is_noop(presence, mock_transport):
    assert presence.clear() is Outcome.OK
    assert mock_transport.method_calls == []


def test_clear_published_activity(presence, mock_transport):
    presence.open()
    presence.publish(ACTIVITY)

    assert presence.clear() is Outcome.OK
    assert presence.published is False
    # second clear is a no-op
    assert presence.clear() is Outcome.OK
    mock_transport.clear_activity.assert_called_once_with()


def test_clear_reconnects_once_and_retries(presence, mock_transport):
    presence.open()
    presence.publish(ACTIVITY)
    mock_transport.clear_activity.side_effect = [PresenceError("stale"), None]

    assert presence.clear() is Outcome.OK

    assert mock_transport.clear_activity.call_count == 2
    mock_transport.reconnect.assert_called_once_with()
    assert presence.published is False


def test_clear_gives_up_when_reconnect_fails(presence, mock_transport):
    presence.open()
    presence.publish(ACTIVITY)
    mock_transport.clear_activity.side_effect = PresenceError("stale")
    mock_transport.reconnect.side_effect = PresenceError("dead")

    assert presence.clear() is Outcome.FATAL

    assert mock_transport.clear_activity.call_count == 1
    assert presence.published is True


def test_clear_gives_up_when_retry_fails(presence, mock_transport):
    presence.open()
    presence.publish(ACTIVITY)
    mock_transport.clear_activity.side_effect = PresenceError("stale")

    assert presence.clear() is Outcome.FATAL

    assert mock_transport.clear_activity.call_count == 2
    assert presence.published is True


def test_close_swallows_transport_error(presence, mock_transport):
    presence.open()
    mock_transport.close.side_effect = PresenceError("already closed")

    presence.close()

    assert presence.state is ConnectionState.DISCONNECTED
