"""
Snapshot delivery to the subscribers of a room.

The game engine only knows the ``Broadcaster`` interface; the Socket.IO
implementation below is wired in by the application factory.
"""

from typing import Protocol

from loguru import logger


ROOM_STATUS_EVENT = 'roomStatusUpdate'


class Broadcaster(Protocol):
    """Delivers a room snapshot to every subscriber of that room.

    ``publish`` must return without waiting for delivery.
    """

    def publish(self, code: str, snapshot: dict) -> None:
        ...


class SocketIOBroadcaster(object):
    """Publishes snapshots to the Socket.IO room named after the room code."""

    def __init__(self, socketio, event: str = ROOM_STATUS_EVENT):
        self.socketio = socketio
        self.event = event

    def publish(self, code: str, snapshot: dict) -> None:
        logger.debug(f"Broadcasting {self.event} to room {code}")
        self.socketio.emit(self.event, snapshot, to=code)
