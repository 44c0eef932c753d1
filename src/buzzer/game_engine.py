"""Round state machine and buzz ordering for buzzer rooms.

The GameEngine applies one transition at a time to a room, inside that room's
exclusive section, and publishes the room's full snapshot after every
transition that changed something.  Buzz order is the order in which buzzes
are applied here; the timestamp stored with each buzz is the server clock at
that moment, never a client-supplied value.

"""
import time
from typing import Callable, Optional

from loguru import logger

from .broadcaster import Broadcaster
from .room_store import Player, Room, RoomStore, RoundStatus


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class GameEngine(object):
    """Applies game transitions to rooms held in a RoomStore.

    Transitions that are not applicable in the room's current state (starting
    a running game, a second buzz from the same player, ...) are ignored and
    return False without publishing anything.  Unknown rooms raise
    RoomNotFound.

    """

    def __init__(self, store: RoomStore, broadcaster: Broadcaster,
                 clock: Optional[Callable[[], int]] = None):
        self.store = store
        self.broadcaster = broadcaster
        self.clock = clock or now_ms

    def _publish(self, room: Room):
        # Called with the room lock held so snapshots go out in order.
        self.broadcaster.publish(room.code, room.snapshot())

    def create_room(self, name: str) -> Room:
        """Create a new lobby room.  Raises InvalidName."""
        return self.store.create_room(name)

    def snapshot(self, code: str) -> dict:
        """Return the current snapshot of room ``code``."""
        with self.store.locked(code) as room:
            return room.snapshot()

    def join_room(self, code: str, name: str) -> Player:
        """Add or reactivate a player and publish the room."""
        with self.store.locked(code) as room:
            player = self.store.add_or_rejoin_player(code, name)
            self._publish(room)
            return player

    def attach_subscriber(self, code: str, name: str, subscriber_id: str) -> dict:
        """Bind a live connection to a player and publish the room.

        A connection moving over from another room is detached from it
        first, and that room is published too.
        """
        self.store.require_player(code, name)
        previous = self.store.lookup_subscriber(subscriber_id)
        if previous is not None and previous[0] != code:
            self.detach_subscriber(subscriber_id)

        self.store.bind_subscriber(code, name, subscriber_id)
        logger.info(f"{name} ({subscriber_id}) joined room {code}")
        with self.store.locked(code) as room:
            self._publish(room)
            return room.snapshot()

    def detach_subscriber(self, subscriber_id: str) -> bool:
        """Drop a live connection.  Unknown subscribers are ignored."""
        binding = self.store.lookup_subscriber(subscriber_id)
        if binding is None:
            return False

        code, name = binding
        with self.store.locked(code) as room:
            # Only this room's lock can move the binding away from it.
            if self.store.lookup_subscriber(subscriber_id) != binding:
                return False
            if self.store.unbind_subscriber(subscriber_id) is None:
                return False
            logger.info(f"Player {name} ({subscriber_id}) disconnected from room {code}")
            self._publish(room)
        return True

    def start(self, code: str) -> bool:
        """Start a round.  Fouls from the lobby stay in force."""
        with self.store.locked(code) as room:
            if room.game_started:
                logger.debug(f"Ignoring start of already started room {code}")
                return False

            room.status = RoundStatus.IN_ROUND
            room.game_start_time = self.clock()
            room.first_buzzer = None
            room.buzzed_order = []
            for player in room.players.values():
                if player.is_foul:
                    player.is_waiting = False
                else:
                    player.buzzed_time = None
                    player.is_waiting = True

            logger.info(f"Game started in room {code}")
            self._publish(room)
        return True

    def reset_game(self, code: str) -> bool:
        """Return the room to the lobby and forgive every foul."""
        with self.store.locked(code) as room:
            room.status = RoundStatus.LOBBY
            room.game_start_time = None
            room.first_buzzer = None
            room.buzzed_order = []
            for player in room.players.values():
                player.make_waiting()

            logger.info(f"Game reset in room {code}")
            self._publish(room)
        return True

    def clear_results(self, code: str) -> bool:
        """Forget this round's buzzes but keep the game running."""
        with self.store.locked(code) as room:
            room.first_buzzer = None
            room.buzzed_order = []
            if room.game_started:
                room.status = RoundStatus.ROUND_CLEAR
            for player in room.players.values():
                if not player.is_foul:
                    player.buzzed_time = None
                    player.is_waiting = True

            logger.info(f"Results cleared in room {code}")
            self._publish(room)
        return True

    def buzz(self, code: str, name: str, now: Optional[int] = None) -> bool:
        """Register a buzz from ``name``.

        Before the round has started the buzz is a foul.  A player who has
        already buzzed or fouled, or who is not in the room, is ignored.
        ``now`` overrides the server clock.

        """
        with self.store.locked(code) as room:
            player = room.players.get(name)
            if player is None:
                logger.debug(f"Ignoring buzz from unknown player {name} in room {code}")
                return False
            if player.buzzed_time is not None or player.is_foul:
                logger.debug(f"Ignoring duplicate buzz from {name} in room {code}")
                return False

            buzz_time = self.clock() if now is None else now
            if not room.game_started:
                player.buzzed_time = buzz_time
                player.is_foul = True
                player.is_waiting = False
                logger.info(f"{name} FOUL in room {code}!")
            else:
                if room.buzzed_order:
                    # Keep the order non-decreasing if the clock steps back.
                    buzz_time = max(buzz_time, room.buzzed_order[-1][1])
                player.buzzed_time = buzz_time
                player.is_waiting = False
                if room.first_buzzer is None:
                    room.first_buzzer = name
                room.buzzed_order.append((name, buzz_time))
                room.status = RoundStatus.IN_ROUND
                logger.info(f"{name} buzzed in room {code} at {buzz_time}")

            self._publish(room)
        return True
