"""In-memory room registry for the buzzer game server.

The model here is:
- There is a set of rooms, each with a unique short code.
- Each room holds a set of players keyed by name.  Names are unique within a
  room, compared case-insensitively.
- Each player may be bound to at most one live subscriber (a socket
  session), and each subscriber is bound to at most one player.

Every mutation of a room happens while holding that room's lock.  Rooms never
share a lock, so activity in one room never waits on another.

"""
import random
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from loguru import logger


# Thai letters and digits, plus ASCII letters and digits.
VALID_NAME_RE = re.compile(r'[ก-๙a-zA-Z0-9]+')


class BuzzerError(Exception):
    """Base class for errors reported back to the caller."""


class InvalidName(BuzzerError, ValueError):
    """Raised when a room or player name fails the character policy."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"Invalid name '{name}'")


class RoomNotFound(BuzzerError, KeyError):
    """Raised when no live room has the given code."""

    def __init__(self, code):
        self.code = code
        super().__init__(f"Room '{code}' does not exist")

    def __str__(self):
        return self.args[0]


class PlayerNotFound(BuzzerError, KeyError):
    """Raised when a room has no player with the given name."""

    def __init__(self, code, name):
        self.code = code
        self.name = name
        super().__init__(f"Player '{name}' is not in room '{code}'")

    def __str__(self):
        return self.args[0]


class NameConflict(BuzzerError, RuntimeError):
    """Raised when a name collides case-insensitively with another player."""

    def __init__(self, code, name, existing):
        self.code = code
        self.name = name
        self.existing = existing
        super().__init__(f"Name '{name}' is already used by '{existing}' in room '{code}'")


def is_valid_name(name) -> bool:
    """True if ``name`` is a non-empty string of Thai/English letters and digits."""
    return isinstance(name, str) and VALID_NAME_RE.fullmatch(name) is not None


def generate_room_code(existing: Iterable[str], length: int = 4) -> str:
    """Return a random numeric code of ``length`` digits not in ``existing``.

    Codes never start with zero, so 4-digit codes range over 1000-9999.
    Raises RuntimeError if every code is taken.
    """
    taken = set(existing)
    low = 10 ** (length - 1)
    high = 10 ** length - 1
    if len(taken) >= high - low + 1:
        raise RuntimeError(f"No free {length}-digit room codes left")
    while True:
        code = str(random.randint(low, high))
        if code not in taken:
            return code


class RoundStatus(Enum):
    LOBBY = 'lobby'
    IN_ROUND = 'in_round'
    ROUND_CLEAR = 'round_clear'


@dataclass
class Player(object):
    """A participant in one room.

    Attributes
    ----------
    name : str
        Name as typed at join time
    buzzed_time : Optional[int]
        Server time in ms at which the player buzzed this round, or None
    is_foul : bool
        True if the player buzzed before the round started
    is_waiting : bool
        True if the player may still buzz this round
    subscriber_id : Optional[str]
        Live connection bound to this player, or None while disconnected
    """
    name: str
    buzzed_time: Optional[int] = None
    is_foul: bool = False
    is_waiting: bool = True
    subscriber_id: Optional[str] = None

    def make_waiting(self):
        self.buzzed_time = None
        self.is_foul = False
        self.is_waiting = True

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'buzzedTime': self.buzzed_time,
            'isFoul': self.is_foul,
            'isWaiting': self.is_waiting,
            'subscriberId': self.subscriber_id,
        }


@dataclass
class Room(object):
    """Mutable state of one game session.

    Attributes
    ----------
    code : str
        Unique room code
    name : str
        Display name chosen by the moderator
    players : Dict[str, Player]
        Players keyed by name, in join order
    status : RoundStatus
        Where the room is in its round cycle
    game_start_time : Optional[int]
        Server time in ms of the last start, or None in the lobby
    buzzed_order : List[Tuple[str, int]]
        Valid buzzes of this round as (name, time), in applied order
    first_buzzer : Optional[str]
        Name of the first valid buzzer of this round
    """
    code: str
    name: str
    players: Dict[str, Player] = field(default_factory=dict)
    status: RoundStatus = RoundStatus.LOBBY
    game_start_time: Optional[int] = None
    buzzed_order: List[Tuple[str, int]] = field(default_factory=list)
    first_buzzer: Optional[str] = None

    @property
    def game_started(self) -> bool:
        return self.status is not RoundStatus.LOBBY

    def find_player(self, name: str) -> Optional[Player]:
        """Return the player whose name matches ``name`` ignoring case."""
        folded = name.casefold()
        for player in self.players.values():
            if player.name.casefold() == folded:
                return player
        return None

    def snapshot(self) -> dict:
        """Self-contained serialization of the whole room."""
        return {
            'code': self.code,
            'name': self.name,
            'gameStarted': self.game_started,
            'roundStatus': self.status.value,
            'gameStartTime': self.game_start_time,
            'firstBuzzer': self.first_buzzer,
            'buzzedOrder': [{'name': name, 'time': time} for name, time in self.buzzed_order],
            'players': {name: player.to_dict() for name, player in self.players.items()},
        }


class RoomStore(object):
    """Owns every live room and the subscriber -> player index."""

    def __init__(self, code_generator: Optional[Callable[[Iterable[str]], str]] = None):
        """Initialize an empty store.

        ``code_generator`` receives the codes currently in use and must
        return a fresh one; it defaults to random 4-digit codes.
        """
        self._code_generator = code_generator or generate_room_code
        self._rooms: Dict[str, Room] = {}
        self._locks: Dict[str, threading.RLock] = {}
        # Guards code allocation only; room operations never take it.
        self._registry_lock = threading.Lock()
        # subscriber_id -> (room code, player name).  Acquired after a room
        # lock, never before.
        self._subscribers: Dict[str, Tuple[str, str]] = {}
        self._subscribers_lock = threading.Lock()

    def create_room(self, name: str) -> Room:
        """Create a lobby room called ``name``.  Raises InvalidName."""
        if not is_valid_name(name):
            raise InvalidName(name)

        with self._registry_lock:
            code = self._code_generator(self._rooms.keys())
            if code in self._rooms:
                raise RuntimeError(f"Code generator returned live room code '{code}'")
            room = Room(code=code, name=name)
            self._rooms[code] = room
            self._locks[code] = threading.RLock()

        logger.info(f"Room created: {code} - {name}")
        return room

    def get_room(self, code: str) -> Room:
        """Return the live room for ``code``.  Raises RoomNotFound."""
        room = self._rooms.get(code)
        if room is None:
            raise RoomNotFound(code)
        return room

    def list_rooms(self) -> List[str]:
        """Lists current room codes."""
        return list(self._rooms.keys())

    @contextmanager
    def locked(self, code: str) -> Iterator[Room]:
        """Hold the exclusive section of room ``code`` and yield the room.

        The lock is re-entrant, so store methods may be called from inside.
        """
        lock = self._locks.get(code)
        room = self._rooms.get(code)
        if lock is None or room is None:
            raise RoomNotFound(code)
        with lock:
            yield room

    def add_or_rejoin_player(self, code: str, name: str) -> Player:
        """Add ``name`` to the room, or reactivate the player already there.

        Raise InvalidName for a bad name, RoomNotFound for an unknown code,
        and NameConflict if another player already uses the name in a
        different case.  A rejoin before the game starts clears any foul.

        """
        if not is_valid_name(name):
            raise InvalidName(name)

        with self.locked(code) as room:
            existing = room.find_player(name)
            if existing is not None and existing.name != name:
                raise NameConflict(code, name, existing.name)

            if existing is None:
                player = Player(name=name)
                room.players[name] = player
                logger.info(f"Player {name} joined room {code}")
            else:
                player = existing
                if not room.game_started:
                    player.make_waiting()
                logger.info(f"Player {name} rejoined room {code}")
            return player

    def bind_subscriber(self, code: str, name: str, subscriber_id: str) -> Room:
        """Bind a live subscriber to a player and return the room.

        Raise RoomNotFound or PlayerNotFound.  Any earlier binding of either
        the subscriber or the player is dropped first.

        """
        self.require_player(code, name)
        while True:
            # Leave another room before entering this one so that no thread
            # ever holds two room locks.
            previous = self.lookup_subscriber(subscriber_id)
            if previous is not None and previous[0] != code:
                self.unbind_subscriber(subscriber_id)

            with self.locked(code) as room:
                previous = self.lookup_subscriber(subscriber_id)
                if previous is not None and previous[0] != code:
                    # Bound elsewhere in the meantime; leave that room first.
                    continue
                if previous is not None and previous[1] != name:
                    self.unbind_subscriber(subscriber_id)

                player = room.players[name]
                with self._subscribers_lock:
                    if player.subscriber_id and player.subscriber_id != subscriber_id:
                        self._subscribers.pop(player.subscriber_id, None)
                    self._subscribers[subscriber_id] = (code, name)
                player.subscriber_id = subscriber_id
                break

        logger.debug(f"{name} ({subscriber_id}) bound in room {code}")
        return room

    def require_player(self, code: str, name: str) -> Player:
        """Return the player ``name`` of room ``code``.

        Raise RoomNotFound or PlayerNotFound.  Players are never removed, so
        a positive answer stays true.

        """
        player = self.get_room(code).players.get(name)
        if player is None:
            raise PlayerNotFound(code, name)
        return player

    def lookup_subscriber(self, subscriber_id: str) -> Optional[Tuple[str, str]]:
        """Return (room code, player name) bound to ``subscriber_id``, if any."""
        with self._subscribers_lock:
            return self._subscribers.get(subscriber_id)

    def unbind_subscriber(self, subscriber_id: str) -> Optional[Room]:
        """Clear the binding of ``subscriber_id``.

        Return the affected room, or None if the subscriber was not bound.
        The player record is kept.

        """
        binding = self.lookup_subscriber(subscriber_id)
        if binding is None:
            return None

        code, name = binding
        with self.locked(code) as room:
            with self._subscribers_lock:
                # Re-check under the room lock; a concurrent bind may have won.
                if self._subscribers.get(subscriber_id) != binding:
                    return None
                del self._subscribers[subscriber_id]

            player = room.players[name]
            if player.subscriber_id != subscriber_id:
                return None
            player.subscriber_id = None

        logger.debug(f"{name} ({subscriber_id}) unbound from room {code}")
        return room
