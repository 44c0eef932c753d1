"""
WebSocket event handlers for real-time game communication.

Clients first join through the HTTP API, then open a Socket.IO connection
and send ``joinRoomSocket`` to subscribe to their room.  Every change to a
room is pushed to all of its subscribers as a ``roomStatusUpdate`` event
carrying the full room snapshot.
"""

from flask import request
from flask_socketio import emit, join_room, leave_room
from loguru import logger
from .room_store import BuzzerError, PlayerNotFound, RoomNotFound


def _text_field(data, key):
    """Return ``data[key]`` if it is a string, else None."""
    if not isinstance(data, dict):
        return None
    value = data.get(key)
    return value if isinstance(value, str) else None


def _room_code(data):
    return _text_field(data, 'roomCode')


def init_socketio_handlers(socketio, engine):
    """Initialize WebSocket event handlers bound to ``engine``."""

    def run_command(event, command, *args):
        """Run an engine command, reporting failures to the caller only."""
        try:
            return command(*args)
        except RoomNotFound:
            emit('error', {'message': 'Room not found'})
        except PlayerNotFound:
            emit('error', {'message': 'Player not found in room'})
        except BuzzerError as e:
            emit('error', {'message': str(e)})
        except Exception:
            logger.exception(f"Unhandled error in '{event}' from {request.sid}")
            emit('error', {'message': f'{event} failed'})
        return None

    @socketio.on('connect')
    def handle_connect(auth=None):
        """Handle a new WebSocket connection."""
        logger.debug(f"New client connected: {request.sid}")

    @socketio.on('disconnect')
    def handle_disconnect(reason=None):
        """Handle WebSocket disconnection; the player stays in the room."""
        run_command('disconnect', engine.detach_subscriber, request.sid)
        logger.debug(f"Client disconnected: {request.sid}")

    @socketio.on('joinRoomSocket')
    def handle_join_room_socket(data=None):
        """Subscribe this connection to a room as one of its players."""
        room_code = _room_code(data)
        player_name = _text_field(data, 'playerName')

        if not room_code or not player_name:
            emit('error', {'message': 'Failed to join socket room.'})
            return

        previous = engine.store.lookup_subscriber(request.sid)

        # Join before binding so this connection receives the broadcast.
        join_room(room_code)
        snapshot = run_command('joinRoomSocket', engine.attach_subscriber,
                               room_code, player_name, request.sid)
        if snapshot is None:
            if previous is None or previous[0] != room_code:
                leave_room(room_code)
            logger.warning(f"Attempt to join invalid socket room for {player_name} in {room_code}")
        elif previous is not None and previous[0] != room_code:
            leave_room(previous[0])

    @socketio.on('startGame')
    def handle_start_game(data=None):
        """Start a round (moderator)."""
        room_code = _room_code(data)
        if not room_code:
            emit('error', {'message': 'Room code required'})
            return
        run_command('startGame', engine.start, room_code)

    @socketio.on('resetGame')
    def handle_reset_game(data=None):
        """Reset the whole game back to the lobby (moderator)."""
        room_code = _room_code(data)
        if not room_code:
            emit('error', {'message': 'Room code required'})
            return
        run_command('resetGame', engine.reset_game, room_code)

    @socketio.on('clearResults')
    def handle_clear_results(data=None):
        """Clear this round's buzzes but keep the game running (moderator)."""
        room_code = _room_code(data)
        if not room_code:
            emit('error', {'message': 'Room code required'})
            return
        run_command('clearResults', engine.clear_results, room_code)

    @socketio.on('buzz')
    def handle_buzz(data=None):
        """Register a player's buzz."""
        room_code = _room_code(data)
        player_name = _text_field(data, 'playerName')

        if not room_code or not player_name:
            emit('error', {'message': 'Room code and player name required'})
            return
        run_command('buzz', engine.buzz, room_code, player_name)
