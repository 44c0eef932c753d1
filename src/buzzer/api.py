"""
HTTP API routes for the buzzer game server.

This module implements the REST endpoints used before a client opens its
Socket.IO connection: creating a room, joining a room, and fetching the
current state of a room.
"""

from flask import Blueprint, request, jsonify, current_app
from loguru import logger
from .room_store import InvalidName, NameConflict, RoomNotFound, is_valid_name

api_bp = Blueprint('api', __name__, url_prefix='/api')

INVALID_NAME_MESSAGE = 'Invalid name (only Thai letters, English letters and digits are allowed)'


def get_engine():
    """Return the GameEngine of the running application."""
    return current_app.extensions['buzzer']


def is_valid_room_code(code):
    """Check the shape of a room code before looking it up."""
    length = current_app.config.get('ROOM_CODE_LENGTH', 4)
    return isinstance(code, str) and len(code) == length


def error_response(message, status):
    return jsonify({'success': False, 'error': message}), status


@api_bp.route('/create_room', methods=['POST'])
def create_room():
    """Create a new room."""
    data = request.get_json(silent=True) or {}
    room_name = data.get('roomName')

    if not is_valid_name(room_name):
        return error_response(INVALID_NAME_MESSAGE, 400)

    try:
        room = get_engine().create_room(room_name)
    except InvalidName:
        return error_response(INVALID_NAME_MESSAGE, 400)

    return jsonify({
        'success': True,
        'data': {
            'roomCode': room.code,
            'roomName': room.name
        }
    }), 201


@api_bp.route('/join_room', methods=['POST'])
def join_room():
    """Join a room, or rejoin it under the same name."""
    data = request.get_json(silent=True) or {}
    room_code = data.get('roomCode')
    player_name = data.get('playerName')

    if not is_valid_room_code(room_code):
        length = current_app.config.get('ROOM_CODE_LENGTH', 4)
        return error_response(f'Invalid room code (must be {length} characters)', 400)

    if not is_valid_name(player_name):
        return error_response(INVALID_NAME_MESSAGE, 400)

    try:
        player = get_engine().join_room(room_code, player_name)
    except RoomNotFound:
        return error_response('Room not found', 404)
    except NameConflict:
        return error_response('This name is already taken in this room', 409)
    except InvalidName:
        return error_response(INVALID_NAME_MESSAGE, 400)

    return jsonify({
        'success': True,
        'data': {
            'roomCode': room_code,
            'playerName': player.name
        }
    }), 200


@api_bp.route('/rooms/<room_code>', methods=['GET'])
def get_room(room_code):
    """Get the full current state of a room."""
    try:
        snapshot = get_engine().snapshot(room_code)
    except RoomNotFound:
        logger.debug(f"Status requested for unknown room {room_code}")
        return error_response('Room not found', 404)

    return jsonify({'success': True, 'data': snapshot}), 200
