"""
Flask application factory and main application entry point.

This module creates and configures the Flask application instance
with WebSocket support for real-time buzzer rooms.
"""

import sys

from flask import Flask
from flask_socketio import SocketIO
from flask_cors import CORS
from loguru import logger

from .broadcaster import SocketIOBroadcaster
from .game_engine import GameEngine
from .room_store import RoomStore


def create_app(config=None):
    """
    Create and configure the Flask application.

    Args:
        config: Dictionary of configuration overrides

    Returns:
        (Flask application, SocketIO instance)
    """
    app = Flask(__name__)

    # Default configuration
    app.config.update({
        'SECRET_KEY': 'dev-key-change-in-production',
        'DEBUG': True,
        'LOG_LEVEL': 'INFO',
        'CORS_ORIGINS': '*',
        'ROOM_CODE_LENGTH': 4
    })

    if config:
        app.config.update(config)

    # Configure logging
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format="{time} | {level} | {message}",
        level=app.config['LOG_LEVEL'],
        colorize=True
    )
    logger.info("Starting buzzer game server")

    # Enable CORS for all HTTP requests
    CORS(app, origins=app.config['CORS_ORIGINS'])

    # Initialize SocketIO for WebSocket support
    socketio = SocketIO(app, cors_allowed_origins=app.config['CORS_ORIGINS'])

    # One store and engine per application; rooms live as long as the process
    store = RoomStore()
    engine = GameEngine(store, SocketIOBroadcaster(socketio))
    app.extensions['buzzer'] = engine

    from . import api
    app.register_blueprint(api.api_bp)

    # Initialize WebSocket handlers
    from . import websocket_handlers
    websocket_handlers.init_socketio_handlers(socketio, engine)

    return app, socketio
