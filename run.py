"""
Development server entry point.

Run this script to start the Flask development server with WebSocket support.
The PORT and HOST environment variables select where it listens.
"""

import os

from src.buzzer.app import create_app

if __name__ == '__main__':
    app, socketio = create_app()
    port = int(os.environ.get('PORT', 3000))
    host = os.environ.get('HOST', '0.0.0.0')
    socketio.run(app, debug=True, host=host, port=port, allow_unsafe_werkzeug=True)
