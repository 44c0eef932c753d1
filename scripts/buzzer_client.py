#!/usr/bin/env python3
"""
Socket.IO compatible console client for the buzzer game server.

This client joins a room over the HTTP API, then connects with Socket.IO and
prints every room update as it arrives.

Usage:
    python buzzer_client.py http://localhost:3000

Commands:
    create <room_name> - Create a new room
    join <room_code> <player_name> - Join a room and subscribe to it
    start - Start a round (moderator)
    clear - Clear this round's results (moderator)
    reset - Reset the game back to the lobby (moderator)
    b - Buzz!
    status - Fetch the current room state over HTTP
    exit - Exit the program
"""

import sys
import requests
import socketio
from typing import Optional, Dict, Any


class BuzzerSocketIOClient:
    """Socket.IO client for the buzzer game server."""

    def __init__(self, server_url: str):
        self.server_url = server_url.rstrip('/')
        self.room_code: Optional[str] = None
        self.player_name: Optional[str] = None
        self.sio = socketio.Client()
        self.setup_socketio_handlers()

    def setup_socketio_handlers(self):
        """Set up Socket.IO event handlers."""

        @self.sio.on('roomStatusUpdate')
        def on_room_status_update(data):
            self.display_room(data)

        @self.sio.on('error')
        def on_error(data):
            print(f"❌ Server error: {data.get('message', 'Unknown error')}")

        @self.sio.on('connect')
        def on_connect():
            print("🔌 Socket.IO connected")

        @self.sio.on('disconnect')
        def on_disconnect():
            print("🔌 Socket.IO disconnected")

    def connect_socketio(self) -> bool:
        """Connect to the Socket.IO server."""
        try:
            self.sio.connect(self.server_url)
            return True
        except Exception as e:
            print(f"✗ Socket.IO connection failed: {e}")
            return False

    def disconnect_socketio(self):
        """Disconnect from Socket.IO server."""
        if self.sio.connected:
            self.sio.disconnect()

    def _post(self, path: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """POST to the API and return the ``data`` of a successful response."""
        try:
            response = requests.post(f"{self.server_url}{path}", json=data)
            result = response.json()
        except requests.exceptions.RequestException as e:
            print(f"✗ Connection error: {e}")
            return None
        except ValueError:
            print("✗ Invalid JSON response from server")
            return None

        if not result.get('success'):
            print(f"✗ Request failed: {result.get('error', 'Unknown error')}")
            return None
        return result['data']

    def create_room(self, room_name: str) -> Optional[str]:
        """Create a new room and return its code."""
        data = self._post('/api/create_room', {'roomName': room_name})
        if data:
            print(f"✓ Room created! Code: {data['roomCode']}")
            return data['roomCode']
        return None

    def join_room(self, room_code: str, player_name: str) -> bool:
        """Join a room over HTTP, then subscribe to its updates."""
        data = self._post('/api/join_room', {'roomCode': room_code, 'playerName': player_name})
        if not data:
            return False

        self.room_code = room_code
        self.player_name = player_name
        self.sio.emit('joinRoomSocket', {'roomCode': room_code, 'playerName': player_name})
        print(f"✓ Joined room {room_code} as {player_name}")
        return True

    def send(self, event: str, include_player: bool = False):
        """Send a room command for the current room."""
        if not self.room_code:
            print("Join a room first")
            return
        payload = {'roomCode': self.room_code}
        if include_player:
            payload['playerName'] = self.player_name
        self.sio.emit(event, payload)

    def show_status(self):
        """Fetch and display the current room state."""
        if not self.room_code:
            print("Join a room first")
            return
        try:
            response = requests.get(f"{self.server_url}/api/rooms/{self.room_code}")
            result = response.json()
        except requests.exceptions.RequestException as e:
            print(f"✗ Connection error: {e}")
            return
        if result.get('success'):
            self.display_room(result['data'])
        else:
            print(f"✗ Failed to get room: {result.get('error', 'Unknown error')}")

    def display_room(self, room: Dict[str, Any]):
        """Print a room snapshot."""
        print("\n" + "=" * 40)
        state = "RUNNING" if room['gameStarted'] else "LOBBY"
        print(f"Room {room['code']} - {room['name']} [{state}]")
        if room['firstBuzzer']:
            print(f"🔔 First buzzer: {room['firstBuzzer']}")
        for i, entry in enumerate(room['buzzedOrder'], 1):
            print(f"  {i}. {entry['name']} ({entry['time']})")
        print("Players:")
        for name, player in room['players'].items():
            if player['isFoul']:
                status = "FOUL"
            elif player['isWaiting']:
                status = "waiting"
            else:
                status = "buzzed"
            online = "🟢" if player['subscriberId'] else "⚪"
            print(f"  {online} {name}: {status}")
        print("=" * 40)


def main():
    """Main entry point."""
    if len(sys.argv) != 2:
        print("Usage: python buzzer_client.py SERVER_URL")
        sys.exit(1)

    client = BuzzerSocketIOClient(sys.argv[1])
    if not client.connect_socketio():
        sys.exit(1)

    print("\nAvailable commands:")
    print("  create <room_name> - Create a new room")
    print("  join <room_code> <player_name> - Join a room")
    print("  start / clear / reset - Moderator controls")
    print("  b - Buzz!")
    print("  status - Show the room")
    print("  exit - Exit the program")

    try:
        while True:
            command = input("> ").strip()
            if not command:
                continue

            parts = command.split()
            cmd = parts[0].lower()

            if cmd == "exit":
                print("Goodbye!")
                break
            elif cmd == "create":
                if len(parts) != 2:
                    print("Usage: create <room_name>")
                    continue
                client.create_room(parts[1])
            elif cmd == "join":
                if len(parts) != 3:
                    print("Usage: join <room_code> <player_name>")
                    continue
                client.join_room(parts[1], parts[2])
            elif cmd == "start":
                client.send('startGame')
            elif cmd == "clear":
                client.send('clearResults')
            elif cmd == "reset":
                client.send('resetGame')
            elif cmd == "b":
                client.send('buzz', include_player=True)
            elif cmd == "status":
                client.show_status()
            else:
                print("Unknown command. Available: create, join, start, clear, reset, b, status, exit")

    except (KeyboardInterrupt, EOFError):
        print("\n👋 Exiting...")
    finally:
        client.disconnect_socketio()


if __name__ == "__main__":
    main()
