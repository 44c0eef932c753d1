"""
Tests for the HTTP API endpoints and Socket.IO events.

This module drives the application through Flask's test client and
Flask-SocketIO's test client, the way a browser would.
"""

import pytest
import json
from src.buzzer.app import create_app


def create_room(client, name='Quiz'):
    """Helper to create a room and return its code."""
    response = client.post('/api/create_room', json={'roomName': name})
    assert response.status_code == 201
    return json.loads(response.data)['data']['roomCode']


def join(client, room_code, player_name):
    """Helper to join a room over HTTP."""
    return client.post('/api/join_room', json={'roomCode': room_code, 'playerName': player_name})


def connect_player(app, client, room_code, player_name):
    """Helper to join a room and subscribe a Socket.IO client as that player."""
    assert join(client, room_code, player_name).status_code == 200
    sio_client = app.socketio.test_client(app)
    sio_client.emit('joinRoomSocket', {'roomCode': room_code, 'playerName': player_name})
    return sio_client


def status_updates(sio_client):
    """Snapshots received since the last call, oldest first."""
    return [msg['args'][0] for msg in sio_client.get_received()
            if msg['name'] == 'roomStatusUpdate']


def errors(sio_client):
    return [msg['args'][0]['message'] for msg in sio_client.get_received()
            if msg['name'] == 'error']


@pytest.fixture
def app():
    """Create a test Flask application."""
    app, socketio = create_app({'TESTING': True})
    app.socketio = socketio  # Store socketio instance for testing
    return app


@pytest.fixture
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


class TestCreateRoom:
    """Test room creation."""

    def test_create_room_success(self, client):
        response = client.post('/api/create_room', json={'roomName': 'Quiz'})
        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['data']['roomName'] == 'Quiz'
        assert len(data['data']['roomCode']) == 4
        assert data['data']['roomCode'].isdigit()

    def test_create_room_thai_name(self, client):
        response = client.post('/api/create_room', json={'roomName': 'ห้องเรียน'})
        assert response.status_code == 201

    def test_create_room_missing_name(self, client):
        response = client.post('/api/create_room', json={})
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['success'] is False
        assert 'Invalid name' in data['error']

    def test_create_room_invalid_name(self, client):
        response = client.post('/api/create_room', json={'roomName': 'my room!'})
        assert response.status_code == 400

    def test_create_room_no_body(self, client):
        response = client.post('/api/create_room')
        assert response.status_code == 400


class TestJoinRoom:
    """Test joining rooms over HTTP."""

    def test_join_success(self, client):
        room_code = create_room(client)
        response = join(client, room_code, 'Alice')
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['data'] == {'roomCode': room_code, 'playerName': 'Alice'}

    def test_join_bad_code_length(self, client):
        response = join(client, '12', 'Alice')
        assert response.status_code == 400
        assert 'room code' in json.loads(response.data)['error']

    def test_join_invalid_player_name(self, client):
        room_code = create_room(client)
        response = join(client, room_code, 'Al ice')
        assert response.status_code == 400

    def test_join_room_not_found(self, client):
        room_code = create_room(client)
        other = '1000' if room_code != '1000' else '1001'
        response = join(client, other, 'Alice')
        assert response.status_code == 404
        assert 'Room not found' in json.loads(response.data)['error']

    def test_join_name_conflict(self, client):
        room_code = create_room(client)
        join(client, room_code, 'Alice')
        response = join(client, room_code, 'ALICE')
        assert response.status_code == 409
        assert json.loads(response.data)['success'] is False

    def test_rejoin_same_name(self, client):
        room_code = create_room(client)
        join(client, room_code, 'Alice')
        response = join(client, room_code, 'Alice')
        assert response.status_code == 200


class TestGetRoom:
    """Test fetching room state."""

    def test_get_room(self, client):
        room_code = create_room(client)
        join(client, room_code, 'Alice')
        response = client.get(f'/api/rooms/{room_code}')
        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert data['code'] == room_code
        assert data['name'] == 'Quiz'
        assert data['gameStarted'] is False
        assert list(data['players']) == ['Alice']

    def test_get_room_not_found(self, client):
        response = client.get('/api/rooms/0000')
        assert response.status_code == 404


class TestWebSocketAPI:
    """Test Socket.IO game flow."""

    def test_join_room_socket_broadcasts(self, app, client):
        room_code = create_room(client)
        sio_client = connect_player(app, client, room_code, 'Alice')

        updates = status_updates(sio_client)
        assert updates
        snapshot = updates[-1]
        assert snapshot['code'] == room_code
        assert snapshot['players']['Alice']['subscriberId'] is not None

        sio_client.disconnect()

    def test_join_room_socket_unknown_player(self, app, client):
        room_code = create_room(client)
        sio_client = app.socketio.test_client(app)
        sio_client.emit('joinRoomSocket', {'roomCode': room_code, 'playerName': 'Ghost'})
        assert errors(sio_client) == ['Player not found in room']
        sio_client.disconnect()

    def test_join_room_socket_missing_fields(self, app):
        sio_client = app.socketio.test_client(app)
        sio_client.emit('joinRoomSocket', {'roomCode': '1234'})
        assert errors(sio_client) == ['Failed to join socket room.']
        sio_client.disconnect()

    def test_join_room_socket_non_string_code(self, app):
        sio_client = app.socketio.test_client(app)
        sio_client.emit('joinRoomSocket', {'roomCode': ['1234'], 'playerName': 'A'})
        assert errors(sio_client) == ['Failed to join socket room.']
        sio_client.disconnect()

    def test_room_commands_non_string_code(self, app):
        sio_client = app.socketio.test_client(app)
        for event in ['startGame', 'resetGame', 'clearResults']:
            sio_client.emit(event, {'roomCode': ['1234']})
            assert errors(sio_client) == ['Room code required']
        sio_client.emit('buzz', {'roomCode': {'code': '1234'}, 'playerName': 'A'})
        assert errors(sio_client) == ['Room code and player name required']
        sio_client.emit('buzz', {'roomCode': '1234', 'playerName': 42})
        assert errors(sio_client) == ['Room code and player name required']
        sio_client.disconnect()

    def test_full_round(self, app, client):
        room_code = create_room(client)
        alice = connect_player(app, client, room_code, 'Alice')
        bob = connect_player(app, client, room_code, 'Bob')
        alice.get_received()
        bob.get_received()

        alice.emit('startGame', {'roomCode': room_code})
        snapshot = status_updates(bob)[-1]
        assert snapshot['gameStarted'] is True
        alice.get_received()

        bob.emit('buzz', {'roomCode': room_code, 'playerName': 'Bob'})
        alice.emit('buzz', {'roomCode': room_code, 'playerName': 'Alice'})
        snapshot = status_updates(bob)[-1]
        assert snapshot['firstBuzzer'] == 'Bob'
        assert [entry['name'] for entry in snapshot['buzzedOrder']] == ['Bob', 'Alice']

        alice.emit('clearResults', {'roomCode': room_code})
        snapshot = status_updates(alice)[-1]
        assert snapshot['firstBuzzer'] is None
        assert snapshot['buzzedOrder'] == []
        assert all(p['isWaiting'] for p in snapshot['players'].values())

        alice.emit('resetGame', {'roomCode': room_code})
        snapshot = status_updates(alice)[-1]
        assert snapshot['gameStarted'] is False

        alice.disconnect()
        bob.disconnect()

    def test_foul_buzz_before_start(self, app, client):
        room_code = create_room(client)
        alice = connect_player(app, client, room_code, 'Alice')
        alice.get_received()

        alice.emit('buzz', {'roomCode': room_code, 'playerName': 'Alice'})
        snapshot = status_updates(alice)[-1]
        assert snapshot['players']['Alice']['isFoul'] is True
        assert snapshot['buzzedOrder'] == []
        alice.disconnect()

    def test_duplicate_buzz_not_broadcast(self, app, client):
        room_code = create_room(client)
        alice = connect_player(app, client, room_code, 'Alice')
        alice.emit('startGame', {'roomCode': room_code})
        alice.emit('buzz', {'roomCode': room_code, 'playerName': 'Alice'})
        alice.get_received()

        alice.emit('buzz', {'roomCode': room_code, 'playerName': 'Alice'})
        assert alice.get_received() == []
        alice.disconnect()

    def test_start_unknown_room_reports_error(self, app):
        sio_client = app.socketio.test_client(app)
        sio_client.emit('startGame', {'roomCode': '0000'})
        assert errors(sio_client) == ['Room not found']
        sio_client.disconnect()

    def test_start_missing_room_code(self, app):
        sio_client = app.socketio.test_client(app)
        sio_client.emit('startGame', {})
        assert errors(sio_client) == ['Room code required']
        sio_client.disconnect()

    def test_disconnect_keeps_player(self, app, client):
        room_code = create_room(client)
        alice = connect_player(app, client, room_code, 'Alice')
        bob = connect_player(app, client, room_code, 'Bob')
        alice.get_received()

        bob.disconnect()
        snapshot = status_updates(alice)[-1]
        assert 'Bob' in snapshot['players']
        assert snapshot['players']['Bob']['subscriberId'] is None
        alice.disconnect()

    def test_http_join_broadcasts_to_room(self, app, client):
        room_code = create_room(client)
        alice = connect_player(app, client, room_code, 'Alice')
        alice.get_received()

        join(client, room_code, 'Bob')
        snapshot = status_updates(alice)[-1]
        assert list(snapshot['players']) == ['Alice', 'Bob']
        alice.disconnect()
