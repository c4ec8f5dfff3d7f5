import json

WORDS = [{'question': 'hello', 'answer': 'hallo'}]


def _events(test_client):
    return [
        (pkt['name'], pkt['args'][0] if pkt['args'] else None)
        for pkt in test_client.get_received('/ws')
    ]


def _payloads(events, name):
    return [payload for event, payload in events if event == name]


def _create(host, name='Alice', words=WORDS, mode='quick'):
    host.emit('createLobby', {'name': name, 'words': words, 'mode': mode}, namespace='/ws')
    events = _events(host)
    [created] = _payloads(events, 'lobbyCreated')
    return created['code'], events


def test_socket_connect_and_ping(flask_app):
    from wordduel import socketio
    raw = socketio.test_client(flask_app, namespace='/ws')
    assert raw.is_connected('/ws')
    assert any(pkt['name'] == 'connected' for pkt in raw.get_received('/ws'))

    raw.emit('ping', {'n': 1}, namespace='/ws')
    assert _events(raw) == [('pong', {'n': 1})]
    raw.disconnect(namespace='/ws')


def test_create_lobby_binds_host(sio_client, registry):
    code, events = _create(sio_client)
    assert [name for name, _ in events] == ['lobbyCreated', 'playerJoined']
    assert events[0][1] == {'code': code, 'timeLimit': 60}
    players = events[1][1]['players']
    assert [(p['name'], p['isHost']) for p in players] == [('Alice', True)]
    assert registry.lookup(code).time_limit == 60


def test_unknown_mode_keeps_default_duration(sio_client):
    code, events = _create(sio_client, mode='marathon')
    assert events[0][1]['timeLimit'] == 180


def test_full_duel_over_sockets(sio_factory):
    host, guest = sio_factory(), sio_factory()
    code, _ = _create(host)

    guest.emit('joinLobby', {'code': code.lower(), 'name': 'Bob'}, namespace='/ws')
    joined = _payloads(_events(guest), 'playerJoined')[-1]
    assert [p['name'] for p in joined['players']] == ['Alice', 'Bob']
    assert joined['newPlayer']['name'] == 'Bob'
    assert _payloads(_events(host), 'playerJoined')

    host.emit('startGame', namespace='/ws')
    for test_client in (host, guest):
        events = _events(test_client)
        assert events == [
            ('gameStarted', {'timeLimit': 60}),
            ('nextWord', {'word': {'question': 'hello'}}),
        ]

    host.emit('answer', {'answer': 'Hallo'}, namespace='/ws')
    assert _events(host) == [('correct', {'score': 1}), ('finished', {'score': 1})]

    guest.emit('answer', {'answer': 'hallo'}, namespace='/ws')
    guest_events = _events(guest)
    assert guest_events[:2] == [('correct', {'score': 1}), ('finished', {'score': 1})]
    [over] = _payloads(guest_events, 'gameOver')
    assert over['winners'] == ['Alice', 'Bob']
    assert over['maxScore'] == 1
    assert _payloads(_events(host), 'gameOver') == [over]


def test_incorrect_answer_over_sockets(sio_factory):
    host, guest = sio_factory(), sio_factory()
    code, _ = _create(host, words=[{'question': 'hello', 'answer': 'hallo'},
                                   {'question': 'house', 'answer': 'haus'}])
    guest.emit('joinLobby', {'code': code, 'name': 'Bob'}, namespace='/ws')
    host.emit('startGame', namespace='/ws')
    _events(host)
    _events(guest)

    guest.emit('answer', {'answer': 'wrong'}, namespace='/ws')
    events = _events(guest)
    assert events[0][0] == 'incorrect'
    assert events[0][1]['score'] == 0
    assert events[0][1]['correctAnswer'] in ('hallo', 'haus')
    assert events[1][0] == 'nextWord'


def test_guest_cannot_start(sio_factory):
    host, guest = sio_factory(), sio_factory()
    code, _ = _create(host)
    guest.emit('joinLobby', {'code': code, 'name': 'Bob'}, namespace='/ws')
    _events(guest)
    guest.emit('startGame', namespace='/ws')
    assert _events(guest) == [('error', {'message': 'Only the host can start the game'})]
    # Errors go to the sender only
    assert _payloads(_events(host), 'error') == []


def test_start_alone_is_not_ready(sio_client):
    _create(sio_client)
    sio_client.emit('startGame', namespace='/ws')
    assert _events(sio_client) == [
        ('error', {'message': 'At least 2 players and 1 word are needed to start'})
    ]


def test_join_unknown_lobby(sio_client):
    sio_client.emit('joinLobby', {'code': 'NOPE42', 'name': 'Bob'}, namespace='/ws')
    assert _events(sio_client) == [('error', {'message': 'Lobby not found'})]


def test_third_player_is_turned_away(sio_factory):
    host, guest, third = sio_factory(), sio_factory(), sio_factory()
    code, _ = _create(host)
    guest.emit('joinLobby', {'code': code, 'name': 'Bob'}, namespace='/ws')
    third.emit('joinLobby', {'code': code, 'name': 'Cara'}, namespace='/ws')
    assert _events(third) == [('error', {'message': 'Lobby is full'})]


def test_unbound_connection_cannot_answer(sio_client):
    sio_client.emit('answer', {'answer': 'hallo'}, namespace='/ws')
    assert _events(sio_client) == [('error', {'message': 'You are not in a lobby'})]


def test_bound_connection_cannot_create_again(sio_client):
    _create(sio_client)
    sio_client.emit('createLobby', {'name': 'Alice', 'words': WORDS}, namespace='/ws')
    assert _events(sio_client) == [('error', {'message': 'Connection is already in a lobby'})]


def _finish_duel(host, guest):
    code, _ = _create(host)
    guest.emit('joinLobby', {'code': code, 'name': 'Bob'}, namespace='/ws')
    host.emit('startGame', namespace='/ws')
    host.emit('answer', {'answer': 'hallo'}, namespace='/ws')
    guest.emit('answer', {'answer': 'hallo'}, namespace='/ws')
    assert _payloads(_events(host), 'gameOver')
    _events(guest)
    return code


def test_connection_can_host_again_after_lobby_is_retired(sio_factory, registry, scheduler):
    host, guest = sio_factory(), sio_factory()
    old_code = _finish_duel(host, guest)

    host.emit('createLobby', {'name': 'Alice', 'words': WORDS}, namespace='/ws')
    assert _payloads(_events(host), 'error') == [{'message': 'Connection is already in a lobby'}]

    scheduler.advance(10)
    assert old_code not in registry

    new_code, events = _create(host)
    assert _payloads(events, 'playerJoined')[-1]['players'][0]['name'] == 'Alice'

    guest.emit('joinLobby', {'code': new_code, 'name': 'Bob'}, namespace='/ws')
    joined = _payloads(_events(guest), 'playerJoined')[-1]
    assert [p['name'] for p in joined['players']] == ['Alice', 'Bob']
    host.emit('startGame', namespace='/ws')
    assert [name for name, _ in _events(host)][-2:] == ['gameStarted', 'nextWord']


def test_plain_json_envelopes(sio_client, registry):
    sio_client.send(json.dumps({'type': 'createLobby', 'name': 'Alice', 'words': WORDS}), namespace='/ws')
    events = _events(sio_client)
    assert [name for name, _ in events] == ['lobbyCreated', 'playerJoined']
    assert events[0][1]['code'] in registry

    sio_client.send(json.dumps({'type': 'dance'}), namespace='/ws')
    assert _events(sio_client) == [('error', {'message': 'Unknown message type: dance'})]

    sio_client.send('{broken', namespace='/ws')
    assert _events(sio_client) == [('error', {'message': 'Message is not valid JSON'})]


def test_host_disconnect_promotes_guest(sio_factory, scheduler):
    host, guest = sio_factory(), sio_factory()
    code, _ = _create(host)
    guest.emit('joinLobby', {'code': code, 'name': 'Bob'}, namespace='/ws')
    _events(guest)

    host.disconnect(namespace='/ws')
    scheduler.advance(4)
    assert _events(guest) == []

    scheduler.advance(1)
    events = _events(guest)
    left = _payloads(events, 'playerLeft')
    assert left[0]['playerName'] == 'Alice'
    assert [(p['name'], p['isHost']) for p in left[0]['players']] == [('Bob', True)]
    assert _payloads(events, 'newHost') == [{'hostName': 'Bob'}]


def test_host_page_rejoins_on_new_connection(sio_factory, registry):
    creator = sio_factory()
    code, events = _create(creator)
    host_id = events[1][1]['players'][0]['id']

    lobby_page = sio_factory()
    lobby_page.emit('joinLobby', {'code': code, 'name': 'Alice'}, namespace='/ws')
    joined = _payloads(_events(lobby_page), 'playerJoined')[-1]
    assert [(p['id'], p['name'], p['isHost']) for p in joined['players']] == [(host_id, 'Alice', True)]

    lobby = registry.lookup(code)
    assert len(lobby.players) == 1
    assert lobby.host_id == host_id

    guest = sio_factory()
    guest.emit('joinLobby', {'code': code, 'name': 'Bob'}, namespace='/ws')
    _events(lobby_page)
    lobby_page.emit('startGame', namespace='/ws')
    assert [name for name, _ in _events(lobby_page)] == ['gameStarted', 'nextWord']
