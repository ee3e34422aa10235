from conftest import SAMPLE_COMEDIANS


def _events(received, name):
    return [pkt['args'][0] if pkt['args'] else None for pkt in received if pkt['name'] == name]


def _connect_manager(sio_factory):
    manager = sio_factory()
    manager.emit('manager:connect')
    return manager


def _join(sio_factory, name):
    player = sio_factory()
    player.emit('player:join', {'playerName': name})
    received = player.get_received()
    player_id = _events(received, 'player:joined')[0]['playerId']
    return player, player_id


def test_manager_connect_receives_state(sio_factory):
    manager = _connect_manager(sio_factory)
    assert manager.is_connected()
    received = manager.get_received()
    states = _events(received, 'state:update')
    assert len(states) == 1
    assert states[0]['gameState']['mode'] == 'setup'


def test_player_join_broadcasts_to_manager(sio_factory):
    manager = _connect_manager(sio_factory)
    manager.get_received()  # flush

    player, player_id = _join(sio_factory, 'Alice')
    states = _events(manager.get_received(), 'state:update')
    assert states
    assert states[-1]['gameState']['players'][player_id]['name'] == 'Alice'


def test_vote_goes_to_voter_and_manager_only(sio_factory):
    manager = _connect_manager(sio_factory)
    manager.emit('game:setup', {'comedians': SAMPLE_COMEDIANS})
    manager.emit('game:start')
    alice, _ = _join(sio_factory, 'Alice')
    bob, _ = _join(sio_factory, 'Bob')
    display = sio_factory()
    display.emit('display:connect')
    for c in (manager, alice, bob, display):
        c.get_received()  # flush

    alice.emit('vote:submit', {'vote': 'truth'})

    assert [pkt['name'] for pkt in alice.get_received()] == ['vote:acknowledged']
    assert _events(manager.get_received(), 'vote:count') == [{'voteCount': 1, 'totalPlayers': 2}]
    assert bob.get_received() == []
    assert display.get_received() == []


def test_phase_advance_reaches_display(sio_factory):
    manager = _connect_manager(sio_factory)
    manager.emit('game:setup', {'comedians': SAMPLE_COMEDIANS})
    manager.emit('game:start')
    display = sio_factory()
    display.emit('display:connect')
    display.get_received()

    manager.emit('phase:advance')
    received = display.get_received()
    assert _events(received, 'votes:locked') == [{'distribution': {'truth': 0, 'lie': 0, 'total': 0}}]
    assert _events(received, 'state:update')[-1]['gameState']['phase'] == 'results'


def test_errors_go_to_sender_only(sio_factory):
    manager = _connect_manager(sio_factory)
    alice, _ = _join(sio_factory, 'Alice')
    manager.get_received()

    alice.emit('game:start')
    errors = _events(alice.get_received(), 'error')
    assert errors and errors[0]['code'] == 'forbidden'
    assert manager.get_received() == []


def test_player_disconnect_marks_offline(sio_factory, game_server):
    manager = _connect_manager(sio_factory)
    alice, alice_id = _join(sio_factory, 'Alice')
    manager.get_received()

    alice.disconnect()
    states = _events(manager.get_received(), 'state:update')
    assert states[-1]['gameState']['players'][alice_id]['connected'] is False
    assert alice_id in game_server.snapshot()['players']


def test_rejoin_after_reconnect_keeps_identity(sio_factory, game_server):
    alice, alice_id = _join(sio_factory, 'Alice')
    alice.disconnect()

    again = sio_factory()
    again.emit('player:join', {'playerName': 'Alice', 'playerId': alice_id})
    joined = _events(again.get_received(), 'player:joined')
    assert joined == [{'playerId': alice_id, 'playerName': 'Alice'}]
    assert game_server.snapshot()['players'][alice_id]['connected'] is True
