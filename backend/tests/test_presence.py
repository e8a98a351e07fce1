from imposter.services.rooms import presence, state_machine as sm, store

T0 = 1_700_000_000_000


def _room(players, last_seen, host='a'):
    return {
        'host': host,
        'hostUsername': host.upper(),
        'gameState': 'lobby',
        'players': [{'id': p, 'username': p.upper(), 'ready': True, 'joinedAt': 0} for p in players],
        'playersLastSeen': last_seen,
    }


def test_active_players_window_boundary():
    room = _room(['a', 'b', 'c'], {'a': T0, 'b': T0 - 15000, 'c': T0 - 15001})
    assert [p['id'] for p in presence.active_players(room, T0)] == ['a', 'b']


def test_player_without_heartbeat_is_inactive():
    room = _room(['a', 'b'], {'a': T0})
    assert [p['id'] for p in presence.active_players(room, T0)] == ['a']


def test_failover_promotes_first_active_in_join_order():
    room = _room(['a', 'b', 'c', 'd'], {'a': T0 - 20000, 'b': T0 - 16000, 'c': T0 - 100, 'd': T0})
    assert presence.failover_host(room, T0) is True
    assert room['host'] == 'c'
    assert room['hostUsername'] == 'C'


def test_failover_keeps_live_host():
    room = _room(['a', 'b'], {'a': T0 - 1000, 'b': T0})
    assert presence.failover_host(room, T0) is False
    assert room['host'] == 'a'


def test_failover_with_nobody_active_keeps_host():
    room = _room(['a', 'b'], {'a': T0 - 20000, 'b': T0 - 20000})
    assert presence.failover_host(room, T0) is False
    assert room['host'] == 'a'


def test_failover_when_host_left_the_player_list():
    room = _room(['b', 'c'], {'a': T0, 'b': T0, 'c': T0})
    assert presence.failover_host(room, T0) is True
    assert room['host'] == 'b'


def test_touch_appends_unknown_player_except_when_ended():
    room = _room(['a'], {'a': T0})
    presence.touch(room, 'z', 'Zed', T0 + 5)
    assert room['players'][-1]['id'] == 'z'
    assert room['playersLastSeen']['z'] == T0 + 5

    ended = _room(['a'], {'a': T0})
    ended['gameState'] = 'ended'
    presence.touch(ended, 'z', 'Zed', T0 + 5)
    assert [p['id'] for p in ended['players']] == ['a']
    assert ended['playersLastSeen']['z'] == T0 + 5


def test_refresh_writes_only_on_host_change(flask_app):
    code = sm.create_room('a', 'Ann', {}, now=T0)['roomCode']
    sm.join_room(code, 'b', 'Ben', now=T0 + 10_000)
    version = store.get(code)['version']

    room, changed = presence.refresh(code, now=T0 + 12_000)
    assert changed is False
    assert room['version'] == version

    room, changed = presence.refresh(code, now=T0 + 15_001)
    assert changed is True
    assert room['host'] == 'b'
    assert room['version'] == version + 1


def test_heartbeat_keeps_host_alive(flask_app):
    code = sm.create_room('a', 'Ann', {}, now=T0)['roomCode']
    sm.join_room(code, 'b', 'Ben', now=T0)
    presence.heartbeat(code, 'a', 'Ann', now=T0 + 14_000)
    presence.heartbeat(code, 'b', 'Ben', now=T0 + 14_000)
    room, changed = presence.refresh(code, now=T0 + 20_000)
    assert changed is False
    assert room['host'] == 'a'


def test_expire_fails_over_immediately(flask_app):
    code = sm.create_room('a', 'Ann', {}, now=T0)['roomCode']
    sm.join_room(code, 'b', 'Ben', now=T0 + 1)
    room, changed = presence.expire(code, 'a', now=T0 + 2)
    assert changed is True
    assert room['host'] == 'b'
    assert room['playersLastSeen']['a'] == 0


def test_touch_without_username_only_stamps():
    room = _room(['a'], {'a': T0})
    presence.touch(room, 'z', '', T0 + 5)
    presence.touch(room, 'y', '   ', T0 + 6)
    assert [p['id'] for p in room['players']] == ['a']
    assert room['playersLastSeen']['z'] == T0 + 5


def test_nameless_heartbeat_does_not_seat_a_player(client, make_room):
    code, peers = make_room(extra=2)
    res = client.post(f'/api/rooms/{code}/heartbeat', json={'peer_id': 'p_stranger'})
    assert res.status_code == 200
    room = store.get(code)
    assert [p['id'] for p in room['players']] == peers
    assert 'p_stranger' in room['playersLastSeen']
