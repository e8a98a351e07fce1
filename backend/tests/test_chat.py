from imposter.services.rooms import chat, state_machine as sm

T0 = 1_700_000_000_000


def test_filter_matches_whole_words_only():
    assert chat.filter_bad_words('ass assassin') == '*** assassin'
    assert chat.filter_bad_words('Shit happens') == '**** happens'
    assert chat.filter_bad_words('classic bass') == 'classic bass'
    assert chat.filter_bad_words('') == ''


def test_filter_keeps_length():
    text = 'FUCK this badword1 thing'
    filtered = chat.filter_bad_words(text)
    assert len(filtered) == len(text)
    assert filtered == '**** this ******** thing'


def test_append_message_shape():
    room = {'chatMessages': []}
    msg = chat.append_message(room, 'p1', 'Bob', 'hello ass', T0)
    assert msg == {
        'id': f'p1_{T0}',
        'username': 'Bob',
        'message': 'hello ***',
        'original': 'hello ass',
        'timestamp': T0,
    }
    assert room['chatMessages'] == [msg]


def test_chat_log_keeps_latest_hundred():
    room = {}
    for i in range(105):
        chat.append_message(room, 'p1', 'Bob', f'm{i}', T0 + i)
    log = room['chatMessages']
    assert len(log) == 100
    assert log[0]['message'] == 'm5'
    assert log[-1]['message'] == 'm104'


def test_send_chat_message_uses_member_username(flask_app):
    code = sm.create_room('p0', 'Ann', {}, now=T0)['roomCode']
    res = chat.send_chat_message(code, 'p0', '  hi all  ', now=T0 + 1)
    assert res['success']
    assert res['message']['username'] == 'Ann'
    assert res['message']['message'] == 'hi all'
    assert res['room']['chatMessages'][-1]['id'] == f'p0_{T0 + 1}'

    assert chat.send_chat_message(code, 'stranger', 'hi', now=T0 + 2)['error'] == 'not_in_room'
    assert chat.send_chat_message(code, 'p0', '   ', now=T0 + 3)['error'] == 'invalid_payload'
    assert chat.send_chat_message('NOPE00', 'p0', 'hi')['error'] == 'room_not_found'
