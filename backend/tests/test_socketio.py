from feud import socketio


def names(received):
    return [pkt['name'] for pkt in received]


def last(received, name):
    return [pkt['args'][0] for pkt in received if pkt['name'] == name][-1]


def new_socket(flask_app):
    sock = socketio.test_client(flask_app, namespace='/ws')
    sock.get_received('/ws')
    return sock


def open_game(flask_app, client):
    code = client.post('/api/create-game').get_json()['gameCode']
    host = new_socket(flask_app)
    host.emit('host-join', {'gameCode': code, 'teams': [{'name': 'Pandavas'}, {'name': 'Kauravas'}]}, namespace='/ws')
    players = {}
    for name, team in (('Arjuna', 'team1'), ('Karna', 'team2')):
        player_id = client.post('/api/join-game', json={'gameCode': code, 'playerName': name}).get_json()['playerId']
        sock = new_socket(flask_app)
        sock.emit('player-join', {'gameCode': code, 'playerId': player_id}, namespace='/ws')
        sock.emit('join-team', {'gameCode': code, 'playerId': player_id, 'teamId': team}, namespace='/ws')
        players[team] = (player_id, sock)
    return code, host, players


def test_socket_connect(sio_client):
    assert sio_client.is_connected('/ws')
    received = sio_client.get_received('/ws')
    assert 'connected' in names(received)


def test_host_join_unknown_game_gets_error(flask_app):
    host = new_socket(flask_app)
    host.emit('host-join', {'gameCode': 'NOPE00'}, namespace='/ws')
    error = last(host.get_received('/ws'), 'error')
    assert error['reason'] == 'game-not-found'


def test_lobby_broadcasts_reach_room(flask_app, client):
    code, host, players = open_game(flask_app, client)
    received = host.get_received('/ws')
    assert 'host-joined' in names(received)
    assert names(received).count('player-joined') == 2
    assert names(received).count('team-updated') == 2
    assert last(received, 'player-joined')['totalPlayers'] == 2

    _, sock = players['team1']
    sock.get_received('/ws')
    sock.emit('get-players', {'gameCode': code}, namespace='/ws')
    listing = last(sock.get_received('/ws'), 'players-list')
    assert [p['name'] for p in listing['players']] == ['Arjuna', 'Karna']
    assert 'players-list' not in names(host.get_received('/ws'))


def test_non_host_cannot_start_game(flask_app, client):
    code, host, players = open_game(flask_app, client)
    _, sock = players['team1']
    sock.get_received('/ws')
    sock.emit('start-game', {'gameCode': code}, namespace='/ws')
    assert sock.get_received('/ws') == []
    state = client.get(f'/api/games/{code}/state').get_json()
    assert state['status'] == 'waiting'


def test_toss_up_over_sockets(flask_app, client):
    code, host, players = open_game(flask_app, client)
    host.emit('start-game', {'gameCode': code}, namespace='/ws')
    assert last(host.get_received('/ws'), 'game-started')['round'] == 0

    team1_id, team1_sock = players['team1']
    team2_id, team2_sock = players['team2']
    team1_sock.emit('submit-answer', {'gameCode': code, 'playerId': team1_id, 'answer': 'Om'}, namespace='/ws')
    team2_sock.emit('submit-answer', {'gameCode': code, 'playerId': team2_id, 'answer': 'Kali'}, namespace='/ws')

    received = host.get_received('/ws')
    assert names(received)[-4:] == ['answer-correct', 'answer-incorrect', 'remaining-cards-revealed', 'round-complete']
    summary = last(received, 'round-complete')['roundSummary']
    assert summary['tossUpWinner']['team'] == 'team1'
    assert summary['teamScores']['team1']['totalScore'] == 52

    host.emit('continue-to-next-round', {'gameCode': code}, namespace='/ws')
    started = last(host.get_received('/ws'), 'round-started')
    assert started['round'] == 1
    assert started['activeTeam'] == 'team1'


def test_rejected_answer_is_unicast(flask_app, client):
    code, host, players = open_game(flask_app, client)
    host.emit('start-game', {'gameCode': code}, namespace='/ws')
    team1_id, team1_sock = players['team1']
    _, team2_sock = players['team2']
    team1_sock.emit('submit-answer', {'gameCode': code, 'playerId': team1_id, 'answer': 'Om'}, namespace='/ws')
    team2_sock.get_received('/ws')
    host.get_received('/ws')

    team1_sock.emit('submit-answer', {'gameCode': code, 'playerId': team1_id, 'answer': 'Namaste'}, namespace='/ws')

    rejection = last(team1_sock.get_received('/ws'), 'answer-rejected')
    assert rejection['reason'] == 'already-answered'
    assert 'answer-rejected' not in names(host.get_received('/ws'))
    assert 'answer-rejected' not in names(team2_sock.get_received('/ws'))


def test_reset_game_over_sockets(flask_app, client):
    code, host, players = open_game(flask_app, client)
    host.emit('start-game', {'gameCode': code}, namespace='/ws')
    host.emit('force-game-over', {'gameCode': code}, namespace='/ws')
    assert 'game-over' in names(host.get_received('/ws'))

    host.emit('reset-game', {'gameCode': code}, namespace='/ws')
    reset = last(host.get_received('/ws'), 'game-reset')
    assert reset['game']['status'] == 'waiting'
    assert len(reset['game']['players']) == 2


def test_disconnect_marks_player(flask_app, client):
    code, host, players = open_game(flask_app, client)
    player_id, sock = players['team1']
    sock.disconnect(namespace='/ws')
    state = client.get(f'/api/games/{code}/state').get_json()
    arjuna = [p for p in state['players'] if p['id'] == player_id][0]
    assert arjuna['connected'] is False


def test_malformed_answer_is_rejected_not_crashed(flask_app, client):
    code, host, players = open_game(flask_app, client)
    host.emit('start-game', {'gameCode': code}, namespace='/ws')
    team1_id, team1_sock = players['team1']
    team1_sock.get_received('/ws')

    team1_sock.emit('submit-answer', {'gameCode': code, 'playerId': team1_id, 'answer': 42}, namespace='/ws')
    assert last(team1_sock.get_received('/ws'), 'answer-rejected')['reason'] == 'invalid-answer'

    team1_sock.emit('submit-answer', {'gameCode': 42, 'playerId': team1_id, 'answer': 'Om'}, namespace='/ws')
    assert last(team1_sock.get_received('/ws'), 'answer-rejected')['reason'] == 'game-not-found'

    team1_sock.emit('submit-answer', {'gameCode': code, 'playerId': [team1_id], 'answer': 'Om'}, namespace='/ws')
    assert last(team1_sock.get_received('/ws'), 'answer-rejected')['reason'] == 'player-not-found'

    team1_sock.emit('submit-answer', 'Om', namespace='/ws')
    assert last(team1_sock.get_received('/ws'), 'answer-rejected')['reason'] == 'game-not-found'

    state = client.get(f'/api/games/{code}/state').get_json()
    assert state['gameState']['tossUpSubmittedTeams'] == []


def test_unknown_player_does_not_join_room(flask_app, client):
    code, host, players = open_game(flask_app, client)
    stranger = new_socket(flask_app)
    stranger.emit('player-join', {'gameCode': code, 'playerId': 'nobody'}, namespace='/ws')
    assert last(stranger.get_received('/ws'), 'error')['reason'] == 'player-not-found'

    host.emit('start-game', {'gameCode': code}, namespace='/ws')
    assert 'game-started' in names(host.get_received('/ws'))
    assert stranger.get_received('/ws') == []


def test_host_adjudication_over_sockets(flask_app, client):
    code, host, players = open_game(flask_app, client)
    host.emit('start-game', {'gameCode': code}, namespace='/ws')
    host.emit('host-mark-correct', {'gameCode': code, 'answerIndex': 1, 'teamId': 'team1'}, namespace='/ws')
    host.emit('host-mark-incorrect', {'gameCode': code, 'teamId': 'team2'}, namespace='/ws')

    received = host.get_received('/ws')
    assert last(received, 'answer-correct')['byHost'] is True
    summary = last(received, 'round-complete')['roundSummary']
    assert summary['tossUpWinner']['team'] == 'team1'

    host.emit('continue-to-next-round', {'gameCode': code}, namespace='/ws')
    host.get_received('/ws')
    host.emit('reveal-answer', {'gameCode': code, 'answerIndex': 0}, namespace='/ws')
    revealed = last(host.get_received('/ws'), 'answer-revealed')
    assert revealed['answer']['text'] == 'Agni'
    assert revealed['pointsAwarded'] == 40
    assert revealed['totalTeamScore'] == 70

    host.emit('reveal-answer', {'gameCode': code, 'answerIndex': 'first'}, namespace='/ws')
    assert last(host.get_received('/ws'), 'answer-rejected')['reason'] == 'invalid-answer'

    _, team1_sock = players['team1']
    team1_sock.get_received('/ws')
    team1_sock.emit('reveal-answer', {'gameCode': code, 'answerIndex': 1}, namespace='/ws')
    assert team1_sock.get_received('/ws') == []
