import re

from flask import Blueprint, jsonify, request, current_app

from feud.services.games.errors import GameFull, GameNotFound


games = Blueprint('games', __name__)

_CODE_CHARS = re.compile(r'^[A-Z0-9]+$')


def _service():
    return current_app.extensions['feud']


def is_valid_game_code(game_code) -> bool:
    length = int(current_app.config.get('GAME_CODE_LENGTH', 6))
    return isinstance(game_code, str) and len(game_code) == length and bool(_CODE_CHARS.match(game_code))


def is_valid_player_name(name) -> bool:
    return isinstance(name, str) and 2 <= len(name.strip()) <= 20


@games.route('/', methods=['GET'])
def server_status():
    stats = _service().store.stats()
    return jsonify({
        'message': 'Sanskrit Feud Game Server',
        'status': 'Running',
        'activeGames': stats['activeGames'],
        'connectedPlayers': stats['connectedPlayers'],
    })


@games.route('/api/create-game', methods=['POST'])
def create_game():
    return jsonify(_service().create_game())


@games.route('/api/join-game', methods=['POST'])
def join_game():
    data = request.get_json(silent=True) or {}
    game_code = data.get('gameCode')
    player_name = data.get('playerName')
    if not all([game_code, player_name]):
        return jsonify({'error': 'Game code and player name are required'}), 400

    game_code = str(game_code).strip().upper()
    if not is_valid_game_code(game_code):
        return jsonify({'error': 'Invalid game code format'}), 400
    if not is_valid_player_name(player_name):
        return jsonify({'error': 'Player name must be between 2-20 characters'}), 400

    try:
        player_id, game = _service().join_game(game_code, player_name.strip())
    except GameNotFound:
        return jsonify({'error': 'Game not found'}), 404
    except GameFull as exc:
        return jsonify({'error': exc.message, **exc.context}), 403
    return jsonify({'playerId': player_id, 'game': game.to_dict()})


@games.route('/api/games/<string:game_code>/state', methods=['GET'])
def get_game_state(game_code):
    game = _service().store.get_game(game_code)
    if not game:
        return jsonify({'error': 'Game not found'}), 404
    return jsonify(game.to_dict())
