from flask import Blueprint, jsonify, request, current_app
from liars.services.game.exceptions import NotInitialized

game = Blueprint('game', __name__)


def _server():
    return current_app.extensions['game_server']


@game.errorhandler(NotInitialized)
def handle_not_initialized(exc):
    return jsonify({'error': str(exc)}), 503


@game.route('/state', methods=['GET'])
def get_game_state():
    """
    Returns the full session snapshot, the same payload as `state:update`.
    """
    return jsonify({'gameState': _server().snapshot()})


@game.route('/leaderboard', methods=['GET'])
def get_leaderboard():
    limit = request.args.get('limit')
    if limit is not None:
        try:
            limit = int(limit)
        except ValueError:
            return jsonify({'error': 'limit must be an integer'}), 400
        if limit < 0:
            return jsonify({'error': 'limit must not be negative'}), 400
    return jsonify({'topPlayers': _server().leaderboard(limit)})


@game.route('/players/<string:player_id>/rank', methods=['GET'])
def get_player_rank(player_id):
    result = _server().player_rank(player_id)
    if result['rank'] == 0:
        return jsonify({'error': 'Player not found', **result}), 404
    return jsonify(result)
