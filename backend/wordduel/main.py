from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Word Duel server!'})


@main.route('/api/health')
def health():
    return jsonify({
        'status': 'healthy',
        'lobbies_count': len(current_app.extensions['lobby_registry']),
    })
