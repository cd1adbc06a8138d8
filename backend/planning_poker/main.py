from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


def _store():
    return current_app.extensions['session_store']


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the planning poker server!'})


@main.route('/api/health')
def health():
    return jsonify({'status': 'ok', 'sessions': len(_store())})


@main.route('/api/sessions/<string:session_id>')
def session_exists(session_id):
    """Lets a client check a session code before opening a socket."""
    return jsonify({'sessionId': session_id.upper(), 'exists': _store().session_exists(session_id)})
