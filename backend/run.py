import os

from planning_poker import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Use SocketIO server to enable websockets in dev
    socketio.run(
        app,
        host=os.environ.get('HOST', '127.0.0.1'),
        port=int(os.environ.get('PORT', '5000')),
        debug=bool(os.environ.get('FLASK_DEBUG')),
        allow_unsafe_werkzeug=True,
    )
