from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from planning_poker.config import Config

socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(
        flask_app,
        cors_allowed_origins=allowed_origins,
        ping_interval=flask_app.config.get('SOCKETIO_PING_INTERVAL', 25),
        ping_timeout=flask_app.config.get('SOCKETIO_PING_TIMEOUT', 20),
    )

    # One store per app; handlers and routes reach it through extensions
    from planning_poker.auth import TokenAuthenticator
    from planning_poker.services.sessions import SessionStore, TimerScheduler
    from planning_poker.socketio_events import SessionGateway

    store = SessionStore(
        logger=flask_app.logger,
        default_theme=flask_app.config.get('DEFAULT_THEME', 'modern'),
    )
    scheduler = TimerScheduler(socketio, flask_app.logger, tick=flask_app.config.get('TIMER_TICK_SEC', 0.25))
    authenticator = TokenAuthenticator.from_config(flask_app.config, logger=flask_app.logger)
    gateway = SessionGateway(
        socketio, store, scheduler,
        authenticator=authenticator,
        logger=flask_app.logger,
        max_timer=int(flask_app.config.get('MAX_TIMER_SEC', 3600)),
    )
    gateway.register()

    flask_app.extensions['session_store'] = store
    flask_app.extensions['session_gateway'] = gateway
    flask_app.extensions['token_authenticator'] = authenticator

    from planning_poker.main import main
    flask_app.register_blueprint(main)

    return flask_app
