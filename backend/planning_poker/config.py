import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Bearer tokens accepted at connection time
    TOKEN_SECRET = os.environ.get('TOKEN_SECRET') or 'poker-planning-secret-key-change-in-production'
    TOKEN_ALGORITHM = os.environ.get('TOKEN_ALGORITHM', 'HS256')
    TOKEN_TTL_HOURS = int(os.environ.get('TOKEN_TTL_HOURS', '24'))
    # Theme label handed to clients when create doesn't pick one
    DEFAULT_THEME = os.environ.get('DEFAULT_THEME', 'modern')
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS',
            'http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173',
        ).split(',') if o.strip()
    ]
    # Transport-level disconnect detection (seconds)
    SOCKETIO_PING_INTERVAL = int(os.environ.get('SOCKETIO_PING_INTERVAL', '25'))
    SOCKETIO_PING_TIMEOUT = int(os.environ.get('SOCKETIO_PING_TIMEOUT', '20'))
    # Longest reveal timer a client may request (seconds)
    MAX_TIMER_SEC = int(os.environ.get('MAX_TIMER_SEC', '3600'))
    # Reveal timers wake this often to notice cancellation (seconds)
    TIMER_TICK_SEC = float(os.environ.get('TIMER_TICK_SEC', '0.25'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
