import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///liars.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Where snapshots go: database, file or memory
    SNAPSHOT_BACKEND = os.environ.get('SNAPSHOT_BACKEND', 'database')
    SNAPSHOT_FILE = os.environ.get('SNAPSHOT_FILE', 'game-state.json')
    # Background snapshot interval (seconds). 0 disables.
    AUTOSAVE_INTERVAL_SEC = int(os.environ.get('AUTOSAVE_INTERVAL_SEC', '30'))
    # Players shown on the leaderboard screen
    LEADERBOARD_SIZE = int(os.environ.get('LEADERBOARD_SIZE', '5'))
    MAX_PLAYER_NAME_LENGTH = int(os.environ.get('MAX_PLAYER_NAME_LENGTH', '32'))
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    # Comma-separated list of client origins (manager, display, player apps)
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            'CORS_ORIGINS',
            'http://localhost:5173,http://localhost:5174,http://localhost:5175',
        ).split(',')
        if origin.strip()
    ]
