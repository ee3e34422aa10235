from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from liars.main import main
    flask_app.register_blueprint(main)

    from liars.api.game import game
    flask_app.register_blueprint(game, url_prefix='/api/game')

    # One game server per app: the session, its connections and its snapshot store
    from liars.models import GameSnapshot  # noqa: F401  (table registration)
    from liars.server import GameServer
    from liars.services.game.persistence import build_snapshot_store
    from liars.socketio_events import SocketIOEmitter, register_socketio_handlers

    server = GameServer(
        snapshot_store=build_snapshot_store(flask_app),
        emitter=SocketIOEmitter(flask_app.config.get('SOCKETIO_NAMESPACE', '/')),
        # Snapshots are saved inline in tests for determinism
        spawn=None if flask_app.config.get('TESTING') else socketio.start_background_task,
        leaderboard_size=int(flask_app.config.get('LEADERBOARD_SIZE', 5)),
        max_name_length=int(flask_app.config.get('MAX_PLAYER_NAME_LENGTH', 32)),
    )
    flask_app.extensions['game_server'] = server
    server.boot()

    register_socketio_handlers(flask_app)

    # Periodic snapshot for every launch path (socketio.run, flask run, gunicorn)
    from liars.services.game.scheduler import start_autosave
    start_autosave(flask_app)

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the snapshot table."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('snapshot-clear')
    def snapshot_clear_command():
        """Deletes the stored game snapshot."""
        server.clear_snapshot()
        print('Game snapshot deleted.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(snapshot_clear_command)

    return flask_app
