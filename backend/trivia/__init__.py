from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

from trivia.services.leaderboard import LeaderboardStore  # noqa: E402  (needs db)

leaderboard = LeaderboardStore()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    leaderboard.init_app(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from trivia.errors import register_error_handlers
    register_error_handlers(flask_app)

    from trivia.main import main
    flask_app.register_blueprint(main)

    from trivia.api.topics import topics
    flask_app.register_blueprint(topics, url_prefix='/api/quiz')

    from trivia.api.lobby import lobby
    flask_app.register_blueprint(lobby, url_prefix='/api/lobby')

    from trivia.api.game import game
    flask_app.register_blueprint(game, url_prefix='/api/game')

    # Socket.IO handlers bind to the initialized socketio instance
    from trivia.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from trivia.auth import load_user_from_request
    from trivia.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    login_manager.request_loader(load_user_from_request)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Authentication required', 'code': 'UNAUTHORIZED', 'kind': 'Unauthorized'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from trivia.seed import seed_all
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            counts = seed_all(with_users=True)
            print(f"Database has been reset and seeded! {counts}")

    @click.command('seed')
    def seed_command():
        """Seeds topics and questions (idempotent)."""
        from trivia.seed import seed_all
        with flask_app.app_context():
            counts = seed_all(with_users=False)
            print(f"Seeded: {counts}")

    @click.command('import-questions')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    def import_questions_command(path):
        """Imports questions from a JSON file in one transaction."""
        from trivia.errors import InvalidInputError
        from trivia.question_import import import_questions, load_question_file
        with flask_app.app_context():
            try:
                counts = import_questions(load_question_file(path))
            except InvalidInputError as exc:
                raise click.ClickException(exc.message)
            print(f"Imported {counts['imported']} new questions, updated {counts['updated']}")

    @click.command('cleanup-lobbies')
    @click.option('--purge-days', type=int, default=None,
                  help='Also delete archived lobbies older than this many days.')
    def cleanup_lobbies_command(purge_days):
        """Archives expired waiting lobbies once."""
        from trivia.services.cleanup import cleanup_expired_lobbies, delete_old_archived_lobbies
        with flask_app.app_context():
            archived = cleanup_expired_lobbies()
            print(f"Archived {archived} expired lobbies")
            if purge_days is not None:
                deleted = delete_old_archived_lobbies(purge_days)
                print(f"Deleted {deleted} archived lobbies older than {purge_days} days")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(seed_command)
    flask_app.cli.add_command(import_questions_command)
    flask_app.cli.add_command(cleanup_lobbies_command)

    return flask_app
