from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
import json
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    from feud import models  # noqa: F401
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Game engine: one store per app, shared by HTTP routes and socket handlers
    from feud.services.games import GameService, GameStore
    from feud.socketio_events import SocketIOBroadcaster, register_socketio_handlers
    store = GameStore(
        code_length=int(flask_app.config.get('GAME_CODE_LENGTH', 6)),
        retention_sec=int(flask_app.config.get('GAME_RETENTION_SEC', 3600)),
    )
    flask_app.extensions['feud'] = GameService(flask_app, store, SocketIOBroadcaster())

    from feud.api.games import games
    flask_app.register_blueprint(games)

    register_socketio_handlers()

    if not flask_app.config.get('TESTING'):
        from feud.services.games.scheduler import start_cleanup_worker
        start_cleanup_worker(flask_app, store)

    @click.command('seed-questions')
    @click.argument('path', required=False)
    @click.option('--reset', is_flag=True, help='Delete existing bank questions first.')
    def seed_questions_command(path, reset):
        """Loads a JSON question bank into the database."""
        from feud.models import BankQuestion
        from feud.services.games.question_bank import load_records, record_round, LEVEL_ROUNDS
        round_levels = {r: level for level, r in LEVEL_ROUNDS.items()}
        with flask_app.app_context():
            db.create_all()
            if reset:
                BankQuestion.query.delete()
            records = load_records(path or flask_app.config.get('QUESTION_BANK_PATH'))
            for record in records:
                db.session.add(BankQuestion(
                    question=record['question'],
                    category=record.get('category'),
                    level=record.get('level') or round_levels.get(record_round(record), 'advanced'),
                    answers=json.dumps(record.get('answers') or []),
                ))
            db.session.commit()
            print(f'Loaded {len(records)} questions into the bank!')

    flask_app.cli.add_command(seed_questions_command)

    return flask_app
