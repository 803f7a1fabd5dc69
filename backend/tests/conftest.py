import os
import sys
import pytest

# Ensure the backend root (containing the `feud` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from feud import create_app, db, socketio
from feud.services.games import GameService, GameStore
from feud.services.games.question_bank import prepare_game_questions


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = '*'
    REVEAL_DELAY_SEC = 0
    ADVANCE_DELAY_SEC = 0
    INCORRECT_ADVANCE_DELAY_SEC = 0
    GAME_RETENTION_SEC = 3600
    GAME_CODE_LENGTH = 6
    MAX_PLAYERS_PER_GAME = 10
    ANSWER_MATCH_MODE = 'containment'
    ANSWER_MIN_FRAGMENT_LENGTH = 1
    QUESTION_BANK_PATH = None
    ENABLE_SCHEDULER_IN_TESTS = False


TOSS_UP_ANSWERS = [
    {'text': 'Om', 'score': 52},
    {'text': 'Namaste', 'score': 30},
    {'text': 'Shanti', 'score': 18},
]

ROUND_ANSWERS = [
    {'text': 'Agni', 'score': 40},
    {'text': 'Vayu', 'score': 30},
    {'text': 'Surya', 'score': 20},
]


def make_records(toss_up=True):
    """A deterministic bank: optional toss-up plus six questions per level."""
    records = []
    if toss_up:
        records.append({'id': 'toss', 'question': 'Most chanted syllable?', 'level': 'tossup',
                        'answers': [dict(a) for a in TOSS_UP_ANSWERS]})
    for level in ('beginner', 'intermediate', 'advanced'):
        for i in range(1, 7):
            records.append({
                'id': f'{level}-{i}',
                'question': f'{level} question {i}',
                'level': level,
                'answers': [dict(a) for a in ROUND_ANSWERS],
            })
    return records


def make_questions(toss_up=True):
    return prepare_game_questions(make_records(toss_up))


class RecordingBroadcaster:
    """Collects events instead of emitting them."""

    def __init__(self):
        self.sent = []

    def to_room(self, code, event):
        self.sent.append(('room', code, event))

    def to_sid(self, sid, event):
        self.sent.append(('sid', sid, event))

    def names(self):
        return [event.event for _, _, event in self.sent]

    def of(self, name):
        return [event for _, _, event in self.sent if event.event == name]

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture()
def store():
    return GameStore()


@pytest.fixture()
def service(flask_app, store, broadcaster):
    return GameService(flask_app, store, broadcaster, question_source=make_questions)


def seat_players(service, toss_up=True, host_sid='host-sid'):
    """Create a game with a host and one player on each team."""
    code = service.create_game(make_questions(toss_up))['gameCode']
    service.host_join(host_sid, code, [{'name': 'Pandavas'}, {'name': 'Kauravas'}])
    arjuna, _ = service.join_game(code, 'Arjuna')
    karna, _ = service.join_game(code, 'Karna')
    service.player_join('sid-arjuna', code, arjuna)
    service.player_join('sid-karna', code, karna)
    service.join_team(code, arjuna, 'team1')
    service.join_team(code, karna, 'team2')
    return {'code': code, 'host': host_sid, 'team1': arjuna, 'team2': karna}


@pytest.fixture()
def lobby(service):
    return seat_players(service, toss_up=True)


@pytest.fixture()
def scored_lobby(service):
    return seat_players(service, toss_up=False)


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
