import os
import sys
import pytest

# Ensure the backend root (containing the `livequiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from livequiz import create_app, db, socketio
from livequiz.services import sessions as session_service


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = ['http://localhost:3000']
    LOG_LEVEL = 'DEBUG'
    MIN_PARTICIPANTS = 1
    REVEAL_DURATION_SEC = 0
    JOIN_CODE_LENGTH = 6
    JOIN_CODE_ATTEMPTS = 10
    TIMER_HEARTBEAT_SEC = 0


class Clock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def advance(self, seconds):
        self.now += seconds

    def __call__(self):
        return self.now


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)

    # The app context below stays pushed for the whole test, so every test
    # request reuses the same `g`; drop Flask-Login's per-request user cache
    # so separate test clients don't see each other's login.
    @application.teardown_request
    def _clear_login_cache(exc=None):
        from flask import g
        g.pop('_login_user', None)

    with application.app_context():
        # Ensure models are imported so tables are created
        import livequiz.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def host_client(flask_app):
    host = flask_app.test_client()
    res = host.post('/register', json={'username': 'host', 'password': 'secret'})
    assert res.status_code == 201
    return host


@pytest.fixture()
def clock(monkeypatch):
    fake = Clock()
    monkeypatch.setattr(session_service, '_now', fake)
    return fake


def _question(text, correct=1, options=3, **overrides):
    q = {
        'text': text,
        'time_limit': 20,
        'base_points': 100,
        'speed_bonus_multiplier': 0.5,
        'options': [{'text': f'Option {i}', 'is_correct': i == correct} for i in range(options)],
    }
    q.update(overrides)
    return q


@pytest.fixture()
def make_quiz(host_client):
    """Create a quiz owned by the host and return its JSON."""
    def _make(questions=None, title='Pub quiz'):
        if questions is None:
            questions = [_question('Q1'), _question('Q2'), _question('Q3')]
        res = host_client.post('/api/quizzes', json={'title': title, 'questions': questions})
        assert res.status_code == 201, res.get_json()
        return res.get_json()
    return _make


@pytest.fixture()
def question():
    return _question


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
