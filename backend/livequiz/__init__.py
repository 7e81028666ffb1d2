from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from livequiz.main import main
    flask_app.register_blueprint(main)

    from livequiz.api.quizzes import quizzes
    flask_app.register_blueprint(quizzes, url_prefix='/api/quizzes')

    from livequiz.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    from livequiz.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from livequiz.services.scoring import InvalidInput

    @flask_app.errorhandler(InvalidInput)
    def handle_invalid_input(exc):
        flask_app.logger.warning(f"[invalid-input] {exc}")
        return jsonify({'error': str(exc)}), 400

    @flask_app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({'error': exc.description}), exc.code

    from livequiz.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from livequiz.models import User, Quiz, Question, Option
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            host = User(username='host')
            host.set_password('password')
            db.session.add(host)
            db.session.flush()

            quiz = Quiz(title='Warm-up', description='Sample quiz', created_by=host.id)
            samples = [
                ('What is 2 + 2?', [('3', False), ('4', True), ('5', False)]),
                ('Which of these are primes?', [('2', True), ('4', False), ('7', True)]),
            ]
            for pos, (text, options) in enumerate(samples):
                question = Question(text=text, position=pos, time_limit=20, base_points=100,
                                    speed_bonus_multiplier=0.5, partial_credit_enabled=(pos == 1))
                for opt_pos, (opt_text, correct) in enumerate(options):
                    question.options.append(Option(text=opt_text, is_correct=correct, position=opt_pos))
                quiz.questions.append(question)
            db.session.add(quiz)
            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
