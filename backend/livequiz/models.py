from livequiz import db, bcrypt
from flask_login import UserMixin
import json
import string
import random
import time

# Session states
LOBBY = 'lobby'
ACTIVE_QUESTION = 'active_question'
REVEAL = 'reveal'
ENDED = 'ended'

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Quiz(db.Model):
    __tablename__ = 'quiz'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.Float, default=time.time)
    questions = db.relationship('Question', back_populates='quiz', order_by='Question.position',
                                cascade='all, delete-orphan')
    sessions = db.relationship('QuizSession', back_populates='quiz', lazy='dynamic')

    def to_dict(self, include_questions=True, reveal_answers=True):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'created_by': self.created_by,
            'created_at': self.created_at,
            'question_count': len(self.questions),
        }
        if include_questions:
            data['questions'] = [q.to_dict(reveal_answers=reveal_answers) for q in self.questions]
        return data


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quiz.id'), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    text = db.Column(db.Text, nullable=False)
    time_limit = db.Column(db.Integer, nullable=False, default=20)  # seconds
    base_points = db.Column(db.Integer, nullable=False, default=100)
    speed_bonus_multiplier = db.Column(db.Float, nullable=False, default=0.5)
    partial_credit_enabled = db.Column(db.Boolean, nullable=False, default=False)
    explanation = db.Column(db.Text, nullable=True)
    quiz = db.relationship('Quiz', back_populates='questions')
    options = db.relationship('Option', back_populates='question', order_by='Option.position',
                              cascade='all, delete-orphan')

    @property
    def correct_option_ids(self):
        return [o.id for o in self.options if o.is_correct]

    def to_dict(self, reveal_answers=True):
        data = {
            'id': self.id,
            'position': self.position,
            'text': self.text,
            'time_limit': self.time_limit,
            'base_points': self.base_points,
            'speed_bonus_multiplier': self.speed_bonus_multiplier,
            'partial_credit_enabled': self.partial_credit_enabled,
            'options': [o.to_dict(reveal_answers=reveal_answers) for o in self.options],
        }
        if reveal_answers:
            data['explanation'] = self.explanation
        return data


class Option(db.Model):
    __tablename__ = 'question_option'
    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    text = db.Column(db.String(500), nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    question = db.relationship('Question', back_populates='options')

    def to_dict(self, reveal_answers=True):
        data = {'id': self.id, 'text': self.text}
        if reveal_answers:
            data['is_correct'] = self.is_correct
        return data


def generate_join_code(length=6):
    return ''.join(random.choices(JOIN_CODE_ALPHABET, k=length))


class QuizSession(db.Model):
    __tablename__ = 'quiz_session'
    id = db.Column(db.Integer, primary_key=True)
    join_code = db.Column(db.String(16), unique=True, index=True, nullable=False)
    quiz_id = db.Column(db.Integer, db.ForeignKey('quiz.id'), nullable=False)
    host_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    state = db.Column(db.String(32), nullable=False, default=LOBBY)
    current_question_index = db.Column(db.Integer, nullable=False, default=-1)
    question_started_at = db.Column(db.Float, nullable=True)
    timer_end_at = db.Column(db.Float, nullable=True)
    allow_late_joiners = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.Float, default=time.time)
    started_at = db.Column(db.Float, nullable=True)
    ended_at = db.Column(db.Float, nullable=True)
    quiz = db.relationship('Quiz', back_populates='sessions')
    participants = db.relationship('Participant', back_populates='session', order_by='Participant.id',
                                   cascade='all, delete-orphan')

    @property
    def room(self):
        return f"session:{self.join_code}"

    @property
    def current_question(self):
        questions = self.quiz.questions
        if 0 <= self.current_question_index < len(questions):
            return questions[self.current_question_index]
        return None

    def to_dict(self):
        question = self.current_question
        # Correct flags stay hidden until the question is revealed
        reveal = self.state in (REVEAL, ENDED)
        answered_count = 0
        if question and self.state in (ACTIVE_QUESTION, REVEAL):
            answered_count = Answer.query.filter_by(session_id=self.id, question_id=question.id).count()
        return {
            'id': self.id,
            'join_code': self.join_code,
            'quiz_id': self.quiz_id,
            'quiz_title': self.quiz.title,
            'state': self.state,
            'current_question_index': self.current_question_index,
            'total_questions': len(self.quiz.questions),
            'current_question': question.to_dict(reveal_answers=reveal) if question else None,
            'question_started_at': self.question_started_at,
            'timer_end_at': self.timer_end_at,
            'allow_late_joiners': self.allow_late_joiners,
            'answered_count': answered_count,
            'participants': [p.to_dict() for p in self.participants if p.is_active],
        }


class Participant(db.Model):
    __tablename__ = 'participant'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('quiz_session.id'), nullable=False, index=True)
    nickname = db.Column(db.String(20), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_spectator = db.Column(db.Boolean, nullable=False, default=False)
    is_connected = db.Column(db.Boolean, nullable=False, default=False)
    total_score = db.Column(db.Integer, nullable=False, default=0)
    total_time_ms = db.Column(db.Integer, nullable=False, default=0)
    streak_count = db.Column(db.Integer, nullable=False, default=0)
    joined_at = db.Column(db.Float, default=time.time)
    session = db.relationship('QuizSession', back_populates='participants')
    answers = db.relationship('Answer', back_populates='participant', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'nickname': self.nickname,
            'is_spectator': self.is_spectator,
            'is_connected': self.is_connected,
            'total_score': self.total_score,
            'streak_count': self.streak_count,
        }


class Answer(db.Model):
    __tablename__ = 'answer'
    __table_args__ = (
        db.UniqueConstraint('participant_id', 'question_id', name='uq_answer_participant_question'),
    )
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('quiz_session.id'), nullable=False, index=True)
    participant_id = db.Column(db.Integer, db.ForeignKey('participant.id'), nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False)
    selected_options = db.Column(db.Text, nullable=False, default='[]')  # JSON-encoded list of option ids
    response_time_ms = db.Column(db.Integer, nullable=False, default=0)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    points_awarded = db.Column(db.Integer, nullable=False, default=0)
    speed_bonus_applied = db.Column(db.Integer, nullable=False, default=0)
    streak_bonus_applied = db.Column(db.Integer, nullable=False, default=0)
    partial_credit_applied = db.Column(db.Boolean, nullable=False, default=False)
    submitted_at = db.Column(db.Float, default=time.time)
    participant = db.relationship('Participant', back_populates='answers')

    @property
    def selected_option_ids(self):
        return json.loads(self.selected_options) if self.selected_options else []

    def to_dict(self):
        return {
            'id': self.id,
            'participant_id': self.participant_id,
            'question_id': self.question_id,
            'selected_option_ids': self.selected_option_ids,
            'response_time_ms': self.response_time_ms,
            'is_correct': self.is_correct,
            'points_awarded': self.points_awarded,
            'speed_bonus_applied': self.speed_bonus_applied,
            'streak_bonus_applied': self.streak_bonus_applied,
            'partial_credit_applied': self.partial_credit_applied,
        }
