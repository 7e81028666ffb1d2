from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from livequiz import db
from livequiz.models import Quiz, Question, Option
from livequiz.services.scoring import validate_question_scoring


quizzes = Blueprint('quizzes', __name__)

MIN_TIME_LIMIT = 5
MAX_TIME_LIMIT = 120
MIN_OPTIONS = 2
MAX_OPTIONS = 10


class QuizPayloadError(ValueError):
    pass


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ''


def _build_question(data, position: int) -> Question:
    label = f'Question {position + 1}'
    if not isinstance(data, dict):
        raise QuizPayloadError(f'{label}: must be an object')
    text = _text(data.get('text'))
    if not text:
        raise QuizPayloadError(f'{label}: text is required')

    time_limit = data.get('time_limit', 20)
    if isinstance(time_limit, bool) or not isinstance(time_limit, int) or not MIN_TIME_LIMIT <= time_limit <= MAX_TIME_LIMIT:
        raise QuizPayloadError(f'{label}: time_limit must be {MIN_TIME_LIMIT}-{MAX_TIME_LIMIT} seconds')

    base_points = data.get('base_points', 100)
    multiplier = data.get('speed_bonus_multiplier', 0.5)
    problem = validate_question_scoring(base_points, multiplier)
    if problem:
        raise QuizPayloadError(f'{label}: {problem}')

    options = data.get('options') or []
    if not isinstance(options, list) or not all(isinstance(o, dict) for o in options):
        raise QuizPayloadError(f'{label}: options must be a list of objects')
    if not MIN_OPTIONS <= len(options) <= MAX_OPTIONS:
        raise QuizPayloadError(f'{label}: between {MIN_OPTIONS} and {MAX_OPTIONS} options are required')
    if not any(bool(o.get('is_correct')) for o in options):
        raise QuizPayloadError(f'{label}: at least one option must be correct')
    explanation = data.get('explanation')
    if explanation is not None and not isinstance(explanation, str):
        raise QuizPayloadError(f'{label}: explanation must be a string')

    question = Question(
        text=text,
        position=position,
        time_limit=time_limit,
        base_points=base_points,
        speed_bonus_multiplier=float(multiplier),
        partial_credit_enabled=bool(data.get('partial_credit_enabled', False)),
        explanation=explanation,
    )
    for opt_pos, opt in enumerate(options):
        opt_text = _text(opt.get('text'))
        if not opt_text:
            raise QuizPayloadError(f'{label}: option {opt_pos + 1} text is required')
        question.options.append(Option(text=opt_text, is_correct=bool(opt.get('is_correct')), position=opt_pos))
    return question


def _owned_quiz_or_404(quiz_id: int) -> Quiz:
    return Quiz.query.filter_by(id=quiz_id, created_by=current_user.id).first_or_404()


@quizzes.route('', methods=['POST'])
@login_required
def create_quiz():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    title = _text(data.get('title'))
    if not title:
        return jsonify({'error': 'Title is required'}), 400
    questions = data.get('questions') or []
    if not isinstance(questions, list) or not questions:
        return jsonify({'error': 'At least one question is required'}), 400
    description = data.get('description')
    if description is not None and not isinstance(description, str):
        return jsonify({'error': 'Description must be a string'}), 400

    quiz = Quiz(title=title, description=description, created_by=current_user.id)
    try:
        for pos, q in enumerate(questions):
            quiz.questions.append(_build_question(q, pos))
    except QuizPayloadError as exc:
        return jsonify({'error': str(exc)}), 400

    db.session.add(quiz)
    db.session.commit()
    current_app.logger.info(f"[quiz-create] quiz={quiz.id} user={current_user.id} questions={len(quiz.questions)}")
    return jsonify(quiz.to_dict()), 201


@quizzes.route('', methods=['GET'])
@login_required
def list_quizzes():
    owned = Quiz.query.filter_by(created_by=current_user.id).order_by(Quiz.created_at.desc()).all()
    return jsonify([q.to_dict(include_questions=False) for q in owned])


@quizzes.route('/<int:quiz_id>', methods=['GET'])
@login_required
def get_quiz(quiz_id):
    return jsonify(_owned_quiz_or_404(quiz_id).to_dict())


@quizzes.route('/<int:quiz_id>', methods=['DELETE'])
@login_required
def delete_quiz(quiz_id):
    quiz = _owned_quiz_or_404(quiz_id)
    if quiz.sessions.count():
        return jsonify({'error': 'Quiz has sessions and cannot be deleted'}), 409
    db.session.delete(quiz)
    db.session.commit()
    current_app.logger.info(f"[quiz-delete] quiz={quiz_id} user={current_user.id}")
    return jsonify({'message': 'Quiz deleted'})
