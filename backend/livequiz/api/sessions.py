from flask import Blueprint, jsonify, request, current_app, abort
from flask_login import login_required, current_user
from livequiz.models import Quiz, Answer
from livequiz.services import sessions as svc
from livequiz.services.answers import AnswerRejected, parse_option_ids
from livequiz.services.leaderboard import build_leaderboard
from livequiz.services.scheduler import schedule_question_timer
from livequiz.services.tokens import issue_participant_token, read_participant_token


sessions = Blueprint('sessions', __name__)


@sessions.errorhandler(svc.SessionError)
def handle_session_error(exc):
    return jsonify({'error': exc.message}), exc.status


@sessions.errorhandler(AnswerRejected)
def handle_answer_rejected(exc):
    return jsonify({'error': exc.message, 'reason': exc.reason}), 400


def _session_or_404(join_code: str):
    session = svc.find_session(join_code)
    if not session:
        abort(404, description='Session not found')
    return session


def _hosted_session(join_code: str):
    session = _session_or_404(join_code)
    if session.host_id != current_user.id:
        abort(403, description='Only the host may control this session')
    return session


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _as_int(value):
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _schedule(session) -> None:
    schedule_question_timer(current_app._get_current_object(), session.id)


@sessions.route('', methods=['POST'])
@login_required
def create_session():
    data = _json_body()
    quiz_id = _as_int(data.get('quiz_id'))
    if quiz_id is None:
        return jsonify({'error': 'quiz_id is required'}), 400
    quiz = Quiz.query.filter_by(id=quiz_id, created_by=current_user.id).first()
    if not quiz:
        return jsonify({'error': 'Quiz not found'}), 404
    if not quiz.questions:
        return jsonify({'error': 'Quiz has no questions'}), 400
    session = svc.create_session(quiz, current_user.id, bool(data.get('allow_late_joiners', True)))
    return jsonify(session.to_dict()), 201


@sessions.route('/join', methods=['POST'])
def join_session():
    data = _json_body()
    join_code = data.get('join_code')
    nickname = data.get('nickname')
    if not all([join_code, nickname]):
        return jsonify({'error': 'Join code and nickname are required'}), 400
    if not isinstance(join_code, str) or not isinstance(nickname, str):
        return jsonify({'error': 'Join code and nickname must be strings'}), 400
    participant = svc.join_session(join_code, nickname)
    payload = participant.to_dict()
    payload['join_code'] = participant.session.join_code
    payload['participant_token'] = issue_participant_token(participant)
    return jsonify(payload), 201


@sessions.route('/<string:join_code>/state', methods=['GET'])
def get_state(join_code):
    session = _session_or_404(join_code)
    payload = session.to_dict()
    payload['leaderboard'] = build_leaderboard(session, limit=10)
    return jsonify(payload)


@sessions.route('/<string:join_code>/start', methods=['POST'])
@login_required
def start_session(join_code):
    session = svc.start_session(_hosted_session(join_code))
    _schedule(session)
    return jsonify(session.to_dict())


@sessions.route('/<string:join_code>/reveal', methods=['POST'])
@login_required
def reveal_question(join_code):
    session = svc.reveal_question(_hosted_session(join_code))
    _schedule(session)
    return jsonify(session.to_dict())


@sessions.route('/<string:join_code>/next', methods=['POST'])
@login_required
def next_question(join_code):
    session = svc.activate_next_question(_hosted_session(join_code))
    _schedule(session)
    return jsonify(session.to_dict())


@sessions.route('/<string:join_code>/end', methods=['POST'])
@login_required
def end_session(join_code):
    session = svc.end_session(_hosted_session(join_code))
    return jsonify(session.to_dict())


@sessions.route('/<string:join_code>/answers', methods=['POST'])
def submit_answer(join_code):
    data = _json_body()
    token = read_participant_token(data.get('participant_token'))
    if token is None:
        return jsonify({'error': 'A valid participant_token is required'}), 401
    participant_id = token['participant_id']
    claimed = data.get('participant_id')
    if claimed is not None and _as_int(claimed) != participant_id:
        current_app.logger.warning(
            f"[answer-reject] session={join_code} participant={participant_id} claimed={claimed} reason=TOKEN_MISMATCH"
        )
        return jsonify({'error': 'participant_id does not match participant_token'}), 403

    selected = parse_option_ids(data.get('selected_option_ids', []))
    if selected is None:
        return jsonify({'error': 'selected_option_ids must be a list of option ids'}), 400

    answer = svc.record_answer(
        svc.find_session(join_code),
        participant_id,
        _as_int(data.get('question_id')),
        selected,
    )
    return jsonify(answer.to_dict()), 201


@sessions.route('/<string:join_code>/participants/<int:participant_id>/kick', methods=['POST'])
@login_required
def kick_participant(join_code, participant_id):
    participant = svc.kick_participant(_hosted_session(join_code), participant_id)
    return jsonify(participant.to_dict())


@sessions.route('/<string:join_code>/leaderboard', methods=['GET'])
def get_leaderboard(join_code):
    session = _session_or_404(join_code)
    limit = _as_int(request.args.get('limit'))
    return jsonify({'join_code': session.join_code, 'leaderboard': build_leaderboard(session, limit=limit)})


@sessions.route('/<string:join_code>/results', methods=['GET'])
@login_required
def get_results(join_code):
    session = _hosted_session(join_code)
    answers_by_participant = {}
    for a in Answer.query.filter_by(session_id=session.id).order_by(Answer.submitted_at).all():
        answers_by_participant.setdefault(a.participant_id, []).append(a.to_dict())

    results = []
    for entry in build_leaderboard(session):
        entry['answers'] = answers_by_participant.get(entry['participant_id'], [])
        results.append(entry)

    return jsonify({
        'session': session.to_dict(),
        'quiz': session.quiz.to_dict(),
        'results': results,
    })
