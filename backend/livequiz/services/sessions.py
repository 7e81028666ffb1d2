"""Live session lifecycle.

A session moves lobby -> active_question -> reveal -> active_question ... ->
ended. Answers are scored as they arrive; every transition is committed and
then broadcast to the session's Socket.IO room so the big screen, the host
controller and participants can refetch state.
"""

import json
import time
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from livequiz import db, socketio
from livequiz.models import (
    ACTIVE_QUESTION, ENDED, LOBBY, REVEAL,
    Answer, Participant, Quiz, QuizSession, generate_join_code,
)
from . import answers as answer_checks
from .leaderboard import build_leaderboard, rank_of
from .scoring import score_answer
from .tokens import read_participant_token
from .validation import nickname_error

WS_NAMESPACE = '/ws'


class SessionError(Exception):
    """A session operation that can't be carried out in the current state."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.message = message
        self.status = status


class JoinCodeExhausted(SessionError):
    def __init__(self):
        super().__init__('Failed to generate a unique join code', status=503)


def _now() -> float:
    return time.time()


def _commit() -> None:
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise


def emit_state(session: QuizSession) -> None:
    socketio.emit('state_update', {'join_code': session.join_code, 'state': session.state},
                  to=session.room, namespace=WS_NAMESPACE)


def participant_room(participant_id: int) -> str:
    return f"participant:{participant_id}"


def find_session(join_code: Optional[str]) -> Optional[QuizSession]:
    if not isinstance(join_code, str) or not join_code.strip():
        return None
    return QuizSession.query.filter_by(join_code=join_code.strip().upper()).first()


def create_session(quiz: Quiz, host_id: int, allow_late_joiners: bool = True) -> QuizSession:
    cfg = current_app.config
    length = int(cfg.get('JOIN_CODE_LENGTH', 6))
    attempts = int(cfg.get('JOIN_CODE_ATTEMPTS', 10))
    for _ in range(attempts):
        code = generate_join_code(length)
        if not QuizSession.query.filter_by(join_code=code).first():
            break
    else:
        current_app.logger.error(f"[session-create] quiz={quiz.id} no unique join code after {attempts} attempts")
        raise JoinCodeExhausted()

    session = QuizSession(join_code=code, quiz_id=quiz.id, host_id=host_id,
                          allow_late_joiners=allow_late_joiners)
    db.session.add(session)
    _commit()
    current_app.logger.info(f"[session-create] session={session.join_code} quiz={quiz.id} host={host_id}")
    return session


def join_session(join_code: str, nickname: str) -> Participant:
    session = find_session(join_code)
    if not session:
        raise SessionError('The join code you entered is not valid', status=404)
    if session.state == ENDED:
        raise SessionError('This quiz session has already ended')
    if session.state != LOBBY and not session.allow_late_joiners:
        raise SessionError('This quiz has already started and late joining is not allowed')

    problem = nickname_error(nickname)
    if problem:
        raise SessionError(problem)
    nickname = nickname.strip()
    taken = {p.nickname.lower() for p in session.participants if p.is_active}
    if nickname.lower() in taken:
        raise SessionError('That nickname is already taken in this session', status=409)

    participant = Participant(session_id=session.id, nickname=nickname,
                              is_spectator=session.state != LOBBY)
    db.session.add(participant)
    _commit()
    current_app.logger.info(
        f"[join] session={session.join_code} participant={participant.id} spectator={participant.is_spectator}"
    )
    emit_state(session)
    return participant


def _activate_question(session: QuizSession, index: int) -> None:
    question = session.quiz.questions[index]
    now = _now()
    session.current_question_index = index
    session.state = ACTIVE_QUESTION
    session.question_started_at = now
    session.timer_end_at = now + question.time_limit
    db.session.add(session)
    _commit()
    current_app.logger.info(
        f"[question] session={session.join_code} index={index} question={question.id} "
        f"time_limit={question.time_limit}s deadline={session.timer_end_at}"
    )
    emit_state(session)


def start_session(session: QuizSession) -> QuizSession:
    if session.state != LOBBY:
        # Idempotent start: already running
        if session.state in (ACTIVE_QUESTION, REVEAL):
            return session
        raise SessionError('Session has already ended')
    if not session.quiz.questions:
        raise SessionError('Quiz has no questions')
    players = [p for p in session.participants if p.is_active and not p.is_spectator]
    min_players = int(current_app.config.get('MIN_PARTICIPANTS', 1))
    if len(players) < min_players:
        raise SessionError(f'At least {min_players} participants are required to start')

    session.started_at = _now()
    current_app.logger.info(
        f"[session-start] session={session.join_code} questions={len(session.quiz.questions)} players={len(players)}"
    )
    _activate_question(session, 0)
    return session


def reveal_question(session: QuizSession) -> QuizSession:
    if session.state == REVEAL:
        return session
    if session.state != ACTIVE_QUESTION:
        raise SessionError('No question is currently active')

    question = session.current_question
    answered = {a.participant_id for a in Answer.query.filter_by(session_id=session.id, question_id=question.id)}
    for p in session.participants:
        # Missing an answer breaks the streak
        if p.is_active and not p.is_spectator and p.id not in answered and p.streak_count:
            p.streak_count = 0
            db.session.add(p)
    session.state = REVEAL
    session.timer_end_at = None
    db.session.add(session)
    _commit()
    current_app.logger.info(
        f"[reveal] session={session.join_code} index={session.current_question_index} answers={len(answered)}"
    )
    emit_state(session)
    return session


def activate_next_question(session: QuizSession) -> QuizSession:
    if session.state == ENDED:
        return session
    if session.state == LOBBY:
        raise SessionError('Session has not started')
    if session.state == ACTIVE_QUESTION:
        raise SessionError('Reveal the current question first')

    next_index = session.current_question_index + 1
    if next_index >= len(session.quiz.questions):
        return end_session(session)
    _activate_question(session, next_index)
    return session


def end_session(session: QuizSession) -> QuizSession:
    if session.state == ENDED:
        return session
    prev_state = session.state
    session.state = ENDED
    session.ended_at = _now()
    session.timer_end_at = None
    db.session.add(session)
    _commit()
    current_app.logger.info(f"[session-end] session={session.join_code} from_state={prev_state}")
    emit_state(session)
    socketio.emit('session_ended', {'join_code': session.join_code}, to=session.room, namespace=WS_NAMESPACE)
    return session


def record_answer(session: Optional[QuizSession], participant_id, question_id,
                  selected_option_ids: Iterable) -> Answer:
    """Validate, score and persist one answer; update the participant's totals."""
    now = _now()
    selected = list(selected_option_ids or [])
    participant = db.session.get(Participant, participant_id) if participant_id is not None else None
    try:
        answer_checks.check_answer(session, participant, question_id, now, selected)
    except answer_checks.AnswerRejected as exc:
        current_app.logger.warning(
            f"[answer-reject] session={getattr(session, 'join_code', None)} "
            f"participant={participant_id} question={question_id} reason={exc.reason}"
        )
        raise

    question = session.current_question
    response_time_ms = int(max(0.0, now - (session.question_started_at or now)) * 1000)
    breakdown, new_streak = score_answer(
        base_points=question.base_points,
        speed_bonus_multiplier=question.speed_bonus_multiplier,
        time_limit_sec=question.time_limit,
        selected_ids=selected,
        correct_ids=question.correct_option_ids,
        response_time_ms=response_time_ms,
        previous_streak=participant.streak_count,
        partial_credit_enabled=question.partial_credit_enabled,
    )

    answer = Answer(
        session_id=session.id,
        participant_id=participant.id,
        question_id=question.id,
        selected_options=json.dumps(selected),
        response_time_ms=response_time_ms,
        is_correct=new_streak > 0,
        points_awarded=breakdown.total_points,
        speed_bonus_applied=breakdown.speed_bonus,
        streak_bonus_applied=breakdown.streak_bonus,
        partial_credit_applied=breakdown.partial_credit > 0,
        submitted_at=now,
    )
    participant.total_score += breakdown.total_points
    participant.total_time_ms += response_time_ms
    participant.streak_count = new_streak
    db.session.add(answer)
    db.session.add(participant)
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent duplicate submission hit the unique constraint
        db.session.rollback()
        raise answer_checks.AnswerRejected(answer_checks.ALREADY_SUBMITTED)

    current_app.logger.info(
        f"[answer] session={session.join_code} participant={participant.id} question={question.id} "
        f"correct={answer.is_correct} points={answer.points_awarded} response_ms={response_time_ms}"
    )
    socketio.emit('score_updated', {
        'participant_id': participant.id,
        'total_score': participant.total_score,
        'rank': rank_of(session, participant.id),
        'total_participants': len([p for p in session.participants if p.is_active and not p.is_spectator]),
        'streak_count': participant.streak_count,
    }, to=participant_room(participant.id), namespace=WS_NAMESPACE)
    emit_state(session)
    return answer


def kick_participant(session: QuizSession, participant_id) -> Participant:
    participant = Participant.query.filter_by(id=participant_id, session_id=session.id).first()
    if not participant:
        raise SessionError('Participant not found', status=404)
    participant.is_active = False
    db.session.add(participant)
    _commit()
    current_app.logger.info(f"[kick] session={session.join_code} participant={participant.id}")
    socketio.emit('kicked', {'participant_id': participant.id},
                  to=participant_room(participant.id), namespace=WS_NAMESPACE)
    emit_state(session)
    return participant


def participant_from_token(token) -> Optional[Participant]:
    """The active participant a token was issued to, if it is still valid."""
    payload = read_participant_token(token)
    if payload is None:
        return None
    participant = db.session.get(Participant, payload['participant_id'])
    if not participant or participant.session_id != payload.get('session_id') or not participant.is_active:
        return None
    return participant


def recovery_snapshot(participant: Participant) -> dict:
    """Everything a reconnecting participant needs to pick up where they left off."""
    session = participant.session
    question = session.current_question if session.state == ACTIVE_QUESTION else None
    remaining = None
    if question is not None and session.timer_end_at is not None:
        remaining = max(0.0, session.timer_end_at - _now())
    has_answered = bool(question) and Answer.query.filter_by(
        participant_id=participant.id, question_id=question.id).first() is not None
    return {
        'participant_id': participant.id,
        'session': session.to_dict(),
        'remaining_time': remaining,
        'has_answered': has_answered,
        'total_score': participant.total_score,
        'streak_count': participant.streak_count,
        'rank': rank_of(session, participant.id),
        'is_spectator': participant.is_spectator,
        'leaderboard': build_leaderboard(session, limit=10),
    }
