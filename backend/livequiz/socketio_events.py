from flask import request, current_app
from flask_socketio import join_room, leave_room, emit
from livequiz import socketio, db
from livequiz.models import ENDED, Participant
from livequiz.services.answers import AnswerRejected, parse_option_ids
from livequiz.services.sessions import (
    WS_NAMESPACE, emit_state, find_session, participant_from_token, participant_room,
    record_answer, recovery_snapshot,
)
from typing import Dict, Any

ROLES = ('bigscreen', 'controller', 'participant')

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def _payload(data) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _join_code(data) -> str:
    code = data.get('join_code')
    return code.strip().upper() if isinstance(code, str) else ''


def _set_connected(participant_id, connected: bool) -> None:
    participant = db.session.get(Participant, participant_id)
    if not participant:
        return
    participant.is_connected = connected
    db.session.add(participant)
    db.session.commit()
    emit_state(participant.session)


def _attach_participant(participant: Participant, role: str = 'participant') -> None:
    session = participant.session
    join_room(participant_room(participant.id))
    join_room(session.room)
    _sid_to_ctx[_get_sid()] = {'join_code': session.join_code, 'role': role, 'participant_id': participant.id}
    _set_connected(participant.id, True)


def handle_connect():
    emit('connected', {'message': f'Connected to {WS_NAMESPACE}'})


def handle_disconnect(*args):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    if ctx.get('participant_id'):
        _set_connected(ctx['participant_id'], False)
    current_app.logger.info(
        f"[ws-disconnect] session={ctx.get('join_code')} role={ctx.get('role')} participant={ctx.get('participant_id')}"
    )


def handle_join_session(data):
    data = _payload(data)
    join_code = _join_code(data)
    role = data.get('role') or 'participant'
    if not join_code:
        emit('error', {'message': 'join_code is required'})
        return
    if role not in ROLES:
        emit('error', {'message': f'role must be one of {", ".join(ROLES)}'})
        return
    session = find_session(join_code)
    if not session:
        emit('error', {'message': 'Session not found'})
        return

    if role == 'participant':
        participant = participant_from_token(data.get('participant_token'))
        if not participant or participant.session_id != session.id:
            current_app.logger.warning(f"[ws-join] session={join_code} rejected participant token")
            emit('error', {'message': 'A valid participant_token for this session is required'})
            return
        emit('joined', {'room': session.room, 'role': role, 'state': session.state,
                        'participant_id': participant.id})
        _attach_participant(participant)
        return

    join_room(session.room)
    _sid_to_ctx[_get_sid()] = {'join_code': join_code, 'role': role, 'participant_id': None}
    emit('joined', {'room': session.room, 'role': role, 'state': session.state})


def handle_leave_session(data):
    join_code = _join_code(_payload(data))
    if not join_code:
        emit('error', {'message': 'join_code is required'})
        return
    room = f"session:{join_code}"
    leave_room(room)
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx.get('join_code') == join_code:
        _sid_to_ctx.pop(_get_sid(), None)
        if ctx.get('participant_id'):
            leave_room(participant_room(ctx['participant_id']))
            _set_connected(ctx['participant_id'], False)
    emit('left', {'room': room})


def handle_submit_answer(data):
    data = _payload(data)
    question_id = data.get('question_id')
    participant = None
    if data.get('participant_token'):
        participant = participant_from_token(data['participant_token'])
    else:
        ctx = _sid_to_ctx.get(_get_sid()) or {}
        if ctx.get('participant_id'):
            participant = db.session.get(Participant, ctx['participant_id'])
    if participant is None:
        emit('answer_rejected', {'question_id': question_id, 'reason': 'UNAUTHENTICATED',
                                 'message': 'Join the session as a participant first'})
        return

    selected = parse_option_ids(data.get('selected_option_ids', []))
    if selected is None or isinstance(question_id, bool) or not isinstance(question_id, int):
        emit('answer_rejected', {'question_id': question_id, 'reason': 'INVALID_OPTIONS',
                                 'message': 'question_id and selected_option_ids must be ids'})
        return

    try:
        answer = record_answer(participant.session, participant.id, question_id, selected)
    except AnswerRejected as exc:
        emit('answer_rejected', {'question_id': question_id, 'reason': exc.reason, 'message': exc.message})
        return
    emit('answer_accepted', {
        'question_id': answer.question_id,
        'answer_id': answer.id,
        'response_time_ms': answer.response_time_ms,
        'server_timestamp': answer.submitted_at,
    })


def handle_reconnect_session(data):
    data = _payload(data)
    participant = participant_from_token(data.get('participant_token'))
    join_code = _join_code(data)
    if not participant or (join_code and participant.session.join_code != join_code):
        emit('recovery_failed', {'reason': 'PARTICIPANT_NOT_FOUND',
                                 'message': 'Could not restore this participant'})
        return
    if participant.session.state == ENDED:
        emit('recovery_failed', {'reason': 'SESSION_ENDED', 'message': 'This quiz session has already ended'})
        return

    _attach_participant(participant)
    current_app.logger.info(
        f"[ws-reconnect] session={participant.session.join_code} participant={participant.id}"
    )
    emit('session_recovered', recovery_snapshot(participant))


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [WS_NAMESPACE, '/'] if testing else [WS_NAMESPACE]
    for ns in namespaces:
        socketio.on_event('connect', handle_connect, namespace=ns)
        socketio.on_event('disconnect', handle_disconnect, namespace=ns)
        socketio.on_event('join_session', handle_join_session, namespace=ns)
        socketio.on_event('leave_session', handle_leave_session, namespace=ns)
        socketio.on_event('submit_answer', handle_submit_answer, namespace=ns)
        socketio.on_event('reconnect_session', handle_reconnect_session, namespace=ns)
        socketio.on_event('ping', handle_ping, namespace=ns)
