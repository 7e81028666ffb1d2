"""Answer submission checks.

Run before an answer is scored; each failed check maps to a rejection code
that is returned to the participant alongside a readable message.
"""

from typing import List, Optional

from livequiz.models import ACTIVE_QUESTION, ENDED, Answer, Participant, QuizSession

SESSION_NOT_FOUND = 'SESSION_NOT_FOUND'
QUESTION_NOT_ACTIVE = 'QUESTION_NOT_ACTIVE'
INVALID_QUESTION = 'INVALID_QUESTION'
TIME_EXPIRED = 'TIME_EXPIRED'
PARTICIPANT_NOT_ACTIVE = 'PARTICIPANT_NOT_ACTIVE'
PARTICIPANT_SPECTATOR = 'PARTICIPANT_SPECTATOR'
ALREADY_SUBMITTED = 'ALREADY_SUBMITTED'
INVALID_OPTIONS = 'INVALID_OPTIONS'

MESSAGES = {
    SESSION_NOT_FOUND: 'Session not found or already ended',
    QUESTION_NOT_ACTIVE: 'No question is currently active',
    INVALID_QUESTION: 'Question does not match the current question',
    TIME_EXPIRED: 'Answer submission time has expired',
    PARTICIPANT_NOT_ACTIVE: 'Participant is not active in this session',
    PARTICIPANT_SPECTATOR: 'Spectators cannot submit answers',
    ALREADY_SUBMITTED: 'You have already submitted an answer for this question',
    INVALID_OPTIONS: 'Select one or more distinct options that belong to this question',
}


class AnswerRejected(Exception):
    def __init__(self, reason: str):
        super().__init__(MESSAGES.get(reason, reason))
        self.reason = reason
        self.message = MESSAGES.get(reason, reason)


def validate_answer(
    session: Optional[QuizSession],
    participant: Optional[Participant],
    question_id,
    now: float,
    selected_option_ids=(),
) -> Optional[str]:
    """Return the rejection code for this submission, or None if it's acceptable."""
    if session is None or session.state == ENDED:
        return SESSION_NOT_FOUND
    if session.state != ACTIVE_QUESTION:
        return QUESTION_NOT_ACTIVE
    question = session.current_question
    if question is None or question.id != question_id:
        return INVALID_QUESTION
    if session.timer_end_at is None or now > session.timer_end_at:
        return TIME_EXPIRED
    if participant is None or participant.session_id != session.id or not participant.is_active:
        return PARTICIPANT_NOT_ACTIVE
    if participant.is_spectator:
        return PARTICIPANT_SPECTATOR
    if Answer.query.filter_by(participant_id=participant.id, question_id=question.id).first():
        return ALREADY_SUBMITTED
    selected = list(selected_option_ids)
    if not selected or len(set(selected)) != len(selected):
        return INVALID_OPTIONS
    if not set(selected) <= {o.id for o in question.options}:
        return INVALID_OPTIONS
    return None


def check_answer(session, participant, question_id, now, selected_option_ids=()) -> None:
    reason = validate_answer(session, participant, question_id, now, selected_option_ids)
    if reason:
        raise AnswerRejected(reason)


def parse_option_ids(value) -> Optional[List[int]]:
    """Coerce a submitted selection to a list of ids, or None if it isn't one."""
    if not isinstance(value, list):
        return None
    ids = []
    for item in value:
        if isinstance(item, bool):
            return None
        try:
            ids.append(int(item))
        except (TypeError, ValueError):
            return None
    return ids
