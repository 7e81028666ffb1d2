import time
from typing import Set, Tuple

from livequiz import db, socketio
from livequiz.models import ACTIVE_QUESTION, REVEAL, QuizSession
from .sessions import activate_next_question, reveal_question


_scheduled_timer_keys: Set[Tuple[int, str, int]] = set()


def schedule_question_timer(app, session_id: int) -> None:
    """Schedule auto-advance for the current state of the given session.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single timer per (session_id, state, question index)
    - active_question -> reveal when the question's time limit runs out
    - reveal -> next question after REVEAL_DURATION_SEC (0 leaves it to the host)
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    with app.app_context():
        session = db.session.get(QuizSession, session_id)
        if not session:
            return

        state = session.state
        index = int(session.current_question_index)
        key = (session.id, state, index)

        if state == ACTIVE_QUESTION:
            delay = max(0.0, (session.timer_end_at or time.time()) - time.time())
        elif state == REVEAL:
            delay = float(app.config.get('REVEAL_DURATION_SEC', 0))
            if delay <= 0:
                return
        else:
            return

        if key in _scheduled_timer_keys:
            app.logger.info(f"[timer-skip] session={session.join_code} state={state} index={index} already scheduled")
            return
        _scheduled_timer_keys.add(key)
        app.logger.info(f"[timer-set] session={session.join_code} state={state} index={index} delay={delay:.1f}s")

    def _worker(expected_state: str, sid: int, expected_index: int, wait: float):
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0))
        if hb > 0:
            slept = 0.0
            while slept < wait:
                step = min(hb, wait - slept)
                time.sleep(step)
                slept += step
                app.logger.info(
                    f"[timer-heartbeat] session={sid} state={expected_state} index={expected_index} "
                    f"remaining={max(0.0, wait - slept):.1f}s"
                )
        else:
            time.sleep(wait)

        with app.app_context():
            _scheduled_timer_keys.discard((sid, expected_state, expected_index))
            s = db.session.get(QuizSession, sid)
            if not s:
                return
            app.logger.info(
                f"[timer-fire] session={s.join_code} expected_state={expected_state} expected_index={expected_index} "
                f"actual_state={s.state} actual_index={s.current_question_index}"
            )
            if s.state != expected_state or s.current_question_index != expected_index:
                app.logger.info(f"[timer-abort] session={s.join_code} state/index moved on")
                return

            if expected_state == ACTIVE_QUESTION:
                reveal_question(s)
            else:
                activate_next_question(s)
            schedule_question_timer(app, s.id)

    if app.config.get('TESTING'):
        _worker(state, session_id, index, delay)
    else:
        socketio.start_background_task(_worker, state, session_id, index, delay)
