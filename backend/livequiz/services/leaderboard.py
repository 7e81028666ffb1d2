from typing import List, Optional

from livequiz.models import Participant, QuizSession


def ranked_participants(session: QuizSession) -> List[Participant]:
    """Active players ordered by score desc, then total answer time asc.

    Spectators are not ranked. Remaining ties go to whoever joined first.
    """
    players = [p for p in session.participants if p.is_active and not p.is_spectator]
    return sorted(players, key=lambda p: (-p.total_score, p.total_time_ms, p.id))


def build_leaderboard(session: QuizSession, limit: Optional[int] = None) -> List[dict]:
    board = []
    for rank, p in enumerate(ranked_participants(session), start=1):
        if limit is not None and rank > limit:
            break
        board.append({
            'rank': rank,
            'participant_id': p.id,
            'nickname': p.nickname,
            'total_score': p.total_score,
            'total_time_ms': p.total_time_ms,
            'streak_count': p.streak_count,
        })
    return board


def rank_of(session: QuizSession, participant_id: int) -> Optional[int]:
    for rank, p in enumerate(ranked_participants(session), start=1):
        if p.id == participant_id:
            return rank
    return None
