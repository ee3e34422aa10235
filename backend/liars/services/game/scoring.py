import logging
from typing import Dict, List

from .state import Session

logger = logging.getLogger(__name__)

BASE_POINTS = 1000


def _is_correct(vote: str, correct_answer: bool) -> bool:
    return (vote == 'truth') == bool(correct_answer)


def calculate_vote_distribution(votes: Dict[str, str]) -> Dict[str, int]:
    distribution = {'truth': 0, 'lie': 0, 'total': 0}
    for vote in votes.values():
        if vote == 'truth':
            distribution['truth'] += 1
        else:
            distribution['lie'] += 1
        distribution['total'] += 1
    return distribution


def calculate_scores(votes: Dict[str, str], correct_answer: bool) -> Dict[str, int]:
    """Points per voter for one story.

    Correct voters share a difficulty bonus of ``1000 * (1 - percent_correct)``,
    rounded half up; wrong voters get 0. When nobody is correct everyone gets 0.
    """
    if not votes:
        return {}
    total = len(votes)
    correct_count = sum(1 for v in votes.values() if _is_correct(v, correct_answer))
    if correct_count == 0:
        return {pid: 0 for pid in votes}
    wrong_count = total - correct_count
    # round(BASE_POINTS * wrong / total), half up, in integers
    points = (2 * BASE_POINTS * wrong_count + total) // (2 * total)
    return {pid: (points if _is_correct(v, correct_answer) else 0) for pid, v in votes.items()}


def apply_scores_to_players(session: Session, round_scores: Dict[str, int]) -> None:
    """Add a round's points to player totals and record them as the round's scores.

    Players removed since voting are skipped.
    """
    for player_id, points in round_scores.items():
        player = session.players.get(player_id)
        if player is None:
            logger.info(f"[score] skip unknown player={player_id}")
            continue
        player.total_score += points
    session.round_scores = dict(round_scores)


def _ranked(session: Session):
    # sorted() is stable, so insertion order breaks ties
    return sorted(session.players.values(), key=lambda p: p.total_score, reverse=True)


def get_leaderboard(session: Session, limit: int = 5) -> List[Dict]:
    entries = []
    for index, player in enumerate(_ranked(session)):
        entries.append({
            'playerId': player.id,
            'playerName': player.name,
            'totalScore': player.total_score,
            'rank': index + 1,
        })
    return entries[:max(0, limit)]


def get_player_rank(session: Session, player_id: str) -> Dict[str, int]:
    ranked = _ranked(session)
    rank = 0
    for index, player in enumerate(ranked):
        if player.id == player_id:
            rank = index + 1
            break
    return {'rank': rank, 'total': len(ranked)}
