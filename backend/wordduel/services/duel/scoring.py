from typing import Iterable

from wordduel.models import Player


def normalize_answer(text: str) -> str:
    return (text or '').strip().casefold()


def answers_match(submitted: str, expected: str) -> bool:
    """Case-insensitive comparison ignoring surrounding whitespace."""
    return normalize_answer(submitted) == normalize_answer(expected)


def build_results(players: Iterable[Player]) -> dict:
    """Final scoreboard payload for ``gameOver``.

    Results are ordered by score, highest first; roster order breaks ties.
    Everyone holding the top score is a winner.
    """
    roster = list(players)
    results = [
        {'name': p.name, 'score': p.score}
        for p in sorted(roster, key=lambda p: p.score, reverse=True)
    ]
    max_score = max((p.score for p in roster), default=0)
    winners = [p.name for p in roster if p.score == max_score] if roster else []
    return {
        'winners': winners,
        'maxScore': max_score,
        'results': results,
    }
