"""Player record store: lookups and stat bookkeeping on ``User`` rows."""

from typing import Optional

from trivia import db
from trivia.models import User, utcnow


def get_by_id(user_id: int) -> Optional[User]:
    return db.session.get(User, user_id)


def get_by_handle(username: str) -> Optional[User]:
    if not username:
        return None
    return User.query.filter_by(username=username.strip()).first()


def update_last_seen(user_id: int, commit: bool = True) -> None:
    User.query.filter_by(id=user_id).update({'last_seen_at': utcnow()}, synchronize_session=False)
    if commit:
        db.session.commit()


def apply_stats_delta(user_id: int, games_played: int = 0, victories: int = 0, total_points: int = 0,
                      time_played: int = 0) -> None:
    """Add deltas to a player's lifetime stats.

    Runs as a single SQL-side increment; the caller owns the transaction.
    """
    User.query.filter_by(id=user_id).update({
        User.games_played: User.games_played + games_played,
        User.victories: User.victories + victories,
        User.total_points: User.total_points + total_points,
        User.time_played: User.time_played + time_played,
    }, synchronize_session=False)
