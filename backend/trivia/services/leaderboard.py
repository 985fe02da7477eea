"""Per-game leaderboard backed by a Redis sorted set.

Scores live in ``game:{id}:leaderboard`` and are only ever changed with
ZINCRBY, so concurrent correct answers never lose an update. Redis orders
equal scores by member name, which is not meaningful here, so a companion
hash ``game:{id}:leaderboard:order`` stores each player's registration
index and reads sort on (score desc, registration index asc).

The relational store (PlayerProgress / AnswerSubmission) is authoritative;
this is a mirror that can be rebuilt at any time.
"""

from typing import Dict, Iterable, List, Optional

import redis
from flask import current_app

from trivia import db


def leaderboard_key(game_id: int) -> str:
    return f"game:{game_id}:leaderboard"


def order_key(game_id: int) -> str:
    return f"game:{game_id}:leaderboard:order"


class LeaderboardStore:

    def __init__(self, app=None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        client = app.config.get('REDIS_CLIENT')
        if client is None:
            client = redis.Redis.from_url(app.config['REDIS_URL'], decode_responses=True)
        app.extensions['leaderboard'] = client

    @property
    def client(self) -> redis.Redis:
        return current_app.extensions['leaderboard']

    def init(self, game_id: int, player_ids: Iterable[int]) -> None:
        """Register every participant at score 0, in participant order."""
        self.rebuild(game_id, [(pid, 0) for pid in player_ids])

    def rebuild(self, game_id: int, scored_players: List[tuple], ttl: Optional[int] = None) -> None:
        """Replace the game's leaderboard with ``[(player_id, score), ...]``.

        List order is the registration order used to break ties.
        """
        pipe = self.client.pipeline(transaction=True)
        pipe.delete(leaderboard_key(game_id), order_key(game_id))
        if scored_players:
            pipe.zadd(leaderboard_key(game_id), {str(pid): score for pid, score in scored_players})
            pipe.hset(order_key(game_id), mapping={str(pid): idx for idx, (pid, _) in enumerate(scored_players)})
            if ttl:
                pipe.expire(leaderboard_key(game_id), ttl)
                pipe.expire(order_key(game_id), ttl)
        pipe.execute()

    def increment(self, game_id: int, player_id: int, delta: int) -> int:
        return int(self.client.zincrby(leaderboard_key(game_id), delta, str(player_id)))

    def exists(self, game_id: int) -> bool:
        return bool(self.client.exists(leaderboard_key(game_id)))

    def expire(self, game_id: int, ttl: int) -> None:
        pipe = self.client.pipeline(transaction=True)
        pipe.expire(leaderboard_key(game_id), ttl)
        pipe.expire(order_key(game_id), ttl)
        pipe.execute()

    def _ordered(self, game_id: int) -> List[tuple]:
        pipe = self.client.pipeline(transaction=True)
        pipe.zrange(leaderboard_key(game_id), 0, -1, withscores=True)
        pipe.hgetall(order_key(game_id))
        members, order = pipe.execute()
        unknown = len(order)
        rows = [(int(member), int(score)) for member, score in members]
        rows.sort(key=lambda r: (-r[1], int(order.get(str(r[0]), unknown)), r[0]))
        return rows

    def read_all(self, game_id: int) -> List[Dict]:
        """Ranked entries ``{rank, player_id, player_name, score}``, best first.

        Display names are looked up on every read rather than stored in Redis.
        """
        from trivia.models import User

        rows = self._ordered(game_id)
        ids = [pid for pid, _ in rows]
        names = {}
        if ids:
            names = {u.id: u.username for u in db.session.query(User).filter(User.id.in_(ids)).all()}
        return [
            {
                'rank': idx + 1,
                'player_id': pid,
                'player_name': names.get(pid, 'Unknown Player'),
                'score': score,
            }
            for idx, (pid, score) in enumerate(rows)
        ]

    def read_rank(self, game_id: int, player_id: int) -> Optional[int]:
        for idx, (pid, _) in enumerate(self._ordered(game_id)):
            if pid == player_id:
                return idx + 1
        return None

    def read_score(self, game_id: int, player_id: int) -> Optional[int]:
        score = self.client.zscore(leaderboard_key(game_id), str(player_id))
        return int(score) if score is not None else None
