from typing import Any, Dict, Optional


class ConnectionRegistry:
    """Process-local map of authenticated players to their live socket.

    One tracked connection per player: a newer connection replaces the older
    one, and the older one's disconnect no longer clears the mapping. Lost on
    restart; clients recover state through HTTP.
    """

    def __init__(self):
        self._user_to_sid: Dict[int, str] = {}
        self._sid_to_ctx: Dict[str, Dict[str, Any]] = {}

    def register(self, sid: str, user_id: int, username: str) -> Optional[str]:
        """Track ``sid`` for the user; returns the superseded sid, if any."""
        previous = self._user_to_sid.get(user_id)
        self._user_to_sid[user_id] = sid
        self._sid_to_ctx[sid] = {'user_id': user_id, 'username': username}
        return previous if previous != sid else None

    def unregister(self, sid: str) -> Optional[Dict[str, Any]]:
        """Forget ``sid``; returns its context and whether it was the live one."""
        ctx = self._sid_to_ctx.pop(sid, None)
        if not ctx:
            return None
        was_live = self._user_to_sid.get(ctx['user_id']) == sid
        if was_live:
            del self._user_to_sid[ctx['user_id']]
        return dict(ctx, was_live=was_live)

    def sid_for(self, user_id: int) -> Optional[str]:
        return self._user_to_sid.get(user_id)

    def context_for(self, sid: str) -> Optional[Dict[str, Any]]:
        return self._sid_to_ctx.get(sid)

    def is_connected(self, user_id: int) -> bool:
        return user_id in self._user_to_sid

    def clear(self) -> None:
        self._user_to_sid.clear()
        self._sid_to_ctx.clear()


connections = ConnectionRegistry()
