"""Real-time fan-out: connection tracking, typed events and room emitters.

All traffic runs on the ``/ws`` Socket.IO namespace. Push is an
optimization: every piece of state a client can receive here is also
available through the HTTP endpoints.
"""

NAMESPACE = '/ws'


def lobby_room(lobby_id: int) -> str:
    return f"lobby:{lobby_id}"


def game_room(game_id: int) -> str:
    return f"game:{game_id}"
