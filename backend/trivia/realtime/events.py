"""Server -> client events.

One dataclass per event name with a fixed field set; ``name`` is the
Socket.IO event the payload is sent under.
"""

from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Dict, List, Optional


@dataclass
class Event:
    name: ClassVar[str] = ''

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


# ---- lobby room ----

@dataclass
class LobbyPlayerJoined(Event):
    name: ClassVar[str] = 'lobby:player_joined'
    lobby_id: int
    player: Dict[str, Any]
    players: List[Dict[str, Any]]


@dataclass
class LobbyPlayerReadyChanged(Event):
    name: ClassVar[str] = 'lobby:player_ready_changed'
    lobby_id: int
    player_id: int
    is_ready: bool
    ready_count: int
    total_players: int
    players: List[Dict[str, Any]]


@dataclass
class LobbyGameStarting(Event):
    name: ClassVar[str] = 'lobby:game_starting'
    lobby_id: int
    game_id: int
    countdown: int


@dataclass
class LobbyPlayerLeft(Event):
    name: ClassVar[str] = 'lobby:player_left'
    lobby_id: int
    player_id: int
    new_owner_id: Optional[int]
    players: List[Dict[str, Any]]


# ---- game room / player ----

@dataclass
class GameStarted(Event):
    name: ClassVar[str] = 'game:started'
    game_id: int
    lobby_id: int
    total_questions: int
    message: str = 'Game has started! Good luck!'


@dataclass
class GameNewQuestion(Event):
    name: ClassVar[str] = 'game:new_question'
    game_id: int
    question: Dict[str, Any]
    question_number: int
    total_questions: int
    time_limit: int


@dataclass
class GamePlayerAnswered(Event):
    name: ClassVar[str] = 'game:player_answered'
    game_id: int
    player_id: int
    player_name: str
    question_number: int


@dataclass
class GameQuestionResults(Event):
    name: ClassVar[str] = 'game:question_results'
    game_id: int
    question_id: int
    is_correct: bool
    correct_answer_ids: List[Any]
    explanation: Optional[str]
    points_earned: int
    new_score: int


@dataclass
class GameLeaderboardUpdate(Event):
    name: ClassVar[str] = 'game:leaderboard_update'
    game_id: int
    leaderboard: List[Dict[str, Any]]


@dataclass
class GameOver(Event):
    name: ClassVar[str] = 'game:over'
    game_id: int
    winner: Optional[Dict[str, Any]]
    final_leaderboard: List[Dict[str, Any]]


@dataclass
class GamePlayerDisconnected(Event):
    name: ClassVar[str] = 'game:player_disconnected'
    game_id: int
    player_id: int
    player_name: str


# ---- connection-scoped ----

@dataclass
class ErrorEvent(Event):
    name: ClassVar[str] = 'error'
    code: str
    message: str
