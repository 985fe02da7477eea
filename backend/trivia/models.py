from datetime import datetime, timedelta, timezone
import json

from flask_login import UserMixin

from trivia import db, bcrypt

LOBBY_STATUSES = ('waiting', 'in_progress', 'completed')
GAME_STATUSES = ('waiting', 'in_progress', 'completed')
DIFFICULTIES = ('easy', 'medium', 'hard')
QUESTION_TYPES = ('single_correct', 'multi_correct', 'true_false')


def utcnow() -> datetime:
    """Naive UTC timestamp (columns are stored without tz)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() + 'Z' if value else None


def _loads(raw, default):
    if not raw:
        return default
    return json.loads(raw)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    games_played = db.Column(db.Integer, nullable=False, default=0)
    victories = db.Column(db.Integer, nullable=False, default=0)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    time_played = db.Column(db.Integer, nullable=False, default=0)
    is_active_account = db.Column('is_active', db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_seen_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_active(self):
        return bool(self.is_active_account)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self, include_stats=False):
        data = {
            'id': self.id,
            'username': self.username,
        }
        if include_stats:
            data.update({
                'games_played': self.games_played,
                'victories': self.victories,
                'total_points': self.total_points,
                'time_played': self.time_played,
                'created_at': _iso(self.created_at),
                'last_seen_at': _iso(self.last_seen_at),
            })
        return data


class Topic(db.Model):
    __tablename__ = 'topic'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
        }


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    topic_id = db.Column(db.Integer, db.ForeignKey('topic.id'), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False, default='single_correct')
    difficulty = db.Column(db.String(16), nullable=False, index=True)
    text = db.Column(db.Text, nullable=False)
    options_json = db.Column('options', db.Text, nullable=False)  # JSON list of {id, label, text}
    correct_answer_ids_json = db.Column('correct_answer_ids', db.Text, nullable=False)  # JSON list of option ids
    explanation = db.Column(db.Text, nullable=True)
    time_limit = db.Column(db.Integer, nullable=True)
    times_asked = db.Column(db.Integer, nullable=False, default=0)
    times_correct = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    topic = db.relationship('Topic', backref=db.backref('questions', lazy='dynamic'))

    @property
    def options(self):
        return _loads(self.options_json, [])

    @options.setter
    def options(self, value):
        self.options_json = json.dumps(value)

    @property
    def correct_answer_ids(self):
        return _loads(self.correct_answer_ids_json, [])

    @correct_answer_ids.setter
    def correct_answer_ids(self, value):
        self.correct_answer_ids_json = json.dumps(list(value))

    def to_game_dict(self):
        """Question as shown during play: no solution, no statistics."""
        return {
            'id': self.id,
            'topic_id': self.topic_id,
            'type': self.type,
            'difficulty': self.difficulty,
            'text': self.text,
            'options': self.options,
        }

    def to_dict(self):
        data = self.to_game_dict()
        data.update({
            'correct_answer_ids': self.correct_answer_ids,
            'explanation': self.explanation,
            'time_limit': self.time_limit,
            'times_asked': self.times_asked,
            'times_correct': self.times_correct,
        })
        return data


class Lobby(db.Model):
    __tablename__ = 'lobby'
    __table_args__ = (
        # Codes only need to be unique among lobbies that are still live
        db.Index(
            'uq_lobby_active_code', 'code', unique=True,
            postgresql_where=db.text('archived_at IS NULL'),
            sqlite_where=db.text('archived_at IS NULL'),
        ),
    )
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(6), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    topic_ids_json = db.Column('topic_ids', db.Text, nullable=False)
    question_count = db.Column(db.Integer, nullable=False)
    difficulty_json = db.Column('difficulty', db.Text, nullable=False)  # {"easy": n, "medium": n, "hard": n}
    max_players = db.Column(db.Integer, nullable=False, default=10)
    status = db.Column(db.String(16), nullable=False, default='waiting')  # waiting, in_progress, completed
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    archived_at = db.Column(db.DateTime, nullable=True)
    current_game_id = db.Column(db.Integer, db.ForeignKey('game.id', name='fk_lobby_current_game_id', use_alter=True), nullable=True)

    members = db.relationship(
        'LobbyPlayer', back_populates='lobby', cascade='all, delete-orphan',
        order_by='[LobbyPlayer.joined_at, LobbyPlayer.id]',
    )

    def __init__(self, ttl_sec=3600, **kwargs):
        super(Lobby, self).__init__(**kwargs)
        if not self.created_at:
            self.created_at = utcnow()
        if not self.expires_at:
            self.expires_at = self.created_at + timedelta(seconds=ttl_sec)

    @property
    def topic_ids(self):
        return _loads(self.topic_ids_json, [])

    @topic_ids.setter
    def topic_ids(self, value):
        self.topic_ids_json = json.dumps(list(value))

    @property
    def difficulty(self):
        return _loads(self.difficulty_json, {'easy': 0, 'medium': 0, 'hard': 0})

    @difficulty.setter
    def difficulty(self, value):
        self.difficulty_json = json.dumps({k: int(value.get(k, 0)) for k in DIFFICULTIES})

    @property
    def is_archived(self):
        return self.archived_at is not None

    def is_ready(self, membership):
        # Owner readiness is derived, never read from the row
        return membership.user_id == self.owner_id or bool(membership.is_ready)

    def to_dict(self):
        players = []
        for m in self.members:
            players.append({
                'id': m.user_id,
                'username': m.user.username if m.user else None,
                'is_owner': m.user_id == self.owner_id,
                'is_ready': self.is_ready(m),
                'joined_at': _iso(m.joined_at),
            })
        return {
            'id': self.id,
            'code': self.code,
            'owner_id': self.owner_id,
            'topic_ids': self.topic_ids,
            'question_count': self.question_count,
            'difficulty': self.difficulty,
            'max_players': self.max_players,
            'status': self.status,
            'created_at': _iso(self.created_at),
            'expires_at': _iso(self.expires_at),
            'current_game_id': self.current_game_id,
            'players': players,
        }


class LobbyPlayer(db.Model):
    __tablename__ = 'lobby_player'
    __table_args__ = (db.UniqueConstraint('lobby_id', 'user_id', name='uq_lobby_player'),)
    id = db.Column(db.Integer, primary_key=True)
    lobby_id = db.Column(db.Integer, db.ForeignKey('lobby.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    is_ready = db.Column(db.Boolean, nullable=False, default=False)
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    lobby = db.relationship('Lobby', back_populates='members')
    user = db.relationship('User')


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    lobby_id = db.Column(db.Integer, db.ForeignKey('lobby.id'), nullable=False, index=True)
    topic_ids_json = db.Column('topic_ids', db.Text, nullable=False)
    player_ids_json = db.Column('player_ids', db.Text, nullable=False)  # participants, join order
    question_ids_json = db.Column('question_ids', db.Text, nullable=False)  # the shared quiz
    total_questions = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default='waiting')  # waiting, in_progress, completed
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    @property
    def topic_ids(self):
        return _loads(self.topic_ids_json, [])

    @property
    def player_ids(self):
        return _loads(self.player_ids_json, [])

    @property
    def question_ids(self):
        return _loads(self.question_ids_json, [])

    def has_player(self, user_id):
        return user_id in self.player_ids

    def to_dict(self):
        return {
            'id': self.id,
            'lobby_id': self.lobby_id,
            'topic_ids': self.topic_ids,
            'player_ids': self.player_ids,
            'total_questions': self.total_questions,
            'status': self.status,
            'started_at': _iso(self.started_at),
            'completed_at': _iso(self.completed_at),
        }


class PlayerProgress(db.Model):
    __tablename__ = 'player_progress'
    __table_args__ = (db.UniqueConstraint('game_id', 'user_id', name='uq_player_progress'),)
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    current_question_index = db.Column(db.Integer, nullable=False, default=0)
    score = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'game_id': self.game_id,
            'user_id': self.user_id,
            'current_question_index': self.current_question_index,
            'score': self.score,
            'updated_at': _iso(self.updated_at),
        }


class AnswerSubmission(db.Model):
    __tablename__ = 'answer_submission'
    __table_args__ = (
        db.UniqueConstraint('game_id', 'user_id', 'question_id', name='uq_answer_submission'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False)
    answer_ids_json = db.Column('answer_ids', db.Text, nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False)
    time_remaining = db.Column(db.Float, nullable=False)
    points_awarded = db.Column(db.Integer, nullable=False, default=0)
    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def answer_ids(self):
        return _loads(self.answer_ids_json, [])
