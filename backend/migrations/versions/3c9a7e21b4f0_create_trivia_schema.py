"""create trivia schema: users, topics, questions, lobbies, games, progress, answers

Revision ID: 3c9a7e21b4f0
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9a7e21b4f0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
        sa.Column('games_played', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('victories', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('time_played', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'topic',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('topic_id', sa.Integer(), sa.ForeignKey('topic.id'), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('difficulty', sa.String(length=16), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('options', sa.Text(), nullable=False),
        sa.Column('correct_answer_ids', sa.Text(), nullable=False),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('time_limit', sa.Integer(), nullable=True),
        sa.Column('times_asked', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('times_correct', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_question_topic_id', 'question', ['topic_id'])
    op.create_index('ix_question_difficulty', 'question', ['difficulty'])

    # current_game_id gets its FK after the game table exists
    op.create_table(
        'lobby',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=6), nullable=False),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('topic_ids', sa.Text(), nullable=False),
        sa.Column('question_count', sa.Integer(), nullable=False),
        sa.Column('difficulty', sa.Text(), nullable=False),
        sa.Column('max_players', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='waiting'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('current_game_id', sa.Integer(), nullable=True),
    )
    op.create_index('ix_lobby_expires_at', 'lobby', ['expires_at'])
    op.create_index(
        'uq_lobby_active_code', 'lobby', ['code'], unique=True,
        postgresql_where=sa.text('archived_at IS NULL'),
        sqlite_where=sa.text('archived_at IS NULL'),
    )

    op.create_table(
        'lobby_player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('lobby_id', sa.Integer(), sa.ForeignKey('lobby.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('is_ready', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('lobby_id', 'user_id', name='uq_lobby_player'),
    )
    op.create_index('ix_lobby_player_lobby_id', 'lobby_player', ['lobby_id'])
    op.create_index('ix_lobby_player_user_id', 'lobby_player', ['user_id'])

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('lobby_id', sa.Integer(), sa.ForeignKey('lobby.id'), nullable=False),
        sa.Column('topic_ids', sa.Text(), nullable=False),
        sa.Column('player_ids', sa.Text(), nullable=False),
        sa.Column('question_ids', sa.Text(), nullable=False),
        sa.Column('total_questions', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='waiting'),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_game_lobby_id', 'game', ['lobby_id'])

    bind = op.get_bind()
    if bind.dialect.name != 'sqlite':
        op.create_foreign_key('fk_lobby_current_game_id', 'lobby', 'game', ['current_game_id'], ['id'])

    op.create_table(
        'player_progress',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('current_question_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('game_id', 'user_id', name='uq_player_progress'),
    )
    op.create_index('ix_player_progress_game_id', 'player_progress', ['game_id'])
    op.create_index('ix_player_progress_user_id', 'player_progress', ['user_id'])

    op.create_table(
        'answer_submission',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('game_id', sa.Integer(), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('answer_ids', sa.Text(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('time_remaining', sa.Float(), nullable=False),
        sa.Column('points_awarded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('game_id', 'user_id', 'question_id', name='uq_answer_submission'),
    )
    op.create_index('ix_answer_submission_game_id', 'answer_submission', ['game_id'])


def downgrade():
    op.drop_table('answer_submission')
    op.drop_table('player_progress')
    bind = op.get_bind()
    if bind.dialect.name != 'sqlite':
        op.drop_constraint('fk_lobby_current_game_id', 'lobby', type_='foreignkey')
    op.drop_table('game')
    op.drop_table('lobby_player')
    op.drop_index('uq_lobby_active_code', table_name='lobby')
    op.drop_table('lobby')
    op.drop_table('question')
    op.drop_table('topic')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
