"""Expired-lobby sweep and archived-lobby purge."""

from datetime import timedelta

from flask import current_app

from trivia import db, socketio
from trivia.models import Game, Lobby, LobbyPlayer, utcnow


def cleanup_expired_lobbies() -> int:
    """Archive waiting lobbies whose TTL has passed. Returns how many."""
    now = utcnow()
    archived = (
        Lobby.query.filter(Lobby.status == 'waiting', Lobby.archived_at.is_(None), Lobby.expires_at < now)
        .update({'status': 'completed', 'archived_at': now}, synchronize_session=False)
    )
    db.session.commit()
    if archived:
        current_app.logger.info(f"[lobby-cleanup] archived={archived}")
    return archived


def delete_old_archived_lobbies(days_old: int = 30) -> int:
    """Delete lobbies archived more than ``days_old`` days ago that never produced a game."""
    cutoff = utcnow() - timedelta(days=days_old)
    with_games = db.select(Game.lobby_id)
    stale_ids = [
        row.id for row in
        db.session.query(Lobby.id)
        .filter(Lobby.archived_at.isnot(None), Lobby.archived_at < cutoff, Lobby.id.notin_(with_games))
        .all()
    ]
    if not stale_ids:
        return 0
    LobbyPlayer.query.filter(LobbyPlayer.lobby_id.in_(stale_ids)).delete(synchronize_session=False)
    deleted = Lobby.query.filter(Lobby.id.in_(stale_ids)).delete(synchronize_session=False)
    db.session.commit()
    current_app.logger.info(f"[lobby-purge] deleted={deleted} older_than_days={days_old}")
    return deleted


def start_lobby_cleanup_job(app) -> bool:
    """Run the sweep every LOBBY_CLEANUP_INTERVAL_SEC on a Socket.IO background task.

    No-op in TESTING mode or when the interval is 0.
    """
    interval = int(app.config.get('LOBBY_CLEANUP_INTERVAL_SEC', 300))
    if app.config.get('TESTING') or interval <= 0:
        return False

    retention_days = int(app.config.get('ARCHIVED_LOBBY_RETENTION_DAYS', 30))

    def _worker():
        while True:
            socketio.sleep(interval)
            with app.app_context():
                try:
                    cleanup_expired_lobbies()
                    delete_old_archived_lobbies(retention_days)
                except Exception:
                    db.session.rollback()
                    app.logger.exception("[lobby-cleanup] sweep failed")

    socketio.start_background_task(_worker)
    app.logger.info(f"[lobby-cleanup] scheduled every {interval}s")
    return True
