from trivia import create_app, socketio
from trivia.services.cleanup import start_lobby_cleanup_job

app = create_app()

if __name__ == '__main__':
    start_lobby_cleanup_job(app)
    # Use SocketIO server to enable websockets in dev
    socketio.run(app, debug=True)
