# backend/wsgi.py
from backoffice import create_app
from backoffice.extensions import socketio

app = create_app()

if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=5001)
