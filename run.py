#!/usr/bin/env python3
"""Local dev server for the doubles matchmaker (Socket.IO enabled)."""
import os
from dinkers.app import create_app, socketio

config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)

if __name__ == '__main__':
    host = os.environ.get('HOST', '127.0.0.1')
    port = int(os.environ.get('PORT', 5001))
    print(f"🏓 Matchmaker listening on http://{host}:{port}")
    socketio.run(app, host=host, port=port, debug=(config_name == 'development'), allow_unsafe_werkzeug=True)
