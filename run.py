# Eventlet monkey patching MUST be first before any other imports
import eventlet
eventlet.monkey_patch()

import os

from streak_pickem import create_app, db, socketio
from streak_pickem.models import OutcomeCheck, StorageItem

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {"db": db, "StorageItem": StorageItem, "OutcomeCheck": OutcomeCheck}


if __name__ == "__main__":
    socketio.run(
        app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 5000)),
        debug=app.config.get("DEBUG", False),
    )
