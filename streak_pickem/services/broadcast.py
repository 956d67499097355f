"""
Cross-session broadcast channel

Best-effort pub/sub used to tell other sessions that shared data changed.
Local observers are called in-process; remote observers (browser tabs and
other workers sharing the Socket.IO message queue) receive a Socket.IO event.
Delivery is unordered and may be lost; observers must treat a message only
as a hint to reload.
"""

import logging
import threading

from streak_pickem import socketio

logger = logging.getLogger(__name__)

LEADERBOARD_NAMESPACE = "/leaderboard"

_channels = {}
_channels_lock = threading.Lock()


class BroadcastChannel:
    """Named channel with post_message/on_message semantics"""

    def __init__(self, name, namespace=LEADERBOARD_NAMESPACE):
        self.name = name
        self.namespace = namespace
        self._handlers = []
        self._lock = threading.Lock()

    def __repr__(self):
        return f"<BroadcastChannel {self.name} handlers={len(self._handlers)}>"

    def on_message(self, handler):
        """Register a handler; returns a callable that unregisters it"""
        with self._lock:
            self._handlers.append(handler)

        def unsubscribe():
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return unsubscribe

    def post_message(self, event):
        """Deliver an event to every observer; failures are logged, never raised"""
        with self._lock:
            handlers = list(self._handlers)

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Broadcast handler failed on channel {self.name}: {e}")

        try:
            socketio.emit(
                event.get("type", "message").lower(),
                event,
                namespace=self.namespace,
            )
        except Exception as e:
            logger.error(f"Error emitting {event.get('type')} on {self.namespace}: {e}")

    def close(self):
        with self._lock:
            self._handlers.clear()


def get_channel(name):
    """Process-wide channel registry so observers survive across requests"""
    with _channels_lock:
        channel = _channels.get(name)
        if channel is None:
            channel = BroadcastChannel(name)
            _channels[name] = channel
        return channel
