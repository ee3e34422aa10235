from flask import current_app, request
from liars import socketio


class SocketIOEmitter:
    """Sends dispatcher output through the shared Socket.IO server."""

    def __init__(self, namespace: str = '/'):
        self.namespace = namespace

    def emit(self, event, data=None, to=None):
        if to is None:
            socketio.emit(event, data, namespace=self.namespace)
        else:
            socketio.emit(event, data, to=to, namespace=self.namespace)


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _server():
    return current_app.extensions['game_server']


def handle_connect(auth=None):
    current_app.logger.info(f"[connect] sid={_get_sid()}")


def handle_disconnect(reason=None):
    sid = _get_sid()
    current_app.logger.info(f"[disconnect] sid={sid} reason={reason}")
    _server().disconnect(sid)


def _make_event_handler(event: str):
    def _handler(data=None):
        _server().handle(_get_sid(), event, data)
    _handler.__name__ = f"handle_{event.replace(':', '_')}"
    return _handler


def register_socketio_handlers(flask_app) -> None:
    """Register Socket.IO event handlers.

    Every game event is forwarded to the app's GameServer; the namespace
    comes from SOCKETIO_NAMESPACE.
    """
    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/')
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    for event in flask_app.extensions['game_server'].dispatcher.events:
        socketio.on_event(event, _make_event_handler(event), namespace=namespace)
