"""
Shared Flask extensions.

The SocketIO instance lives here so services can push real-time status
updates without importing the application module.
"""

import logging
from flask_socketio import SocketIO

logger = logging.getLogger(__name__)

socketio = SocketIO()


def emit_status(event, payload):
    """Broadcast a status update to connected dashboards"""
    try:
        socketio.emit(event, payload)
    except Exception as e:
        logger.warning(f"Failed to emit {event}: {e}")
