"""Session domain services: the session store, its round state machine,
and the reveal timers.

Nothing here touches the transport; the Socket.IO handlers call into these
objects and turn the results into broadcasts.
"""

from .scheduler import RevealTimer, TimerScheduler
from .store import SessionStore, generate_session_id

__all__ = ['RevealTimer', 'SessionStore', 'TimerScheduler', 'generate_session_id']
