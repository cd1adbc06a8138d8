"""Domain exceptions raised by the session services."""


class PlanningPokerError(Exception):
    """Base class for session and round errors."""
    pass


class SessionNotFound(PlanningPokerError):
    """No live session with the given identifier."""
    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")
