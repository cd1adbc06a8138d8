import logging
import secrets
import threading
from typing import Dict, List, Optional, Tuple

from planning_poker.exceptions import SessionNotFound
from planning_poker.models import ChatMessage, Participant, Round, RoundSummary, Session


def generate_session_id(num_bytes: int = 4) -> str:
    """Short, human-typeable code: uppercase hex of random bytes."""
    return secrets.token_hex(num_bytes).upper()


class SessionStore:
    """In-memory table of live sessions and the round state machine on each.

    Every mutation runs under one re-entrant lock so that a command handler
    and a timer task never interleave on the same round. Round transitions
    that are not allowed from the current state are no-ops returning a
    falsy value.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, default_theme: str = 'modern', id_bytes: int = 4):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.RLock()
        self.logger = logger or logging.getLogger(__name__)
        self.default_theme = default_theme
        self.id_bytes = id_bytes

    @property
    def lock(self) -> threading.RLock:
        """Held by callers that must pair a transition with its broadcast."""
        return self._lock

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id) -> bool:
        return self.session_exists(session_id)

    @staticmethod
    def _key(session_id) -> str:
        return str(session_id or '').strip().upper()

    # ---- Lifecycle ----

    def create_session(self, creator_name: str, theme: Optional[str] = None) -> Tuple[str, Session]:
        with self._lock:
            session_id = generate_session_id(self.id_bytes)
            while session_id in self._sessions:
                self.logger.warning(f"[session-collision] session={session_id} regenerating")
                session_id = generate_session_id(self.id_bytes)
            session = Session(id=session_id, theme=theme or self.default_theme)
            self._sessions[session_id] = session
        self.logger.info(f"[session-create] session={session_id} creator={creator_name!r} theme={session.theme}")
        return session_id, session

    def get_session(self, session_id) -> Optional[Session]:
        return self._sessions.get(self._key(session_id))

    def require(self, session_id) -> Session:
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def session_exists(self, session_id) -> bool:
        return self._key(session_id) in self._sessions

    def delete_session(self, session_id) -> bool:
        with self._lock:
            session = self._sessions.pop(self._key(session_id), None)
            if session is None:
                return False
            session.current_round.cancel_timer()
        self.logger.info(f"[session-delete] session={session.id}")
        return True

    def join_session(self, session_id, participant_id: str, username: str) -> bool:
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                return False
            if not session.participants:
                session.creator_id = participant_id
            session.participants[participant_id] = Participant(id=participant_id, username=username)
        self.logger.info(f"[session-join] session={session.id} user={participant_id} name={username!r}")
        return True

    def leave_session(self, session_id, participant_id: str) -> None:
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                return
            participant = session.participants.pop(participant_id, None)
            if participant is None:
                return
            self.logger.info(f"[session-leave] session={session.id} user={participant_id} name={participant.username!r}")
            if not session.participants:
                self.delete_session(session.id)

    # ---- Round state machine ----

    def start_voting(self, session_id, timer_duration: int = 0) -> Optional[Round]:
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                return None
            session.current_round.cancel_timer()
            session.current_round = session.current_round.started(timer_duration)
            current = session.current_round
        self.logger.info(f"[round-start] session={session.id} round={current.number} timer={timer_duration}s")
        return current

    def attach_timer(self, session_id, round_number: int, timer) -> bool:
        """Bind a reveal timer to the round it was scheduled for.

        If that round is no longer current the timer is cancelled instead.
        """
        with self._lock:
            session = self.get_session(session_id)
            current = session.current_round if session else None
            if current is None or current.number != round_number or not current.active or current.revealed:
                timer.cancel()
                return False
            current.cancel_timer()
            current.timer = timer
            return True

    def submit_vote(self, session_id, participant_id: str, value) -> bool:
        with self._lock:
            session = self.get_session(session_id)
            if session is None or participant_id not in session.participants:
                return False
            return session.current_round.cast(participant_id, value)

    def reveal_votes(self, session_id, round_number: Optional[int] = None) -> Optional[dict]:
        """Reveal the current round once and return the vote roster.

        Returns None when the session is gone, the round isn't voting (a
        second reveal lands here), or `round_number` names a stale round.
        """
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                return None
            current = session.current_round
            if round_number is not None and current.number != round_number:
                return None
            if not current.reveal():
                return None
            current.cancel_timer()
            results = {'votes': session.vote_roster()}
        self.logger.info(f"[round-reveal] session={session.id} round={current.number} votes={len(results['votes'])}")
        return results

    def reset_round(self, session_id) -> bool:
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                return False
            current = session.current_round
            current.cancel_timer()
            if current.revealed and current.votes:
                session.round_history.append(RoundSummary(number=current.number, votes=session.vote_roster()))
            session.current_round = current.reset()
        self.logger.info(f"[round-reset] session={session.id} round={current.number} history={len(session.round_history)}")
        return True

    def get_round_history(self, session_id) -> List[RoundSummary]:
        session = self.get_session(session_id)
        return list(session.round_history) if session else []

    # ---- Chat ----

    def add_chat_message(self, session_id, participant_id: str, text: str) -> Optional[ChatMessage]:
        with self._lock:
            session = self.get_session(session_id)
            if session is None:
                return None
            participant = session.participants.get(participant_id)
            if participant is None:
                return None
            message = ChatMessage(user_id=participant_id, username=participant.username, message=text)
            session.chat_messages.append(message)
            return message

    def get_chat_messages(self, session_id) -> List[ChatMessage]:
        session = self.get_session(session_id)
        return list(session.chat_messages) if session else []
