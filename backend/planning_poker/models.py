from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


class RoundState(str, Enum):
    IDLE = 'idle'
    VOTING = 'voting'
    REVEALED = 'revealed'


@dataclass
class Participant:
    id: str
    username: str
    joined_at: datetime = field(default_factory=utcnow)
    connected: bool = True

    def to_dict(self, creator_id: Optional[str] = None):
        return {
            'id': self.id,
            'username': self.username,
            'joinedAt': _iso(self.joined_at),
            'connected': self.connected,
            'isCreator': self.id == creator_id,
        }


@dataclass
class ChatMessage:
    user_id: str
    username: str
    message: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'username': self.username,
            'message': self.message,
            'timestamp': _iso(self.timestamp),
        }


@dataclass
class RoundSummary:
    number: int
    votes: List[Dict[str, Any]]
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self):
        return {
            'roundNumber': self.number,
            'votes': [dict(v) for v in self.votes],
            'timestamp': _iso(self.timestamp),
        }


@dataclass
class Round:
    """One voting cycle.

    Idle -> Voting -> Revealed -> Idle. The number only ever grows: a new
    round is produced by `started()` (number + 1) and `reset()` keeps it.
    `timer` holds the pending reveal handle, if any.
    """

    number: int = 0
    state: RoundState = RoundState.IDLE
    votes: Dict[str, str] = field(default_factory=dict)
    timer_duration: int = 0
    timer_started_at: Optional[datetime] = None
    timer: Optional[Any] = None

    @property
    def active(self) -> bool:
        return self.state is not RoundState.IDLE

    @property
    def revealed(self) -> bool:
        return self.state is RoundState.REVEALED

    def started(self, timer_duration: int = 0) -> 'Round':
        return Round(
            number=self.number + 1,
            state=RoundState.VOTING,
            timer_duration=timer_duration,
            timer_started_at=utcnow() if timer_duration > 0 else None,
        )

    def reset(self) -> 'Round':
        return Round(number=self.number)

    def cast(self, participant_id: str, value: str) -> bool:
        if self.state is not RoundState.VOTING:
            return False
        self.votes[participant_id] = value
        return True

    def reveal(self) -> bool:
        # Only the first reveal of a voting round counts
        if self.state is not RoundState.VOTING:
            return False
        self.state = RoundState.REVEALED
        return True

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def to_dict(self):
        return {
            'roundNumber': self.number,
            'active': self.active,
            'revealed': self.revealed,
            'timerDuration': self.timer_duration,
            'timerStartedAt': _iso(self.timer_started_at),
        }


@dataclass
class Session:
    id: str
    theme: str = 'modern'
    created_at: datetime = field(default_factory=utcnow)
    creator_id: Optional[str] = None
    participants: Dict[str, Participant] = field(default_factory=dict)
    current_round: Round = field(default_factory=Round)
    round_history: List[RoundSummary] = field(default_factory=list)
    chat_messages: List[ChatMessage] = field(default_factory=list)

    def is_creator(self, user_id: Optional[str]) -> bool:
        return user_id is not None and self.creator_id == user_id

    def username_of(self, user_id: str) -> str:
        participant = self.participants.get(user_id)
        return participant.username if participant else 'Unknown'

    def vote_roster(self) -> List[Dict[str, Any]]:
        return [
            {'userId': uid, 'username': self.username_of(uid), 'vote': vote}
            for uid, vote in self.current_round.votes.items()
        ]

    def roster(self) -> List[Dict[str, Any]]:
        return [p.to_dict(self.creator_id) for p in self.participants.values()]
