from flask import request
from flask_socketio import disconnect, emit, join_room, leave_room
from typing import Any, Dict, Optional

from planning_poker.exceptions import SessionNotFound

NAMESPACE = '/ws'


def session_room(session_id: str) -> str:
    return f"session:{session_id}"


def _payload(data) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _as_duration(value, limit: int) -> int:
    try:
        seconds = int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0
    return min(max(0, seconds), limit)


def _round_started(current, include_revealed: bool = False) -> Dict[str, Any]:
    state = current.to_dict()
    payload = {
        'timerDuration': state['timerDuration'],
        'timerStartedAt': state['timerStartedAt'],
        'roundNumber': state['roundNumber'],
    }
    if include_revealed:
        payload['revealed'] = state['revealed']
    return payload


class SessionGateway:
    """Socket.IO front door for planning sessions.

    Each connection carries a context ``{'session_id', 'user_id'}``, set
    from a bearer token at connect time or by ``join-session``. Commands
    arriving without the context they need, or from a participant without
    the authority for them, are dropped without a reply. Unknown session
    codes are the one failure reported back, through the join ack.
    """

    def __init__(self, socketio, store, scheduler, authenticator=None, logger=None, max_timer: int = 3600):
        self.socketio = socketio
        self.store = store
        self.scheduler = scheduler
        self.authenticator = authenticator
        self.logger = logger or store.logger
        self.max_timer = max_timer
        self._sid_to_ctx: Dict[str, Dict[str, Optional[str]]] = {}

    # ---- Context helpers ----

    def _get_sid(self) -> str:
        # type: ignore: request.sid exists in Socket.IO context
        return request.sid  # type: ignore

    def _context(self):
        ctx = self._sid_to_ctx.get(self._get_sid()) or {}
        return ctx.get('session_id'), ctx.get('user_id')

    def _drop(self, event: str, why: str) -> None:
        self.logger.debug(f"[drop] event={event} sid={self._get_sid()} reason={why}")

    def _sids_for(self, session_id: str, user_id: Optional[str] = None):
        return [
            sid for sid, ctx in list(self._sid_to_ctx.items())
            if ctx.get('session_id') == session_id and (user_id is None or ctx.get('user_id') == user_id)
        ]

    # ---- Broadcast helpers ----

    def _broadcast(self, event: str, data, session_id: str) -> None:
        self.socketio.emit(event, data, to=session_room(session_id), namespace=NAMESPACE)

    def _emit_participants_update(self, session_id: str) -> None:
        session = self.store.get_session(session_id)
        if session:
            self._broadcast('participants-updated', session.roster(), session.id)

    def _reveal_and_broadcast(self, session_id: str, round_number: Optional[int] = None):
        with self.store.lock:
            results = self.store.reveal_votes(session_id, round_number)
            if results:
                self._broadcast('votes-revealed', results, session_id)
        return results

    def _end_session(self, session_id: str) -> None:
        """Tear the session down, then tell everyone it is over."""
        # Deleting first cancels the reveal timer before anyone hears the end
        with self.store.lock:
            self.store.delete_session(session_id)
            self._broadcast('session-ended', {'sessionId': session_id}, session_id)
        for sid in self._sids_for(session_id):
            ctx = self._sid_to_ctx.get(sid)
            if ctx is not None:
                ctx.update(session_id=None, user_id=None)
        self.socketio.close_room(session_room(session_id), namespace=NAMESPACE)
        self.logger.info(f"[session-ended] session={session_id}")

    def _depart(self, ctx: Dict[str, Optional[str]]) -> None:
        # Creator leaving ends the session; there is no succession
        session_id, user_id = ctx.get('session_id'), ctx.get('user_id')
        if not session_id or not user_id:
            return
        session = self.store.get_session(session_id)
        if session is None:
            return
        if session.is_creator(user_id):
            self.logger.info(f"[creator-left] session={session_id} user={user_id} ending session")
            self._end_session(session_id)
        else:
            self.store.leave_session(session_id, user_id)
            self._emit_participants_update(session_id)

    def _joined(self, session, user_id: str) -> Dict[str, Any]:
        """Ack payload, also pushed to the sender ahead of the room broadcasts.

        A handler's return value is only delivered after everything it
        emitted, so clients learn their identity from `session-joined`.
        """
        joined = {'success': True, 'sessionId': session.id, 'userId': user_id, 'isCreator': session.is_creator(user_id)}
        emit('session-joined', joined)
        return joined

    # ---- Connection lifecycle ----

    def handle_connect(self, auth=None):
        sid = self._get_sid()
        ctx: Dict[str, Optional[str]] = {'session_id': None, 'user_id': None}
        identity = self.authenticator.authenticate(auth, request.args) if self.authenticator else None
        if identity:
            ctx.update(identity)
            self.logger.info(f"[auth] sid={sid} user={identity['user_id']} session={identity['session_id']}")
            if self.store.session_exists(identity['session_id']):
                join_room(session_room(identity['session_id']))
        self._sid_to_ctx[sid] = ctx
        emit('connected', {'message': f'Connected to {NAMESPACE}', 'authenticated': bool(identity)})

    def handle_disconnect(self, reason=None):
        ctx = self._sid_to_ctx.pop(self._get_sid(), None)
        self.logger.info(f"[disconnect] sid={self._get_sid()} reason={reason}")
        if ctx:
            self._depart(ctx)

    # ---- Commands ----

    def handle_join_session(self, data=None):
        data = _payload(data)
        username = str(data.get('username') or '').strip()
        if not username:
            return {'success': False, 'error': 'Name is required'}

        sid = self._get_sid()
        ctx = self._sid_to_ctx.setdefault(sid, {'session_id': None, 'user_id': None})
        requested = str(data.get('sessionId') or '').strip().upper()
        create = bool(data.get('create')) or not requested

        if not create:
            try:
                session = self.store.require(requested)
            except SessionNotFound as exc:
                self.logger.info(f"[join-reject] sid={sid} {exc}")
                return {'success': False, 'error': 'Session not found'}

        previous = ctx.get('session_id')
        if previous and (create or previous != requested):
            self._depart(ctx)
            leave_room(session_room(previous))
            ctx['session_id'] = None

        user_id = ctx.get('user_id') or sid

        if create:
            session_id, session = self.store.create_session(username, data.get('theme'))
            self.store.join_session(session_id, user_id, username)
            join_room(session_room(session_id))
            ctx.update(session_id=session_id, user_id=user_id)
            joined = self._joined(session, user_id)
            self._broadcast('theme-changed', session.theme, session_id)
            self._emit_participants_update(session_id)
            return joined

        if not self.store.join_session(session.id, user_id, username):
            return {'success': False, 'error': 'Session not found'}
        join_room(session_room(session.id))
        ctx.update(session_id=session.id, user_id=user_id)
        joined = self._joined(session, user_id)

        # Late joiner catches up on theme, any round in progress and chat
        emit('theme-changed', session.theme)
        self._emit_participants_update(session.id)
        if session.current_round.active:
            emit('voting-started', _round_started(session.current_round, include_revealed=True))
        emit('chat-history', [m.to_dict() for m in self.store.get_chat_messages(session.id)])
        return joined

    def handle_start_voting(self, data=None):
        session_id, _ = self._context()
        if not session_id:
            return self._drop('start-voting', 'no session')
        duration = _as_duration(_payload(data).get('timerDuration'), self.max_timer)
        current = self.store.start_voting(session_id, duration)
        if current is None:
            return self._drop('start-voting', 'session gone')
        self._broadcast('voting-started', _round_started(current), session_id)
        if duration > 0:
            timer = self.scheduler.schedule(session_id, current.number, duration, self._reveal_and_broadcast)
            self.store.attach_timer(session_id, current.number, timer)

    def handle_submit_vote(self, data=None):
        session_id, user_id = self._context()
        if not session_id or not user_id:
            return self._drop('submit-vote', 'no session')
        vote = _payload(data).get('vote')
        if vote is None:
            return self._drop('submit-vote', 'no vote')
        if not self.store.submit_vote(session_id, user_id, vote):
            return self._drop('submit-vote', 'round not voting')
        # Value stays private until reveal
        self._broadcast('user-voted', {'userId': user_id}, session_id)

    def handle_reveal_votes(self, data=None):
        session_id, _ = self._context()
        if not session_id:
            return self._drop('reveal-votes', 'no session')
        self._reveal_and_broadcast(session_id)

    def handle_reset_round(self, data=None):
        session_id, _ = self._context()
        if not session_id:
            return self._drop('reset-round', 'no session')
        if not self.store.reset_round(session_id):
            return self._drop('reset-round', 'session gone')
        history = [r.to_dict() for r in self.store.get_round_history(session_id)]
        self._broadcast('round-reset', {'roundHistory': history}, session_id)

    def handle_kick_user(self, data=None):
        session_id, user_id = self._context()
        session = self.store.get_session(session_id) if session_id else None
        if session is None or not session.is_creator(user_id):
            return self._drop('kick-user', 'not creator')
        target = _payload(data).get('userId')
        if not target or target == session.creator_id or target not in session.participants:
            return self._drop('kick-user', 'invalid target')

        target_sids = self._sids_for(session.id, target)
        for sid in target_sids:
            self.socketio.emit('kicked', {'sessionId': session.id}, to=sid, namespace=NAMESPACE)
        self.store.leave_session(session.id, target)
        for sid in target_sids:
            # Context goes first so the forced disconnect doesn't depart twice
            self._sid_to_ctx.pop(sid, None)
            disconnect(sid=sid, namespace=NAMESPACE)
        self.logger.info(f"[kick] session={session.id} by={user_id} target={target}")
        self._emit_participants_update(session.id)

    def handle_send_message(self, data=None):
        session_id, user_id = self._context()
        if not session_id or not user_id:
            return self._drop('send-message', 'no session')
        text = str(_payload(data).get('message') or '').strip()
        if not text:
            return self._drop('send-message', 'empty message')
        message = self.store.add_chat_message(session_id, user_id, text)
        if message is None:
            return self._drop('send-message', 'not a participant')
        self._broadcast('chat-message', message.to_dict(), session_id)

    def handle_end_session(self, data=None):
        session_id, user_id = self._context()
        session = self.store.get_session(session_id) if session_id else None
        if session is None or not session.is_creator(user_id):
            return self._drop('end-session', 'not creator')
        self.logger.info(f"[end-session] session={session.id} by={user_id}")
        self._end_session(session.id)

    def handle_ping(self, data=None):
        emit('pong', data or {})

    def register(self, namespace: str = NAMESPACE) -> None:
        """Bind every handler on the given namespace."""
        self.socketio.on_event('connect', self.handle_connect, namespace=namespace)
        self.socketio.on_event('disconnect', self.handle_disconnect, namespace=namespace)
        self.socketio.on_event('join-session', self.handle_join_session, namespace=namespace)
        self.socketio.on_event('start-voting', self.handle_start_voting, namespace=namespace)
        self.socketio.on_event('submit-vote', self.handle_submit_vote, namespace=namespace)
        self.socketio.on_event('reveal-votes', self.handle_reveal_votes, namespace=namespace)
        self.socketio.on_event('reset-round', self.handle_reset_round, namespace=namespace)
        self.socketio.on_event('kick-user', self.handle_kick_user, namespace=namespace)
        self.socketio.on_event('send-message', self.handle_send_message, namespace=namespace)
        self.socketio.on_event('end-session', self.handle_end_session, namespace=namespace)
        self.socketio.on_event('ping', self.handle_ping, namespace=namespace)
