import pytest

from planning_poker.models import RoundState


@pytest.fixture()
def session_id(store):
    sid, _ = store.create_session('Alice')
    store.join_session(sid, 'alice', 'Alice')
    store.join_session(sid, 'bob', 'Bob')
    return sid


def _round(store, session_id):
    return store.get_session(session_id).current_round


def test_start_voting_increments_sequence(store, session_id):
    first = store.start_voting(session_id)
    assert first.number == 1
    assert first.state is RoundState.VOTING
    assert first.timer_started_at is None
    second = store.start_voting(session_id, 30)
    assert second.number == 2
    assert second.timer_duration == 30
    assert second.timer_started_at is not None


def test_start_voting_unknown_session(store):
    assert store.start_voting('NOPE0000') is None


def test_restart_discards_unrevealed_votes(store, session_id):
    store.start_voting(session_id)
    store.submit_vote(session_id, 'bob', '5')
    store.start_voting(session_id)
    assert _round(store, session_id).votes == {}


def test_vote_only_while_voting(store, session_id):
    assert store.submit_vote(session_id, 'bob', '5') is False
    store.start_voting(session_id)
    assert store.submit_vote(session_id, 'bob', '5') is True
    store.reveal_votes(session_id)
    assert store.submit_vote(session_id, 'bob', '8') is False
    assert _round(store, session_id).votes == {'bob': '5'}


def test_last_vote_wins(store, session_id):
    store.start_voting(session_id)
    store.submit_vote(session_id, 'bob', '3')
    store.submit_vote(session_id, 'bob', '13')
    assert _round(store, session_id).votes == {'bob': '13'}


def test_non_member_cannot_vote(store, session_id):
    store.start_voting(session_id)
    assert store.submit_vote(session_id, 'mallory', '1') is False


def test_reveal_happens_once(store, session_id):
    store.start_voting(session_id)
    store.submit_vote(session_id, 'bob', '5')
    results = store.reveal_votes(session_id)
    assert results == {'votes': [{'userId': 'bob', 'username': 'Bob', 'vote': '5'}]}
    assert _round(store, session_id).state is RoundState.REVEALED
    assert store.reveal_votes(session_id) is None


def test_reveal_requires_active_round(store, session_id):
    assert store.reveal_votes(session_id) is None
    assert store.reveal_votes('NOPE0000') is None


def test_reveal_ignores_stale_round_number(store, session_id):
    store.start_voting(session_id, 10)
    store.start_voting(session_id)
    assert store.reveal_votes(session_id, round_number=1) is None
    assert store.reveal_votes(session_id, round_number=2) is not None


def test_reset_archives_revealed_round(store, session_id):
    store.start_voting(session_id)
    store.submit_vote(session_id, 'bob', '5')
    store.reveal_votes(session_id)
    assert store.reset_round(session_id)
    current = _round(store, session_id)
    assert current.state is RoundState.IDLE
    assert current.number == 1
    history = store.get_round_history(session_id)
    assert len(history) == 1
    entry = history[0].to_dict()
    assert entry['roundNumber'] == 1
    assert entry['votes'] == [{'userId': 'bob', 'username': 'Bob', 'vote': '5'}]


def test_reset_skips_unrevealed_or_empty_rounds(store, session_id):
    store.start_voting(session_id)
    store.submit_vote(session_id, 'bob', '5')
    store.reset_round(session_id)
    store.start_voting(session_id)
    store.reveal_votes(session_id)
    store.reset_round(session_id)
    assert store.get_round_history(session_id) == []
    assert _round(store, session_id).number == 2


def test_sequence_never_decreases(store, session_id):
    seen = []
    for _ in range(3):
        seen.append(store.start_voting(session_id).number)
        store.reveal_votes(session_id)
        store.reset_round(session_id)
        seen.append(_round(store, session_id).number)
    assert seen == sorted(seen)
    assert seen[-1] == 3


def test_reset_cancels_pending_timer(store, session_id):
    class Handle:
        cancelled = False

        def cancel(self):
            self.cancelled = True

    current = store.start_voting(session_id, 5)
    handle = Handle()
    store.attach_timer(session_id, current.number, handle)
    store.reset_round(session_id)
    assert handle.cancelled


def test_attach_timer_to_replaced_round_cancels_it(store, session_id):
    class Handle:
        cancelled = False

        def cancel(self):
            self.cancelled = True

    store.start_voting(session_id, 5)
    store.start_voting(session_id)
    handle = Handle()
    assert store.attach_timer(session_id, 1, handle) is False
    assert handle.cancelled


def test_vote_roster_names_departed_participant_unknown(store, session_id):
    store.start_voting(session_id)
    store.submit_vote(session_id, 'bob', '8')
    store.leave_session(session_id, 'bob')
    results = store.reveal_votes(session_id)
    assert results['votes'] == [{'userId': 'bob', 'username': 'Unknown', 'vote': '8'}]
