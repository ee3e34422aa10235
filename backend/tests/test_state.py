import pytest

from conftest import SAMPLE_COMEDIANS
from liars.services.game.exceptions import (
    InvalidIndex,
    InvalidPayload,
    InvalidState,
    NotFound,
    NotInitialized,
    VotesLocked,
)
from liars.services.game.state import Session, SessionStore


@pytest.fixture()
def store():
    s = SessionStore()
    s.init()
    return s


def test_mutators_fail_before_init():
    store = SessionStore()
    with pytest.raises(NotInitialized):
        store.get()
    with pytest.raises(NotInitialized):
        store.add_player('Alice')
    with pytest.raises(NotInitialized):
        store.submit_vote('x', 'truth')
    with pytest.raises(NotInitialized):
        store.update(mode='live')
    # late disconnects are never exceptional
    store.set_player_connection('x', False)


def test_fresh_session_defaults(store):
    session = store.get()
    assert session.mode == 'setup'
    assert session.phase == 'story'
    assert session.comedians == []
    assert session.votes == {} and session.round_scores == {}
    assert session.votes_locked is False
    assert session.session_id


def test_connection_flag_on_unknown_player_is_noop(store):
    store.set_player_connection('ghost', False)
    assert store.get().players == {}


def test_submit_vote_after_lock_fails_and_keeps_votes(store):
    player = store.add_player('Alice')
    store.submit_vote(player.id, 'truth')
    store.update(votes_locked=True)
    with pytest.raises(VotesLocked):
        store.submit_vote(player.id, 'lie')
    assert store.get().votes == {player.id: 'truth'}


def test_submit_vote_validates_choice_and_player(store):
    player = store.add_player('Alice')
    with pytest.raises(InvalidPayload):
        store.submit_vote(player.id, 'maybe')
    with pytest.raises(NotFound):
        store.submit_vote('ghost', 'truth')
    assert store.get().votes == {}


def test_replace_comedians_mints_fresh_ids(store):
    payload = [dict(c, id='client-id') for c in SAMPLE_COMEDIANS]
    comedians = store.replace_comedians(payload)
    ids = [c.id for c in comedians] + [s.id for c in comedians for s in c.stories]
    assert 'client-id' not in ids
    assert len(set(ids)) == len(ids) == 5
    assert comedians[0].photo_url == 'https://example.com/ava.jpg'
    assert comedians[1].photo_url is None


def test_replace_comedians_is_all_or_nothing(store):
    store.replace_comedians(SAMPLE_COMEDIANS)
    before = store.snapshot()['comedians']
    bad = SAMPLE_COMEDIANS + [{'name': 'Cat', 'stories': [{'text': 'x', 'isTrue': 'yes'}]}]
    with pytest.raises(InvalidPayload):
        store.replace_comedians(bad)
    assert store.snapshot()['comedians'] == before


def test_story_crud(store):
    comedian = store.add_comedian('Ava', '@ava')
    story = store.add_story(comedian.id, 'Once upon a gig', True)
    store.update_story(story.id, 'Twice upon a gig', False)
    assert store.get().comedians[0].stories[0].text == 'Twice upon a gig'
    assert store.get().comedians[0].stories[0].is_true is False
    store.delete_story(story.id)
    assert store.get().comedians[0].stories == []
    with pytest.raises(NotFound):
        store.update_story(story.id, 'x', True)
    with pytest.raises(NotFound):
        store.delete_story(story.id)
    with pytest.raises(NotFound):
        store.add_story('missing', 'x', True)


def test_update_comedian_fields(store):
    comedian = store.add_comedian('Ava', '@ava', photo_url='https://example.com/a.jpg')
    store.update_comedian(comedian.id, name='Ava B', instagram='@avab', photo_url=None)
    updated = store.get().comedians[0]
    assert (updated.name, updated.instagram, updated.photo_url) == ('Ava B', '@avab', None)
    assert 'photoUrl' not in updated.to_dict()
    with pytest.raises(NotFound):
        store.update_comedian('missing', name='x')
    with pytest.raises(InvalidPayload):
        store.update_comedian(comedian.id, name='')


def test_delete_comedian(store):
    comedian = store.add_comedian('Ava', '@ava')
    store.delete_comedian(comedian.id)
    assert store.get().comedians == []
    with pytest.raises(NotFound):
        store.delete_comedian(comedian.id)


def test_remove_player_drops_their_vote(store):
    alice = store.add_player('Alice')
    bob = store.add_player('Bob')
    store.submit_vote(alice.id, 'truth')
    store.submit_vote(bob.id, 'lie')
    store.remove_player(alice.id)
    assert set(store.get().players) == {bob.id}
    assert store.get().votes == {bob.id: 'lie'}
    with pytest.raises(NotFound):
        store.remove_player(alice.id)


def test_update_validates_fields(store):
    with pytest.raises(InvalidState):
        store.update(mode='sideways')
    with pytest.raises(InvalidState):
        store.update(phase='intermission')
    with pytest.raises(InvalidIndex):
        store.update(current_story_index=-1)
    with pytest.raises(InvalidPayload):
        store.update(session_id='nope')
    assert store.get().mode == 'setup'


def test_snapshot_restore_marks_players_disconnected(store):
    store.replace_comedians(SAMPLE_COMEDIANS)
    alice = store.add_player('Alice')
    alice.total_score = 700
    store.update(mode='live', current_comedian_index=0, current_story_index=1)
    store.submit_vote(alice.id, 'lie')

    restored = Session.from_dict(store.snapshot())
    assert restored.session_id == store.get().session_id
    assert restored.players[alice.id].connected is False
    assert restored.players[alice.id].total_score == 700
    assert restored.votes == {alice.id: 'lie'}
    assert restored.current_story_index == 1
    assert restored.to_dict()['comedians'] == store.snapshot()['comedians']


def test_restore_with_bad_cursor_falls_back_to_setup(store):
    store.replace_comedians(SAMPLE_COMEDIANS)
    snapshot = store.snapshot()
    snapshot.update(mode='live', phase='reveal', currentComedianIndex=1, currentStoryIndex=3)
    restored = Session.from_dict(snapshot)
    assert restored.mode == 'setup'
    assert restored.phase == 'story'


def test_reset_keeps_content_and_roster_but_zeroes_scores(store):
    store.replace_comedians(SAMPLE_COMEDIANS)
    alice = store.add_player('Alice')
    alice.total_score = 500
    old_id = store.get().session_id
    store.update(mode='live')
    store.reset()
    session = store.get()
    assert session.session_id != old_id
    assert session.mode == 'setup'
    assert len(session.comedians) == 2
    assert session.players[alice.id].total_score == 0


def test_current_story(store):
    assert store.current_story() is None
    store.replace_comedians(SAMPLE_COMEDIANS)
    store.update(current_comedian_index=0, current_story_index=1)
    assert store.current_story().text == 'I was banned from a petting zoo.'
    assert store.current_comedian().name == 'Ava'
