"""Tests for request payload parsing."""
import uuid

from dinkers.services.group_payloads import (
    AddPlayer,
    SetPresence,
    UpdatePlayer,
    parse_create_group,
    parse_player_mutation,
    parse_score_edit,
    parse_score_submission,
)

P1, P2, P3, P4 = (str(uuid.uuid4()) for _ in range(4))


def _submission(**overrides):
    data = {
        'player_ids': [P1, P2, P3, P4],
        'team_a': [P1, P2],
        'team_b': [P3, P4],
        'score_a': 11,
        'score_b': 7,
    }
    data.update(overrides)
    return data


def test_add_player_mutation():
    mutation, error = parse_player_mutation({'action': 'add', 'name': '  Sam ', 'rating': 3.75})
    assert error is None
    assert mutation == AddPlayer(name='Sam', rating=3.75)


def test_player_rating_is_rounded_to_three_decimals():
    mutation, _ = parse_player_mutation({'action': 'add', 'name': 'Sam', 'rating': 3.1236})
    assert mutation.rating == 3.124


def test_add_player_rejects_out_of_range_rating():
    for rating in (-0.5, 8.5, True, '3.5', float('nan')):
        mutation, error = parse_player_mutation({'action': 'add', 'name': 'Sam', 'rating': rating})
        assert mutation is None
        assert error == 'Rating must be between 0 and 8'


def test_add_player_rejects_long_or_blank_names():
    _, error = parse_player_mutation({'action': 'add', 'name': 'x' * 81, 'rating': 3})
    assert error == 'Name must be 1-80 characters'
    _, error = parse_player_mutation({'action': 'add', 'name': '   ', 'rating': 3})
    assert error == 'Name must be 1-80 characters'


def test_presence_mutation():
    mutation, error = parse_player_mutation({
        'action': 'presence',
        'updates': [
            {'player_id': P1, 'is_present': False},
            {'player_id': P2.upper(), 'is_present': True},
        ],
    })
    assert error is None
    assert isinstance(mutation, SetPresence)
    assert [(u.player_id, u.is_present) for u in mutation.updates] == [(P1, False), (P2, True)]


def test_presence_mutation_requires_boolean_flag():
    _, error = parse_player_mutation({
        'action': 'presence', 'updates': [{'player_id': P1, 'is_present': 'yes'}],
    })
    assert error == 'Invalid presence update'


def test_update_mutation_with_partial_fields():
    mutation, error = parse_player_mutation({'action': 'update', 'player_id': P3, 'rating': 4})
    assert error is None
    assert mutation == UpdatePlayer(player_id=P3, name=None, rating=4.0)


def test_update_mutation_requires_valid_player_id():
    _, error = parse_player_mutation({'action': 'update', 'player_id': 'not-a-uuid'})
    assert error == 'Valid player_id required'


def test_unknown_action():
    mutation, error = parse_player_mutation({'action': 'delete', 'player_id': P1})
    assert mutation is None
    assert error == 'Unknown player action'


def test_create_group_payload():
    payload, error = parse_create_group({'name': 'Court 5 Crew', 'pin': '2468', 'slug': 'court-5'})
    assert error is None
    assert payload.slug == 'court-5'

    _, error = parse_create_group({'name': 'Crew', 'pin': '12'})
    assert error == 'PIN must be 4-32 characters'

    _, error = parse_create_group({'name': 'Crew', 'pin': '1234', 'slug': 'Bad Slug'})
    assert error == 'Slug may only contain lowercase letters, numbers and dashes'


def test_score_submission():
    submission, error = parse_score_submission(_submission(score_a=11.0))
    assert error is None
    assert submission.team_a == (P1, P2)
    assert submission.score_a == 11


def test_score_submission_rejects_bad_scores():
    for score in (-1, 100, 10.5, '11', False):
        _, error = parse_score_submission(_submission(score_b=score))
        assert error == 'Scores must be whole numbers between 0 and 99'


def test_score_submission_requires_teams_to_split_players():
    _, error = parse_score_submission(_submission(team_b=[P3, P1]))
    assert error == 'Teams must contain 4 unique players'

    other = str(uuid.uuid4())
    _, error = parse_score_submission(_submission(team_b=[P3, other]))
    assert error == 'Teams must be a split of player_ids'

    _, error = parse_score_submission(_submission(player_ids=[P1, P1, P3, P4]))
    assert error == 'player_ids must include exactly 4 unique players'


def test_score_edit():
    edit, error = parse_score_edit({'match_id': P1, 'score_a': 3, 'score_b': 11})
    assert error is None
    assert (edit.match_id, edit.score_a, edit.score_b) == (P1, 3, 11)

    _, error = parse_score_edit({'score_a': 3, 'score_b': 11})
    assert error == 'Valid match_id required'
