import pytest

from feud.services.games.errors import GameNotFound, InvariantViolation
from feud.services.games.state import GameStatus, TeamTag
from feud.services.games.store import GameStore, generate_game_code

from conftest import make_questions


def test_generate_game_code_avoids_taken_codes():
    code = generate_game_code(set(), length=6)
    assert len(code) == 6
    assert code.isalnum() and code.upper() == code
    assert generate_game_code({code}, length=6) != code


def test_create_game_registers_two_tagged_teams():
    store = GameStore()
    code, game_id = store.create_game(make_questions())
    game = store.get_game(code.lower())
    assert game.id == game_id
    assert [t.tag for t in game.teams] == [TeamTag.TEAM1, TeamTag.TEAM2]
    assert [t.name for t in game.teams] == ['Team 1', 'Team 2']
    assert game.status is GameStatus.WAITING
    assert all(not t.active for t in game.teams)


def test_join_game_unknown_code():
    store = GameStore()
    with pytest.raises(GameNotFound):
        store.join_game('NOPE00', 'Bhima')


def test_join_game_adds_player_record():
    store = GameStore()
    code, _ = store.create_game(make_questions())
    player_id, game = store.join_game(code, 'Bhima')
    assert store.get_player(player_id).name == 'Bhima'
    assert [p.id for p in game.players] == [player_id]
    assert store.get_player(None) is None
    assert store.get_game('ZZZZZZ') is None


def test_update_game_rejects_unknown_fields():
    store = GameStore()
    code, _ = store.create_game(make_questions())
    with pytest.raises(ValueError):
        store.update_game(code, {'no_such_field': 1})


def test_update_game_rolls_back_on_invariant_violation():
    store = GameStore()
    code, _ = store.create_game(make_questions())
    game = store.get_game(code)
    team1 = game.team(TeamTag.TEAM1)
    team1.active = True
    # an active team while waiting breaks the invariant
    with pytest.raises(InvariantViolation):
        store.commit(game)
    team1.active = False
    with pytest.raises(InvariantViolation):
        store.update_game(code, {'current_round': 7})
    assert game.current_round == 0


def test_bump_epoch_and_unknown_game():
    store = GameStore()
    code, _ = store.create_game(make_questions())
    assert store.bump_epoch(code) == 1
    assert store.bump_epoch(code) == 2
    assert store.bump_epoch('MISSING') is None


def test_mark_disconnected_flags_players_and_releases_host():
    store = GameStore()
    code, _ = store.create_game(make_questions())
    player_id, _ = store.join_game(code, 'Nakula')
    store.update_player(player_id, {'socket_id': 'sid-1'})
    store.update_game(code, {'host_id': 'sid-1'})

    players, hosted = store.mark_disconnected('sid-1')

    assert [p.id for p in players] == [player_id]
    assert [g.code for g in hosted] == [code]
    assert store.get_player(player_id).connected is False
    assert store.get_game(code).host_id is None
    assert store.stats() == {'activeGames': 1, 'connectedPlayers': 0}


def test_sweep_expired_removes_old_games_and_their_players():
    now = [1000.0]
    store = GameStore(retention_sec=60, clock=lambda: now[0])
    old_code, _ = store.create_game(make_questions())
    old_player, _ = store.join_game(old_code, 'Sahadeva')
    now[0] = 1050.0
    fresh_code, _ = store.create_game(make_questions())

    now[0] = 1070.0
    assert store.sweep_expired() == [old_code]
    assert store.get_game(old_code) is None
    assert store.get_player(old_player) is None
    assert store.get_game(fresh_code) is not None


def test_lock_for_unknown_code_is_not_retained():
    store = GameStore()
    code, _ = store.create_game(make_questions())
    for i in range(500):
        with store.lock(f'GHOST{i}'):
            pass
    assert list(store._locks) == [code]

    store.sweep_expired(now=store._clock() + store.retention_sec + 1)
    assert store._locks == {}


def test_non_string_code_and_player_id_are_unknown():
    store = GameStore()
    code, _ = store.create_game(make_questions())
    player_id, _ = store.join_game(code, 'Bhima')
    assert store.get_game(123) is None
    assert store.get_game(['ABC']) is None
    assert store.get_player(['x']) is None
    assert store.get_player({'id': player_id}) is None
    with pytest.raises(GameNotFound):
        store.join_game(42, 'Bhima')
