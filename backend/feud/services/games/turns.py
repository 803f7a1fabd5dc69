"""Turn and round progression.

Pure functions over a ``Game``: they mutate the record passed in and never
touch the store, sockets or timers. Callers hold the game lock.

A scored round is played in two halves. The starting team (team1, or the
toss-up winner once one is recorded) answers its three slots, then the other
team answers its three; the round then ends in ``round-summary`` or, after
round 3, ``finished``.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from .state import (
    QUESTIONS_PER_TURN,
    TOSS_UP_ROUND,
    TOTAL_ROUNDS,
    Game,
    GameStatus,
    TeamTag,
    TurnState,
)


class Transition(str, Enum):
    NEXT_QUESTION = 'next-question'
    TURN_CHANGED = 'turn-changed'
    ROUND_COMPLETE = 'round-complete'
    GAME_OVER = 'game-over'


def find_question_index(game: Game, team: TeamTag, round_no: int, slot: int) -> Optional[int]:
    for idx, q in enumerate(game.questions):
        if q.round == round_no and q.team_assignment is team and q.question_number == slot:
            return idx
    return None


def toss_up_question_index(game: Game) -> Optional[int]:
    for idx, q in enumerate(game.questions):
        if q.is_toss_up:
            return idx
    return None


def past_round_index(game: Game) -> int:
    """Index just after the last question of the current round."""
    indices = [i for i, q in enumerate(game.questions) if q.round == game.current_round]
    return (max(indices) + 1) if indices else len(game.questions)


def set_turn(game: Game, team: Optional[TeamTag]) -> None:
    """Make ``team`` the only active team (or none)."""
    game.game_state.current_turn = team
    for t in game.teams:
        t.active = team is not None and t.tag is team


def _remaining_slot_index(game: Game, team: TeamTag) -> Optional[int]:
    answered = game.game_state.questions_answered[team]
    if answered >= QUESTIONS_PER_TURN:
        return None
    return find_question_index(game, team, game.current_round, answered + 1)


def get_next_question_index(game: Game) -> int:
    """Where play goes after the live team's current ``questionsAnswered``.

    The live team's next slot while it has slots left, else the other team's
    next slot, else ``past_round_index`` (the caller treats that as round
    complete).
    """
    team = game.game_state.current_turn
    if team is None:
        return past_round_index(game)
    idx = _remaining_slot_index(game, team)
    if idx is not None:
        return idx
    idx = _remaining_slot_index(game, team.other())
    if idx is not None:
        return idx
    return past_round_index(game)


def _position_round(game: Game, team: TeamTag) -> None:
    """Point the index at ``team``'s next slot, falling back to the other team."""
    idx = _remaining_slot_index(game, team)
    if idx is None:
        team = team.other()
        idx = _remaining_slot_index(game, team)
    if idx is None:
        game.current_question_index = past_round_index(game)
        set_turn(game, None)
        return
    game.current_question_index = idx
    set_turn(game, team)


def _close_round(game: Game) -> None:
    if 1 <= game.current_round <= TOTAL_ROUNDS:
        for t in game.teams:
            t.round_scores[game.current_round - 1] = t.current_round_score


def start_game(game: Game) -> None:
    """``waiting -> active``.

    Opens on the toss-up question when the bank has one (nobody active, both
    teams may answer once); otherwise round 1 starts with team1.
    """
    game.status = GameStatus.ACTIVE
    game.game_state.question_attempts = 0
    toss_up = toss_up_question_index(game)
    if toss_up is not None:
        game.current_round = TOSS_UP_ROUND
        game.current_question_index = toss_up
        set_turn(game, None)
        return
    game.current_round = 1
    game.game_state.starting_team = TeamTag.TEAM1
    game.game_state.questions_answered = {t: 0 for t in TeamTag}
    _position_round(game, TeamTag.TEAM1)
    if game.game_state.current_turn is None:
        game.status = GameStatus.FINISHED


def _classify(before: Dict[str, Any], game: Game) -> Transition:
    if game.status is GameStatus.FINISHED:
        return Transition.GAME_OVER
    if game.status is GameStatus.ROUND_SUMMARY:
        return Transition.ROUND_COMPLETE
    if before['turn'] is not game.game_state.current_turn:
        return Transition.TURN_CHANGED
    return Transition.NEXT_QUESTION


def advance_game_state(game: Game) -> Transition:
    """Move past the question that was just judged.

    Exactly one outcome per call: same team continues, the other team takes
    over, the round ends, or the game ends.
    """
    before = {'status': game.status, 'turn': game.game_state.current_turn}
    state = game.game_state
    state.question_attempts = 0

    if game.current_round == TOSS_UP_ROUND:
        game.status = GameStatus.ROUND_SUMMARY
        set_turn(game, None)
        return _classify(before, game)

    team = state.current_turn
    if team is not None:
        state.questions_answered[team] = min(QUESTIONS_PER_TURN, state.questions_answered[team] + 1)
        idx = _remaining_slot_index(game, team)
        if idx is not None:
            game.current_question_index = idx
            return _classify(before, game)
        idx = _remaining_slot_index(game, team.other())
        if idx is not None:
            game.current_question_index = idx
            set_turn(game, team.other())
            return _classify(before, game)

    _close_round(game)
    set_turn(game, None)
    if game.current_round < TOTAL_ROUNDS:
        game.status = GameStatus.ROUND_SUMMARY
    else:
        game.status = GameStatus.FINISHED
    return _classify(before, game)


def start_new_round(game: Game) -> Transition:
    """Host continues from ``round-summary`` into the next round."""
    state = game.game_state
    if game.current_round >= TOTAL_ROUNDS:
        game.status = GameStatus.FINISHED
        set_turn(game, None)
        return Transition.GAME_OVER
    game.current_round += 1
    state.questions_answered = {t: 0 for t in TeamTag}
    state.question_attempts = 0
    for t in game.teams:
        t.current_round_score = 0
    starting = state.toss_up_winner or TeamTag.TEAM1
    state.starting_team = starting
    game.status = GameStatus.ACTIVE
    _position_round(game, starting)
    if state.current_turn is None:
        # No questions for this round at all
        return advance_game_state(game)
    return Transition.TURN_CHANGED


def round_starter(game: Game, round_no: int) -> TeamTag:
    state = game.game_state
    if round_no == game.current_round and state.starting_team is not None:
        return state.starting_team
    return state.toss_up_winner or TeamTag.TEAM1


def play_order(game: Game, round_no: int) -> List[int]:
    """Question indices of a round in the order they are played.

    The bank lists team1's slots before team2's; play runs the starting
    team's three slots first, whichever team that is.
    """
    if round_no == TOSS_UP_ROUND:
        idx = toss_up_question_index(game)
        return [idx] if idx is not None else []
    starting = round_starter(game, round_no)
    order = []
    for team in (starting, starting.other()):
        for slot in range(1, QUESTIONS_PER_TURN + 1):
            idx = find_question_index(game, team, round_no, slot)
            if idx is not None:
                order.append(idx)
    return order


def force_next_question(game: Game) -> Transition:
    """Host override: step one question forward in play order.

    ``questionsAnswered`` is re-derived from the slots passed over and the
    turn follows the landed question's team. Running off the end of a round
    enters the next one directly; running off round 3 finishes the game.
    """
    state = game.game_state
    state.question_attempts = 0
    order = play_order(game, game.current_round)
    if game.current_question_index in order:
        pos = order.index(game.current_question_index) + 1
    else:
        pos = 0

    while pos >= len(order):
        _close_round(game)
        if game.current_round >= TOTAL_ROUNDS:
            game.status = GameStatus.FINISHED
            set_turn(game, None)
            return Transition.GAME_OVER
        starting = round_starter(game, game.current_round + 1)
        game.current_round += 1
        state.starting_team = starting
        for t in game.teams:
            t.current_round_score = 0
        order = play_order(game, game.current_round)
        pos = 0

    game.current_question_index = order[pos]
    for tag in TeamTag:
        state.questions_answered[tag] = sum(
            1 for i in order[:pos] if game.questions[i].team_assignment is tag
        )
    set_turn(game, game.questions[order[pos]].team_assignment)
    return Transition.NEXT_QUESTION


def force_round_summary(game: Game) -> None:
    _close_round(game)
    game.status = GameStatus.ROUND_SUMMARY
    game.game_state.question_attempts = 0
    set_turn(game, None)


def force_game_over(game: Game) -> None:
    _close_round(game)
    game.status = GameStatus.FINISHED
    set_turn(game, None)


def reset_game(game: Game) -> None:
    """Back to ``waiting`` with a clean board; players and their teams stay."""
    game.status = GameStatus.WAITING
    game.current_round = 0
    game.current_question_index = 0
    for t in game.teams:
        t.reset_scores()
        t.active = False
    for q in game.questions:
        for a in q.answers:
            a.revealed = False
    game.game_state = TurnState()


def reveal_all_answers(game: Game) -> List[int]:
    """Reveal every hidden answer of the current question; returns their indices."""
    question = game.current_question
    if question is None:
        return []
    newly = []
    for idx, answer in enumerate(question.answers):
        if not answer.revealed:
            answer.revealed = True
            newly.append(idx)
    return newly


def compute_winner(game: Game) -> Optional[Dict[str, Any]]:
    """Highest total score; ``None`` when the teams are level."""
    team1, team2 = game.team(TeamTag.TEAM1), game.team(TeamTag.TEAM2)
    if team1.score == team2.score:
        return None
    return (team1 if team1.score > team2.score else team2).to_dict()


def compute_round_summary(game: Game, round_no: Optional[int] = None) -> Dict[str, Any]:
    round_no = game.current_round if round_no is None else round_no
    summary: Dict[str, Any] = {
        'round': round_no,
        'teamScores': {},
        'questionsAnswered': {},
    }
    for t in game.teams:
        if 1 <= round_no <= TOTAL_ROUNDS:
            round_score = t.round_scores[round_no - 1]
        else:
            round_score = t.current_round_score
        summary['teamScores'][t.tag.value] = {
            'roundScore': round_score,
            'totalScore': t.score,
            'teamName': t.name,
        }
        summary['questionsAnswered'][t.tag.value] = [
            q.to_dict() for q in game.questions
            if q.round == round_no and q.team_assignment is t.tag
        ]
    if round_no == TOSS_UP_ROUND:
        winner = game.game_state.toss_up_winner
        summary['tossUpWinner'] = {
            'team': winner.value,
            'teamName': game.team(winner).name,
        } if winner else None
        summary['tossUpAnswers'] = [dict(a) for a in game.game_state.toss_up_answers]
    else:
        summary['questionData'] = {
            tag.value: game.game_state.question_data[tag.value].get(f'round{round_no}', [])
            for tag in TeamTag
        }
    return summary
