import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import AlreadyAnswered, InvalidAnswer, InvalidGameState, NotYourTurn
from .state import Answer, Game, Player, Question, TeamTag, TOSS_UP_ROUND


@dataclass(frozen=True)
class MatchPolicy:
    """How a submitted text is compared with an answer card.

    ``containment`` accepts either normalised string inside the other, so a
    fragment as short as ``min_fragment_length`` characters can match a
    longer answer ("d" matches "dog" at the default of 1). ``exact`` only
    accepts equal strings.
    """

    mode: str = 'containment'
    min_fragment_length: int = 1

    @classmethod
    def from_config(cls, config) -> 'MatchPolicy':
        return cls(
            mode=config.get('ANSWER_MATCH_MODE', 'containment'),
            min_fragment_length=int(config.get('ANSWER_MIN_FRAGMENT_LENGTH', 1)),
        )


DEFAULT_POLICY = MatchPolicy()


def normalize(text: Any) -> str:
    if not isinstance(text, str):
        return ''
    return unicodedata.normalize('NFC', text).strip().lower()


def is_match(submitted: str, answer_text: str, policy: MatchPolicy = DEFAULT_POLICY) -> bool:
    given, expected = normalize(submitted), normalize(answer_text)
    if not given or not expected:
        return False
    if given == expected:
        return True
    if policy.mode == 'exact':
        return False
    if min(len(given), len(expected)) < policy.min_fragment_length:
        return False
    return given in expected or expected in given


def check_answer_match(text: str, answers: List[Answer], policy: MatchPolicy = DEFAULT_POLICY) -> Optional[int]:
    """Index of the first unrevealed answer matching ``text``, or None."""
    for idx, answer in enumerate(answers):
        if answer.revealed:
            continue
        if is_match(text, answer.text, policy):
            return idx
    return None


@dataclass
class Judgement:
    """Outcome of one judged submission, consumed by the sequencer and events."""

    team: TeamTag
    player_id: str
    player_name: str
    submitted_text: str
    question_index: int
    round: int
    answer_index: Optional[int] = None
    answer: Optional[Answer] = None
    points: int = 0
    toss_up: bool = False
    toss_up_complete: bool = False
    by_host: bool = False
    revealed_indices: List[int] = field(default_factory=list)

    @property
    def correct(self) -> bool:
        return self.answer is not None


def _slot_entry(game: Game, team: TeamTag, round_no: int, slot: int) -> Optional[Dict[str, Any]]:
    slots = game.game_state.question_data.get(team.value, {}).get(f'round{round_no}')
    if not slots or not 1 <= slot <= len(slots):
        return None
    return slots[slot - 1]


def record_question_data(game: Game, team: TeamTag, round_no: int, slot: int, correct: bool, points: int) -> None:
    """``firstAttemptCorrect`` is written once per slot; ``pointsEarned`` always."""
    entry = _slot_entry(game, team, round_no, slot)
    if entry is None:
        return
    if entry['firstAttemptCorrect'] is None:
        entry['firstAttemptCorrect'] = correct
    entry['pointsEarned'] = points


def resolve_toss_up_winner(entries: List[Dict[str, Any]]) -> Optional[TeamTag]:
    """Higher points wins; on equal points the earlier submission wins."""
    best = None
    for entry in entries:
        if best is None or entry['points'] > best['points']:
            best = entry
    return TeamTag(best['team']) if best else None


def is_hidden_card(question: Question, answer_index: Any) -> bool:
    return (
        isinstance(answer_index, int) and not isinstance(answer_index, bool)
        and 0 <= answer_index < len(question.answers)
        and not question.answers[answer_index].revealed
    )


def _admit_toss_up(game: Game, team: TeamTag) -> Question:
    question = game.current_question
    if question is None:
        raise InvalidGameState('No toss-up question is open')
    if team in game.game_state.toss_up_submitted_teams:
        raise AlreadyAnswered('Your team has already answered the toss-up')
    return question


def _admit_scored(game: Game, team: TeamTag) -> Question:
    state = game.game_state
    question = game.current_question
    if question is None:
        raise InvalidGameState('No question is open')
    if state.current_turn is not team or not game.team(team).active:
        active = game.active_team
        raise NotYourTurn(
            f"{active.name} has control - wait for your turn" if active else "No team has control right now",
            activeTeam=active.tag.value if active else None,
        )
    if state.question_attempts >= 1:
        raise AlreadyAnswered('This question has already been answered')
    return question


def _settle_toss_up(game: Game, judgement: Judgement, idx: Optional[int]) -> None:
    state = game.game_state
    question = game.current_question
    team = judgement.team
    if idx is not None:
        answer = question.answers[idx]
        answer.revealed = True
        judgement.answer_index = idx
        judgement.answer = answer
        judgement.points = answer.score
        judgement.revealed_indices = [idx]
        scoring_team = game.team(team)
        scoring_team.score += answer.score
        scoring_team.current_round_score += answer.score

    state.toss_up_submitted_teams.append(team)
    state.toss_up_answers.append({
        'team': team.value,
        'playerId': judgement.player_id,
        'playerName': judgement.player_name,
        'submittedText': judgement.submitted_text,
        'answerText': judgement.answer.text if judgement.answer else None,
        'points': judgement.points,
    })
    if len(state.toss_up_submitted_teams) == len(TeamTag):
        state.toss_up_winner = resolve_toss_up_winner(state.toss_up_answers)
        judgement.toss_up_complete = True


def _settle_scored(game: Game, judgement: Judgement, idx: Optional[int]) -> None:
    question = game.current_question
    team = judgement.team
    game.game_state.question_attempts += 1
    if idx is not None:
        answer = question.answers[idx]
        answer.revealed = True
        points = answer.score * game.current_round
        scoring_team = game.team(team)
        scoring_team.score += points
        scoring_team.current_round_score += points
        judgement.answer_index = idx
        judgement.answer = answer
        judgement.points = points
        judgement.revealed_indices = [idx]
    else:
        for i, answer in enumerate(question.answers):
            if not answer.revealed:
                answer.revealed = True
                judgement.revealed_indices.append(i)

    record_question_data(game, team, game.current_round, question.question_number, judgement.correct, judgement.points)


def _judgement(game: Game, team: TeamTag, player_id: str, player_name: str, text: str, by_host: bool = False) -> Judgement:
    return Judgement(
        team=team,
        player_id=player_id,
        player_name=player_name,
        submitted_text=text,
        question_index=game.current_question_index,
        round=game.current_round,
        toss_up=game.current_round == TOSS_UP_ROUND,
        by_host=by_host,
    )


def judge_toss_up(game: Game, team: TeamTag, player: Player, text: str, policy: MatchPolicy = DEFAULT_POLICY) -> Judgement:
    question = _admit_toss_up(game, team)
    if not normalize(text):
        raise InvalidAnswer()
    judgement = _judgement(game, team, player.id, player.name, text)
    _settle_toss_up(game, judgement, check_answer_match(text, question.answers, policy))
    return judgement


def judge_scored(game: Game, team: TeamTag, player: Player, text: str, policy: MatchPolicy = DEFAULT_POLICY) -> Judgement:
    question = _admit_scored(game, team)
    if not normalize(text):
        raise InvalidAnswer()
    judgement = _judgement(game, team, player.id, player.name, text)
    _settle_scored(game, judgement, check_answer_match(text, question.answers, policy))
    return judgement


def judge_submission(game: Game, team: TeamTag, player: Player, text: str, policy: MatchPolicy = DEFAULT_POLICY) -> Judgement:
    if game.current_round == TOSS_UP_ROUND:
        return judge_toss_up(game, team, player, text, policy)
    return judge_scored(game, team, player, text, policy)


def rule_on_answer(game: Game, team: TeamTag, answer_index: Optional[int] = None) -> Judgement:
    """Host ruling on ``team``'s spoken answer to the open question.

    With ``answer_index`` the chosen hidden card counts as the team's match;
    without it the attempt is ruled wrong. Either way it consumes the same
    attempt a typed submission would and is recorded the same way.
    """
    toss_up = game.current_round == TOSS_UP_ROUND
    question = _admit_toss_up(game, team) if toss_up else _admit_scored(game, team)
    if answer_index is not None and not is_hidden_card(question, answer_index):
        raise InvalidAnswer('No hidden answer at that position')
    judgement = _judgement(game, team, '', 'Host', '', by_host=True)
    if toss_up:
        _settle_toss_up(game, judgement, answer_index)
    else:
        _settle_scored(game, judgement, answer_index)
    return judgement


def award_card(game: Game, answer_index: Any) -> Tuple[Answer, int, Optional[TeamTag]]:
    """Host reveals one chosen card; the team in control banks score x round.

    The attempt counter is left alone, so play continues on the same question.
    """
    question = game.current_question
    if question is None:
        raise InvalidGameState('No question is open')
    if not is_hidden_card(question, answer_index):
        raise InvalidAnswer('No hidden answer at that position')
    answer = question.answers[answer_index]
    answer.revealed = True
    team = game.game_state.current_turn
    if team is None:
        return answer, 0, None
    points = answer.score * game.current_round
    scoring_team = game.team(team)
    scoring_team.score += points
    scoring_team.current_round_score += points
    entry = _slot_entry(game, team, game.current_round, question.question_number)
    earned = (entry or {}).get('pointsEarned') or 0
    record_question_data(game, team, game.current_round, question.question_number, True, earned + points)
    return answer, points, team
