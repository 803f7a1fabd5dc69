"""In-memory game records and their wire serialisation.

Records are plain dataclasses owned by ``GameStore``; ``to_dict`` produces
the camelCase snapshot shape the browser clients render.
"""
import copy
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

QUESTIONS_PER_TURN = 3
TOTAL_ROUNDS = 3
TOSS_UP_ROUND = 0


class GameStatus(str, Enum):
    WAITING = 'waiting'
    ACTIVE = 'active'
    ROUND_SUMMARY = 'round-summary'
    FINISHED = 'finished'


class TeamTag(str, Enum):
    TEAM1 = 'team1'
    TEAM2 = 'team2'

    def other(self) -> 'TeamTag':
        return TeamTag.TEAM2 if self is TeamTag.TEAM1 else TeamTag.TEAM1


@dataclass
class Answer:
    text: str
    score: int
    revealed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {'text': self.text, 'score': self.score, 'revealed': self.revealed}


@dataclass
class Question:
    id: str
    question: str
    round: int
    answers: List[Answer]
    team_assignment: Optional[TeamTag] = None
    question_number: int = 0
    category: Optional[str] = None

    @property
    def is_toss_up(self) -> bool:
        return self.round == TOSS_UP_ROUND

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'question': self.question,
            'category': self.category,
            'round': self.round,
            'teamAssignment': self.team_assignment.value if self.team_assignment else None,
            'questionNumber': self.question_number,
            'answers': [a.to_dict() for a in self.answers],
        }


@dataclass
class Team:
    tag: TeamTag
    name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    score: int = 0
    current_round_score: int = 0
    round_scores: List[int] = field(default_factory=lambda: [0] * TOTAL_ROUNDS)
    active: bool = False
    members: List[str] = field(default_factory=list)

    def reset_scores(self) -> None:
        self.score = 0
        self.current_round_score = 0
        self.round_scores = [0] * TOTAL_ROUNDS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'tag': self.tag.value,
            'name': self.name,
            'score': self.score,
            'currentRoundScore': self.current_round_score,
            'roundScores': list(self.round_scores),
            'active': self.active,
            'members': list(self.members),
        }


@dataclass
class Player:
    name: str
    game_code: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    team_id: Optional[str] = None
    connected: bool = True
    socket_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'gameCode': self.game_code,
            'teamId': self.team_id,
            'connected': self.connected,
        }


def empty_question_data() -> Dict[str, Dict[str, List[Dict[str, Any]]]]:
    """The all-unanswered shape: 2 teams x 3 rounds x 3 slots."""
    return {
        tag.value: {
            f'round{r}': [
                {'firstAttemptCorrect': None, 'pointsEarned': None}
                for _ in range(QUESTIONS_PER_TURN)
            ]
            for r in range(1, TOTAL_ROUNDS + 1)
        }
        for tag in TeamTag
    }


@dataclass
class TurnState:
    current_turn: Optional[TeamTag] = None
    starting_team: Optional[TeamTag] = None
    questions_answered: Dict[TeamTag, int] = field(default_factory=lambda: {t: 0 for t in TeamTag})
    question_attempts: int = 0
    question_data: Dict[str, Dict[str, List[Dict[str, Any]]]] = field(default_factory=empty_question_data)
    toss_up_answers: List[Dict[str, Any]] = field(default_factory=list)
    toss_up_submitted_teams: List[TeamTag] = field(default_factory=list)
    toss_up_winner: Optional[TeamTag] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'currentTurn': self.current_turn.value if self.current_turn else None,
            'startingTeam': self.starting_team.value if self.starting_team else None,
            'questionsAnswered': {t.value: n for t, n in self.questions_answered.items()},
            'questionAttempts': self.question_attempts,
            'questionData': copy.deepcopy(self.question_data),
            'tossUpAnswers': [dict(a) for a in self.toss_up_answers],
            'tossUpSubmittedTeams': [t.value for t in self.toss_up_submitted_teams],
            'tossUpWinner': self.toss_up_winner.value if self.toss_up_winner else None,
        }


@dataclass
class Game:
    code: str
    questions: List[Question]
    teams: List[Team]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: GameStatus = GameStatus.WAITING
    current_round: int = 0
    current_question_index: int = 0
    players: List[Player] = field(default_factory=list)
    host_id: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    game_state: TurnState = field(default_factory=TurnState)
    # Bumped whenever pending timed continuations must be discarded
    epoch: int = 0

    def team(self, tag: TeamTag) -> Team:
        for t in self.teams:
            if t.tag is tag:
                return t
        raise KeyError(tag)

    def find_team(self, team_ref: Optional[str]) -> Optional[Team]:
        """Resolve a team by its id or its tag value."""
        if not team_ref:
            return None
        for t in self.teams:
            if t.id == team_ref or t.tag.value == team_ref:
                return t
        return None

    def team_of(self, player: Player) -> Optional[Team]:
        return self.find_team(player.team_id)

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None

    @property
    def active_team(self) -> Optional[Team]:
        for t in self.teams:
            if t.active:
                return t
        return None

    def to_dict(self) -> Dict[str, Any]:
        current = self.current_question
        return {
            'id': self.id,
            'code': self.code,
            'status': self.status.value,
            'currentRound': self.current_round,
            'currentQuestionIndex': self.current_question_index,
            'currentQuestion': current.to_dict() if current else None,
            'questions': [q.to_dict() for q in self.questions],
            'teams': [t.to_dict() for t in self.teams],
            'players': [p.to_dict() for p in self.players],
            'hostId': self.host_id,
            'createdAt': self.created_at,
            'gameState': self.game_state.to_dict(),
        }


def check_invariants(game: Game) -> List[str]:
    """Return a description of every structural invariant the game breaks."""
    problems = []
    tags = sorted(t.tag.value for t in game.teams)
    if tags != [TeamTag.TEAM1.value, TeamTag.TEAM2.value]:
        problems.append(f'teams must be exactly team1 and team2, got {tags}')
    active = [t.tag.value for t in game.teams if t.active]
    if len(active) > 1:
        problems.append(f'more than one active team: {active}')
    if game.status is not GameStatus.ACTIVE:
        if active:
            problems.append(f'team marked active while status={game.status.value}')
        if game.game_state.current_turn is not None:
            problems.append(f'current turn set while status={game.status.value}')
    elif game.game_state.current_turn is not None:
        if active != [game.game_state.current_turn.value]:
            problems.append('active flag does not match current turn')
    for tag, count in game.game_state.questions_answered.items():
        if not 0 <= count <= QUESTIONS_PER_TURN:
            problems.append(f'questionsAnswered[{tag.value}]={count} out of range')
    if not TOSS_UP_ROUND <= game.current_round <= TOTAL_ROUNDS:
        problems.append(f'currentRound={game.current_round} out of range')
    return problems
