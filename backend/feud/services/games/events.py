"""Typed broadcast events.

One dataclass per event kind; ``event`` is the Socket.IO event name and
``payload()`` the JSON body. Game snapshots are taken when the event is
built so a later mutation never leaks into an already-queued broadcast.
"""
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Protocol

from .scoring import Judgement
from .state import Game, Player, TeamTag
from .turns import Transition, compute_round_summary, compute_winner


@dataclass
class GameEvent:
    event: ClassVar[str] = ''
    game: Dict[str, Any] = field(default_factory=dict)

    def payload(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class HostJoined(GameEvent):
    event: ClassVar[str] = 'host-joined'

    def payload(self) -> Dict[str, Any]:
        return dict(self.game)


@dataclass
class PlayerJoined(GameEvent):
    event: ClassVar[str] = 'player-joined'
    player: Dict[str, Any] = field(default_factory=dict)
    totalPlayers: int = 0


@dataclass
class TeamUpdated(GameEvent):
    event: ClassVar[str] = 'team-updated'
    playerId: str = ''
    teamId: str = ''


@dataclass
class GameStarted(GameEvent):
    event: ClassVar[str] = 'game-started'
    currentQuestion: Optional[Dict[str, Any]] = None
    round: int = 0


@dataclass
class AnswerJudged(GameEvent):
    """Shared body of ``answer-correct`` / ``answer-incorrect``."""

    playerId: str = ''
    playerName: str = ''
    teamId: str = ''
    teamName: str = ''
    submittedText: str = ''
    matchingAnswer: Optional[Dict[str, Any]] = None
    pointsAwarded: int = 0
    isCorrect: bool = False
    totalTeamScore: int = 0
    currentRoundScore: int = 0
    isTossUp: bool = False
    byHost: bool = False


@dataclass
class AnswerCorrect(AnswerJudged):
    event: ClassVar[str] = 'answer-correct'


@dataclass
class AnswerIncorrect(AnswerJudged):
    event: ClassVar[str] = 'answer-incorrect'


@dataclass
class RemainingCardsRevealed(GameEvent):
    event: ClassVar[str] = 'remaining-cards-revealed'
    revealedIndices: List[int] = field(default_factory=list)


@dataclass
class TurnChanged(GameEvent):
    event: ClassVar[str] = 'turn-changed'
    newActiveTeam: str = ''
    teamName: str = ''
    questionNumber: int = 0
    round: int = 0
    currentQuestion: Optional[Dict[str, Any]] = None


@dataclass
class NextQuestion(GameEvent):
    event: ClassVar[str] = 'next-question'
    currentQuestion: Optional[Dict[str, Any]] = None
    sameTeam: bool = True
    byHost: bool = False


@dataclass
class RoundComplete(GameEvent):
    event: ClassVar[str] = 'round-complete'
    roundSummary: Dict[str, Any] = field(default_factory=dict)
    isGameFinished: bool = False


@dataclass
class RoundStarted(GameEvent):
    event: ClassVar[str] = 'round-started'
    round: int = 0
    activeTeam: Optional[str] = None
    currentQuestion: Optional[Dict[str, Any]] = None


@dataclass
class GameOver(GameEvent):
    event: ClassVar[str] = 'game-over'
    winner: Optional[Dict[str, Any]] = None
    finalScores: Dict[str, int] = field(default_factory=dict)


@dataclass
class AnswerRevealed(GameEvent):
    event: ClassVar[str] = 'answer-revealed'
    answerIndex: int = 0
    answer: Dict[str, Any] = field(default_factory=dict)
    pointsAwarded: int = 0
    teamId: Optional[str] = None
    totalTeamScore: int = 0
    byHost: bool = True


@dataclass
class AnswersRevealed(GameEvent):
    event: ClassVar[str] = 'answers-revealed'
    byHost: bool = True


@dataclass
class GameReset(GameEvent):
    event: ClassVar[str] = 'game-reset'


@dataclass
class PlayersList(GameEvent):
    event: ClassVar[str] = 'players-list'
    players: List[Dict[str, Any]] = field(default_factory=list)
    totalPlayers: int = 0

    def payload(self) -> Dict[str, Any]:
        return {'players': self.players, 'totalPlayers': self.totalPlayers}


@dataclass
class AnswerRejected(GameEvent):
    event: ClassVar[str] = 'answer-rejected'
    reason: str = ''
    message: str = ''
    details: Dict[str, Any] = field(default_factory=dict)

    def payload(self) -> Dict[str, Any]:
        body = {'reason': self.reason, 'message': self.message}
        body.update(self.details)
        return body


@dataclass
class ErrorEvent(GameEvent):
    event: ClassVar[str] = 'error'
    reason: str = ''
    message: str = ''

    def payload(self) -> Dict[str, Any]:
        return {'reason': self.reason, 'message': self.message}


class Broadcaster(Protocol):
    def to_room(self, code: str, event: GameEvent) -> None: ...

    def to_sid(self, sid: str, event: GameEvent) -> None: ...


def answer_judged(game: Game, judgement: Judgement) -> AnswerJudged:
    team = game.team(judgement.team)
    cls = AnswerCorrect if judgement.correct else AnswerIncorrect
    return cls(
        game=game.to_dict(),
        playerId=judgement.player_id,
        playerName=judgement.player_name,
        teamId=team.id,
        teamName=team.name,
        submittedText=judgement.submitted_text,
        matchingAnswer=judgement.answer.to_dict() if judgement.answer else None,
        pointsAwarded=judgement.points,
        isCorrect=judgement.correct,
        totalTeamScore=team.score,
        currentRoundScore=team.current_round_score,
        isTossUp=judgement.toss_up,
        byHost=judgement.by_host,
    )


def final_scores(game: Game) -> Dict[str, int]:
    return {t.tag.value: t.score for t in game.teams}


def game_over(game: Game) -> GameOver:
    return GameOver(game=game.to_dict(), winner=compute_winner(game), finalScores=final_scores(game))


def round_complete(game: Game) -> RoundComplete:
    return RoundComplete(game=game.to_dict(), roundSummary=compute_round_summary(game), isGameFinished=False)


def transition_event(game: Game, transition: Transition) -> GameEvent:
    """The single broadcast that follows an ``advance_game_state`` call."""
    if transition is Transition.GAME_OVER:
        return game_over(game)
    if transition is Transition.ROUND_COMPLETE:
        return round_complete(game)
    question = game.current_question
    question_dict = question.to_dict() if question else None
    if transition is Transition.TURN_CHANGED:
        team: TeamTag = game.game_state.current_turn
        return TurnChanged(
            game=game.to_dict(),
            newActiveTeam=team.value,
            teamName=game.team(team).name,
            questionNumber=question.question_number if question else 0,
            round=game.current_round,
            currentQuestion=question_dict,
        )
    return NextQuestion(game=game.to_dict(), currentQuestion=question_dict, sameTeam=True)


def players_list(game: Game) -> PlayersList:
    players = [p.to_dict() for p in game.players]
    return PlayersList(players=players, totalPlayers=len(players))


def player_joined(game: Game, player: Player) -> PlayerJoined:
    return PlayerJoined(game=game.to_dict(), player=player.to_dict(), totalPlayers=len(game.players))
