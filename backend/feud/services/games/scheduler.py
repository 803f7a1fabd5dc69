from dataclasses import dataclass
from typing import Callable, Optional, Set, Tuple

from feud import socketio
from .events import Broadcaster, RemainingCardsRevealed, transition_event
from .scoring import Judgement
from .state import Game, GameStatus
from .store import GameStore
from .turns import advance_game_state, reveal_all_answers


@dataclass(frozen=True)
class Checkpoint:
    """What the game must still look like for a delayed step to apply."""

    epoch: int
    question_index: int
    round: int
    status: GameStatus

    @classmethod
    def of(cls, game: Game) -> 'Checkpoint':
        return cls(game.epoch, game.current_question_index, game.current_round, game.status)

    def matches(self, game: Game) -> bool:
        return Checkpoint.of(game) == self


REVEAL = 'reveal'
ADVANCE = 'advance'


class Sequencer:
    """Timed reveal-then-advance steps that follow a judged answer.

    Correct answer: ``reveal`` after REVEAL_DELAY_SEC, then ``advance`` after
    ADVANCE_DELAY_SEC. Wrong answer: ``advance`` after
    INCORRECT_ADVANCE_DELAY_SEC. Every step carries the ``Checkpoint`` taken
    when it was scheduled and is dropped if the game moved on meanwhile
    (reset, forced, finished or deleted). ``cancel`` bumps the game epoch,
    which invalidates everything still pending for that game.
    """

    def __init__(self, app, store: GameStore, broadcaster: Broadcaster,
                 spawn: Optional[Callable] = None, sleep: Optional[Callable[[float], None]] = None):
        self.app = app
        self.store = store
        self.broadcaster = broadcaster
        self._spawn = spawn
        self._sleep = sleep or socketio.sleep
        self._scheduled: Set[Tuple[str, int, int, str]] = set()

    @property
    def inline(self) -> bool:
        return bool(self.app.config.get('TESTING')) and not self.app.config.get('ENABLE_SCHEDULER_IN_TESTS') \
            and self._spawn is None

    def _delay(self, key: str, default: float) -> float:
        try:
            return float(self.app.config.get(key, default))
        except (TypeError, ValueError):
            return default

    def after_judgement(self, game: Game, judgement: Judgement) -> None:
        """Queue what follows ``judgement``; call with the game lock held."""
        if judgement.toss_up and not judgement.toss_up_complete:
            return
        checkpoint = Checkpoint.of(game)
        if judgement.correct or judgement.toss_up:
            self.schedule(game.code, checkpoint, REVEAL, self._delay('REVEAL_DELAY_SEC', 2.0))
        else:
            self.schedule(game.code, checkpoint, ADVANCE, self._delay('INCORRECT_ADVANCE_DELAY_SEC', 3.0))

    def cancel(self, code: str) -> None:
        epoch = self.store.bump_epoch(code)
        self.app.logger.info(f"[timer-cancel] game={code} epoch={epoch}")

    def schedule(self, code: str, checkpoint: Checkpoint, step: str, delay: float) -> None:
        key = (code, checkpoint.epoch, checkpoint.question_index, step)
        if key in self._scheduled:
            self.app.logger.info(f"[timer-skip] game={code} step={step} question={checkpoint.question_index} already scheduled")
            return
        self._scheduled.add(key)
        self.app.logger.info(
            f"[timer-set] game={code} step={step} question={checkpoint.question_index} round={checkpoint.round} delay={delay}s"
        )
        if self.inline:
            self._worker(code, checkpoint, step, delay)
        elif self._spawn is not None:
            self._spawn(self._worker, code, checkpoint, step, delay)
        else:
            socketio.start_background_task(self._worker, code, checkpoint, step, delay)

    def _worker(self, code: str, checkpoint: Checkpoint, step: str, delay: float) -> None:
        if delay and delay > 0:
            self._sleep(delay)
        with self.app.app_context():
            with self.store.lock(code):
                self._scheduled.discard((code, checkpoint.epoch, checkpoint.question_index, step))
                game = self.store.get_game(code)
                if not game:
                    self.app.logger.info(f"[timer-abort] game={code} step={step} game no longer exists")
                    return
                self.app.logger.info(
                    f"[timer-fire] game={code} step={step} expected_question={checkpoint.question_index} "
                    f"actual_question={game.current_question_index} expected_epoch={checkpoint.epoch} actual_epoch={game.epoch}"
                )
                if not checkpoint.matches(game):
                    self.app.logger.info(f"[timer-abort] game={code} step={step} mismatch epoch/question/round/status")
                    return

                if step == REVEAL:
                    revealed = reveal_all_answers(game)
                    self.store.commit(game)
                    self.broadcaster.to_room(code, RemainingCardsRevealed(game=game.to_dict(), revealedIndices=revealed))
                    self.schedule(code, Checkpoint.of(game), ADVANCE, self._delay('ADVANCE_DELAY_SEC', 3.0))
                    return

                if step == ADVANCE:
                    transition = advance_game_state(game)
                    self.store.commit(game)
                    self.app.logger.info(
                        f"[advance] game={code} transition={transition.value} round={game.current_round} "
                        f"question={game.current_question_index} status={game.status.value}"
                    )
                    self.broadcaster.to_room(code, transition_event(game, transition))


def start_cleanup_worker(app, store: GameStore) -> None:
    """Periodically delete games older than GAME_RETENTION_SEC."""
    interval = int(app.config.get('CLEANUP_INTERVAL_SEC', 3600))

    def _sweeper():
        while True:
            socketio.sleep(interval)
            removed = store.sweep_expired()
            if removed:
                app.logger.info(f"[sweep] removed={len(removed)} games={','.join(removed)}")

    socketio.start_background_task(_sweeper)
