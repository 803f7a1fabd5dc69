from typing import Any, Callable, Dict, List, Optional, Tuple

from . import turns
from .errors import (
    GameFull,
    GameNotFound,
    InvalidAnswer,
    InvalidGameState,
    InvalidTeam,
    PlayerNotFound,
    Unauthorized,
)
from .events import (
    AnswerRevealed,
    AnswersRevealed,
    Broadcaster,
    GameReset,
    GameStarted,
    HostJoined,
    NextQuestion,
    RoundStarted,
    TeamUpdated,
    answer_judged,
    game_over,
    player_joined,
    players_list,
    round_complete,
)
from .question_bank import build_game_questions
from .scheduler import Sequencer
from .scoring import MatchPolicy, award_card, judge_submission, resolve_toss_up_winner, rule_on_answer
from .state import Game, GameStatus, Player, Question, TOSS_UP_ROUND
from .store import GameStore


class GameService:
    """Validates intents and drives the store, turn engine, judge and sequencer.

    Every intent runs under the game's lock, so its admission checks and its
    effects (including the immediate broadcast) are one atomic step. Rejections
    raise a ``GameError`` before anything is written.
    """

    def __init__(self, app, store: GameStore, broadcaster: Broadcaster,
                 sequencer: Optional[Sequencer] = None,
                 question_source: Optional[Callable[[], List[Question]]] = None):
        self.app = app
        self.store = store
        self.broadcaster = broadcaster
        self.sequencer = sequencer or Sequencer(app, store, broadcaster)
        self.policy = MatchPolicy.from_config(app.config)
        self.question_source = question_source or (lambda: build_game_questions(app))

    # ---- lookups ----

    def _game(self, code: str) -> Game:
        game = self.store.get_game(code)
        if not game:
            raise GameNotFound(code=code.upper() if isinstance(code, str) else None)
        return game

    def _player(self, game: Game, player_id: str) -> Player:
        player = self.store.get_player(player_id)
        if not player or player.game_code != game.code:
            raise PlayerNotFound(playerId=player_id)
        return player

    def _require_host(self, game: Game, sid: str, action: str) -> None:
        if not game.host_id or game.host_id != sid:
            raise Unauthorized(f"Only the host may {action}")

    def _require_status(self, game: Game, *allowed: GameStatus) -> None:
        if game.status not in allowed:
            raise InvalidGameState(
                f"Game is {game.status.value}; expected {' or '.join(s.value for s in allowed)}",
                status=game.status.value,
            )

    # ---- lobby ----

    def create_game(self, questions: Optional[List[Question]] = None) -> Dict[str, str]:
        code, game_id = self.store.create_game(questions if questions is not None else self.question_source())
        self.app.logger.info(f"[game-created] game={code} id={game_id}")
        return {'gameCode': code, 'gameId': game_id}

    def join_game(self, code: str, player_name: str) -> Tuple[str, Game]:
        with self.store.lock(code):
            game = self._game(code)
            limit = int(self.app.config.get('MAX_PLAYERS_PER_GAME', 10))
            if limit and len(game.players) >= limit:
                raise GameFull(maxPlayers=limit)
            player_id, game = self.store.join_game(game.code, player_name)
            self.app.logger.info(f"[player-joined] game={game.code} player={player_id} name={player_name!r}")
            return player_id, game

    def host_join(self, sid: str, code: str, teams_config: Optional[List[Dict[str, Any]]] = None) -> Game:
        with self.store.lock(code):
            game = self._game(code)
            if isinstance(teams_config, list):
                for team, config in zip(game.teams, teams_config):
                    if not isinstance(config, dict):
                        continue
                    if config.get('name'):
                        team.name = str(config['name']).strip()
                    if isinstance(config.get('members'), list):
                        team.members = [str(m).strip() for m in config['members'] if str(m).strip()]
            self.store.update_game(game.code, {'host_id': sid})
            self.app.logger.info(f"[host-joined] game={game.code} sid={sid}")
            self.broadcaster.to_sid(sid, HostJoined(game=game.to_dict()))
            return game

    def player_join(self, sid: str, code: str, player_id: str,
                    bind_room: Optional[Callable[[str], None]] = None) -> Game:
        """Bind a socket to a player created through ``join_game`` (or rejoin).

        ``bind_room`` subscribes the socket to the game room; it runs only once
        the player is known to belong to the game.
        """
        with self.store.lock(code):
            game = self._game(code)
            player = self._player(game, player_id)
            self.store.update_player(player.id, {'socket_id': sid, 'connected': True})
            if all(p.id != player.id for p in game.players):
                game.players.append(player)
            if bind_room:
                bind_room(game.code)
            self.broadcaster.to_room(game.code, player_joined(game, player))
            return game

    def get_players(self, sid: str, code: str) -> None:
        with self.store.lock(code):
            game = self._game(code)
            self.broadcaster.to_sid(sid, players_list(game))

    def join_team(self, code: str, player_id: str, team_id: str) -> Game:
        with self.store.lock(code):
            game = self._game(code)
            player = self._player(game, player_id)
            team = game.find_team(team_id)
            if not team:
                raise InvalidTeam(teamId=team_id)
            self.store.update_player(player.id, {'team_id': team.id})
            self.app.logger.info(f"[team-updated] game={game.code} player={player.id} team={team.tag.value}")
            self.broadcaster.to_room(game.code, TeamUpdated(game=game.to_dict(), playerId=player.id, teamId=team.id))
            return game

    # ---- play ----

    def start_game(self, sid: str, code: str) -> Game:
        with self.store.lock(code):
            game = self._game(code)
            self._require_host(game, sid, 'start the game')
            if game.status is not GameStatus.WAITING:
                raise InvalidGameState('Game has already started', status=game.status.value)
            turns.start_game(game)
            self.store.commit(game)
            question = game.current_question
            self.app.logger.info(f"[game-started] game={game.code} round={game.current_round} question={game.current_question_index}")
            self.broadcaster.to_room(game.code, GameStarted(
                game=game.to_dict(),
                currentQuestion=question.to_dict() if question else None,
                round=game.current_round,
            ))
            return game

    def submit_answer(self, code: str, player_id: str, text: str):
        with self.store.lock(code):
            game = self._game(code)
            player = self._player(game, player_id)
            self._require_status(game, GameStatus.ACTIVE)
            team = game.team_of(player)
            if not team:
                raise InvalidTeam('You must join a team before answering')
            if text is not None and not isinstance(text, str):
                raise InvalidAnswer('Answer must be text')
            judgement = judge_submission(game, team.tag, player, text or '', self.policy)
            self.store.commit(game)
            self.app.logger.info(
                f"[answer] game={game.code} team={team.tag.value} player={player.id} round={judgement.round} "
                f"correct={judgement.correct} points={judgement.points}"
            )
            self.broadcaster.to_room(game.code, answer_judged(game, judgement))
            self.sequencer.after_judgement(game, judgement)
            return judgement

    def continue_to_next_round(self, sid: str, code: str) -> Game:
        with self.store.lock(code):
            game = self._game(code)
            self._require_host(game, sid, 'continue to the next round')
            self._require_status(game, GameStatus.ROUND_SUMMARY)
            transition = turns.start_new_round(game)
            self.store.commit(game)
            if transition is turns.Transition.GAME_OVER:
                self.broadcaster.to_room(game.code, game_over(game))
            elif transition is turns.Transition.ROUND_COMPLETE:
                self.broadcaster.to_room(game.code, round_complete(game))
            else:
                question = game.current_question
                turn = game.game_state.current_turn
                self.app.logger.info(f"[round-started] game={game.code} round={game.current_round} team={turn.value if turn else None}")
                self.broadcaster.to_room(game.code, RoundStarted(
                    game=game.to_dict(),
                    round=game.current_round,
                    activeTeam=turn.value if turn else None,
                    currentQuestion=question.to_dict() if question else None,
                ))
            return game

    # ---- host overrides ----

    def force_next_question(self, sid: str, code: str) -> Game:
        with self.store.lock(code):
            game = self._game(code)
            self._require_host(game, sid, 'skip the question')
            self._require_status(game, GameStatus.ACTIVE)
            self.sequencer.cancel(game.code)
            state = game.game_state
            if game.current_round == TOSS_UP_ROUND and state.toss_up_winner is None:
                state.toss_up_winner = resolve_toss_up_winner(state.toss_up_answers)
            transition = turns.force_next_question(game)
            self.store.commit(game)
            self.app.logger.info(f"[force-next] game={game.code} question={game.current_question_index} transition={transition.value}")
            if transition is turns.Transition.GAME_OVER:
                self.broadcaster.to_room(game.code, game_over(game))
            else:
                question = game.current_question
                self.broadcaster.to_room(game.code, NextQuestion(
                    game=game.to_dict(),
                    currentQuestion=question.to_dict() if question else None,
                    sameTeam=False,
                    byHost=True,
                ))
            return game

    def force_round_summary(self, sid: str, code: str) -> Game:
        with self.store.lock(code):
            game = self._game(code)
            self._require_host(game, sid, 'end the round')
            self._require_status(game, GameStatus.ACTIVE)
            self.sequencer.cancel(game.code)
            state = game.game_state
            if game.current_round == TOSS_UP_ROUND and state.toss_up_winner is None:
                state.toss_up_winner = resolve_toss_up_winner(state.toss_up_answers)
            turns.force_round_summary(game)
            self.store.commit(game)
            self.app.logger.info(f"[force-summary] game={game.code} round={game.current_round}")
            self.broadcaster.to_room(game.code, round_complete(game))
            return game

    def force_game_over(self, sid: str, code: str) -> Game:
        with self.store.lock(code):
            game = self._game(code)
            self._require_host(game, sid, 'end the game')
            self._require_status(game, GameStatus.ACTIVE, GameStatus.ROUND_SUMMARY)
            self.sequencer.cancel(game.code)
            turns.force_game_over(game)
            self.store.commit(game)
            self.app.logger.info(f"[force-game-over] game={game.code}")
            self.broadcaster.to_room(game.code, game_over(game))
            return game

    def reset_game(self, sid: str, code: str) -> Game:
        with self.store.lock(code):
            game = self._game(code)
            self._require_host(game, sid, 'reset the game')
            self.sequencer.cancel(game.code)
            turns.reset_game(game)
            self.store.commit(game)
            self.app.logger.info(f"[game-reset] game={game.code} players={len(game.players)}")
            self.broadcaster.to_room(game.code, GameReset(game=game.to_dict()))
            return game

    def reveal_all_answers(self, sid: str, code: str) -> Game:
        with self.store.lock(code):
            game = self._game(code)
            self._require_host(game, sid, 'reveal the answers')
            self._require_status(game, GameStatus.ACTIVE)
            turns.reveal_all_answers(game)
            self.store.commit(game)
            self.broadcaster.to_room(game.code, AnswersRevealed(game=game.to_dict()))
            return game

    # ---- host adjudication ----

    def _ruling_team(self, game: Game, team_ref: Any):
        if team_ref is None:
            team = game.active_team
        else:
            team = game.find_team(team_ref) if isinstance(team_ref, str) else None
        if not team:
            raise InvalidTeam('No team to rule on', teamId=team_ref if isinstance(team_ref, str) else None)
        return team

    def _rule(self, sid: str, code: str, correct: bool, answer_index: Optional[int], team_ref: Any):
        with self.store.lock(code):
            game = self._game(code)
            self._require_host(game, sid, 'mark answers')
            self._require_status(game, GameStatus.ACTIVE)
            team = self._ruling_team(game, team_ref)
            if correct and answer_index is None:
                raise InvalidAnswer('Choose the answer card to award')
            judgement = rule_on_answer(game, team.tag, answer_index)
            self.store.commit(game)
            self.app.logger.info(
                f"[host-ruling] game={game.code} team={team.tag.value} round={judgement.round} "
                f"correct={judgement.correct} points={judgement.points}"
            )
            self.broadcaster.to_room(game.code, answer_judged(game, judgement))
            self.sequencer.after_judgement(game, judgement)
            return judgement

    def mark_correct(self, sid: str, code: str, answer_index: int, team_ref: Any = None):
        """Host accepts a team's spoken answer as the card at ``answer_index``."""
        return self._rule(sid, code, True, answer_index, team_ref)

    def mark_incorrect(self, sid: str, code: str, team_ref: Any = None):
        return self._rule(sid, code, False, None, team_ref)

    def reveal_answer(self, sid: str, code: str, answer_index: int) -> Game:
        """Turn over one card; the team in control banks its points."""
        with self.store.lock(code):
            game = self._game(code)
            self._require_host(game, sid, 'reveal an answer')
            self._require_status(game, GameStatus.ACTIVE)
            answer, points, tag = award_card(game, answer_index)
            self.store.commit(game)
            team = game.team(tag) if tag else None
            self.app.logger.info(
                f"[reveal-answer] game={game.code} index={answer_index} "
                f"team={tag.value if tag else None} points={points}"
            )
            self.broadcaster.to_room(game.code, AnswerRevealed(
                game=game.to_dict(),
                answerIndex=answer_index,
                answer=answer.to_dict(),
                pointsAwarded=points,
                teamId=team.id if team else None,
                totalTeamScore=team.score if team else 0,
            ))
            return game

    # ---- connection ----

    def disconnect(self, sid: str) -> None:
        players, hosted = self.store.mark_disconnected(sid)
        for player in players:
            self.app.logger.info(f"[disconnect] game={player.game_code} player={player.id}")
        for game in hosted:
            self.app.logger.info(f"[host-disconnect] game={game.code}")
