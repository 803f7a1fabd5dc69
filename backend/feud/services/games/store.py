import random
import string
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import GameNotFound, InvariantViolation
from .state import Game, Player, Question, Team, TeamTag, check_invariants


DEFAULT_TEAM_NAMES = {TeamTag.TEAM1: 'Team 1', TeamTag.TEAM2: 'Team 2'}


def generate_game_code(taken: Iterable[str], length: int = 6) -> str:
    """Generate a short game code not already in ``taken``."""
    taken = set(taken)
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if code not in taken:
            return code


class GameStore:
    """Owns every Game and Player record; all mutation goes through here.

    Each game has its own re-entrant lock. Callers hold ``lock(code)`` across
    any check-then-act sequence so admission checks and their effects are
    never split by another intent on the same game.
    """

    def __init__(self, code_length: int = 6, retention_sec: int = 3600, clock=time.time):
        self.code_length = code_length
        self.retention_sec = retention_sec
        self._clock = clock
        self._games: Dict[str, Game] = {}
        self._players: Dict[str, Player] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    @staticmethod
    def _normalize_code(code: Any) -> str:
        return code.strip().upper() if isinstance(code, str) else ''

    @contextmanager
    def lock(self, code: str):
        code = self._normalize_code(code)
        with self._registry_lock:
            # Unknown codes get a throwaway lock; only created games keep one.
            game_lock = self._locks.get(code) or threading.RLock()
        with game_lock:
            yield

    def create_game(self, questions: List[Question]) -> Tuple[str, str]:
        with self._registry_lock:
            code = generate_game_code(self._games.keys(), self.code_length)
            game = Game(
                code=code,
                questions=questions,
                teams=[Team(tag=tag, name=DEFAULT_TEAM_NAMES[tag]) for tag in TeamTag],
                created_at=self._clock(),
            )
            self._games[code] = game
            self._locks[code] = threading.RLock()
        self._verify(game)
        return code, game.id

    def join_game(self, code: str, player_name: str) -> Tuple[str, Game]:
        code = self._normalize_code(code)
        with self.lock(code):
            game = self._games.get(code)
            if not game:
                raise GameNotFound(code=code)
            player = Player(name=player_name, game_code=code)
            self._players[player.id] = player
            game.players.append(player)
            return player.id, game

    def get_game(self, code: Optional[str]) -> Optional[Game]:
        return self._games.get(self._normalize_code(code))

    def get_player(self, player_id: Any) -> Optional[Player]:
        if not isinstance(player_id, str) or not player_id:
            return None
        return self._players.get(player_id)

    def update_game(self, code: str, partial: Dict[str, Any]) -> Optional[Game]:
        game = self.get_game(code)
        if not game:
            return None
        previous = _merge(game, partial)
        try:
            self._verify(game)
        except InvariantViolation:
            _merge(game, previous)
            raise
        return game

    def update_player(self, player_id: str, partial: Dict[str, Any]) -> Optional[Player]:
        player = self.get_player(player_id)
        if not player:
            return None
        _merge(player, partial)
        return player

    def commit(self, game: Game) -> Game:
        """Re-check invariants after an in-place mutation by a domain service."""
        self._verify(game)
        return game

    def bump_epoch(self, code: str) -> Optional[int]:
        game = self.get_game(code)
        if not game:
            return None
        game.epoch += 1
        return game.epoch

    def players_for_socket(self, socket_id: str) -> List[Player]:
        return [p for p in list(self._players.values()) if p.socket_id == socket_id]

    def games_hosted_by(self, socket_id: str) -> List[Game]:
        return [g for g in list(self._games.values()) if g.host_id == socket_id]

    def mark_disconnected(self, socket_id: str) -> Tuple[List[Player], List[Game]]:
        """Flag players on this socket as disconnected and drop its host bindings."""
        players = self.players_for_socket(socket_id)
        for player in players:
            with self.lock(player.game_code):
                player.connected = False
        hosted = self.games_hosted_by(socket_id)
        for game in hosted:
            with self.lock(game.code):
                game.host_id = None
        return players, hosted

    def sweep_expired(self, now: Optional[float] = None) -> List[str]:
        """Delete games created longer ago than the retention window."""
        now = self._clock() if now is None else now
        cutoff = now - self.retention_sec
        removed = []
        with self._registry_lock:
            for code, game in list(self._games.items()):
                if game.created_at < cutoff:
                    for player in game.players:
                        self._players.pop(player.id, None)
                    del self._games[code]
                    self._locks.pop(code, None)
                    removed.append(code)
        return removed

    def stats(self) -> Dict[str, int]:
        return {
            'activeGames': len(self._games),
            'connectedPlayers': sum(1 for p in list(self._players.values()) if p.connected),
        }

    def _verify(self, game: Game) -> None:
        problems = check_invariants(game)
        if problems:
            raise InvariantViolation(game.code, problems)


def _merge(record: Any, partial: Dict[str, Any]) -> Dict[str, Any]:
    """Shallow-merge ``partial`` into ``record``; returns the replaced values."""
    unknown = [k for k in partial if not hasattr(record, k)]
    if unknown:
        raise ValueError(f"unknown field(s) for {type(record).__name__}: {', '.join(unknown)}")
    previous = {key: getattr(record, key) for key in partial}
    for key, value in partial.items():
        setattr(record, key, value)
    return previous
