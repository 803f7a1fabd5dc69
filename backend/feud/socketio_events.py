from functools import wraps

from flask import current_app, request
from flask_socketio import join_room, emit

from feud import socketio
from feud.services.games.errors import GameError, Unauthorized
from feud.services.games.events import AnswerRejected, ErrorEvent, GameEvent

NAMESPACE = '/ws'


def room_for(game_code: str) -> str:
    return f"game:{game_code.upper()}"


class SocketIOBroadcaster:
    """Delivers game events over Flask-SocketIO; safe from background tasks."""

    def __init__(self, namespace: str = NAMESPACE):
        self.namespace = namespace

    def to_room(self, code: str, event: GameEvent) -> None:
        socketio.emit(event.event, event.payload(), to=room_for(code), namespace=self.namespace)

    def to_sid(self, sid: str, event: GameEvent) -> None:
        socketio.emit(event.event, event.payload(), to=sid, namespace=self.namespace)


def _service():
    return current_app.extensions['feud']


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def intent(rejection_event=ErrorEvent.event):
    """Turn a ``GameError`` raised by a handler into a unicast rejection.

    ``Unauthorized`` is only logged; a non-host socket never gets a reply.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(data=None):
            if not isinstance(data, dict):
                data = {}
            try:
                return fn(data)
            except Unauthorized as exc:
                current_app.logger.info(f"[unauthorized] event={fn.__name__} sid={_get_sid()} game={data.get('gameCode')} {exc.message}")
            except GameError as exc:
                current_app.logger.info(f"[rejected] event={fn.__name__} sid={_get_sid()} game={data.get('gameCode')} reason={exc.reason}")
                if rejection_event == AnswerRejected.event:
                    event = AnswerRejected(reason=exc.reason, message=exc.message, details=dict(exc.context))
                else:
                    event = ErrorEvent(reason=exc.reason, message=exc.message)
                _service().broadcaster.to_sid(_get_sid(), event)
        return wrapper
    return decorator


def handle_connect(auth=None):
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(*args):
    _service().disconnect(_get_sid())


@intent()
def handle_host_join(data):
    game = _service().host_join(_get_sid(), data.get('gameCode'), data.get('teams'))
    join_room(room_for(game.code))


@intent()
def handle_player_join(data):
    # Room membership precedes the player-joined broadcast
    _service().player_join(
        _get_sid(), data.get('gameCode'), data.get('playerId'),
        bind_room=lambda code: join_room(room_for(code)),
    )


@intent()
def handle_get_players(data):
    _service().get_players(_get_sid(), data.get('gameCode'))


@intent()
def handle_join_team(data):
    _service().join_team(data.get('gameCode'), data.get('playerId'), data.get('teamId'))


@intent()
def handle_start_game(data):
    _service().start_game(_get_sid(), data.get('gameCode'))


@intent(AnswerRejected.event)
def handle_submit_answer(data):
    _service().submit_answer(data.get('gameCode'), data.get('playerId'), data.get('answer'))


@intent()
def handle_continue_to_next_round(data):
    _service().continue_to_next_round(_get_sid(), data.get('gameCode'))


@intent()
def handle_force_next_question(data):
    _service().force_next_question(_get_sid(), data.get('gameCode'))


@intent()
def handle_force_round_summary(data):
    _service().force_round_summary(_get_sid(), data.get('gameCode'))


@intent()
def handle_force_game_over(data):
    _service().force_game_over(_get_sid(), data.get('gameCode'))


@intent()
def handle_reset_game(data):
    _service().reset_game(_get_sid(), data.get('gameCode'))


@intent()
def handle_reveal_all_answers(data):
    _service().reveal_all_answers(_get_sid(), data.get('gameCode'))


@intent(AnswerRejected.event)
def handle_host_mark_correct(data):
    _service().mark_correct(_get_sid(), data.get('gameCode'), data.get('answerIndex'), data.get('teamId'))


@intent(AnswerRejected.event)
def handle_host_mark_incorrect(data):
    _service().mark_incorrect(_get_sid(), data.get('gameCode'), data.get('teamId'))


@intent(AnswerRejected.event)
def handle_reveal_answer(data):
    _service().reveal_answer(_get_sid(), data.get('gameCode'), data.get('answerIndex'))


HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'host-join': handle_host_join,
    'player-join': handle_player_join,
    'get-players': handle_get_players,
    'join-team': handle_join_team,
    'start-game': handle_start_game,
    'submit-answer': handle_submit_answer,
    'continue-to-next-round': handle_continue_to_next_round,
    'force-next-question': handle_force_next_question,
    'force-round-summary': handle_force_round_summary,
    'force-game-over': handle_force_game_over,
    'reset-game': handle_reset_game,
    'reveal-all-answers': handle_reveal_all_answers,
    'host-mark-correct': handle_host_mark_correct,
    'host-mark-incorrect': handle_host_mark_incorrect,
    'reveal-answer': handle_reveal_answer,
}


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    for event, handler in HANDLERS.items():
        socketio.on_event(event, handler, namespace=NAMESPACE)
