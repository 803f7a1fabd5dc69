"""Question bank: turns raw question records into a game's ordered questions.

A record is ``{id?, question, category?, level | round, answers: [{text, score}]}``.
Per round the first six records are dealt in threes: slots 1-3 to team1,
then slots 1-3 to team2. At most one ``tossup`` record opens the game.
"""
import json
import os
import uuid
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .state import QUESTIONS_PER_TURN, TOSS_UP_ROUND, TOTAL_ROUNDS, Answer, Question, TeamTag

LEVEL_ROUNDS = {
    'tossup': TOSS_UP_ROUND,
    'toss-up': TOSS_UP_ROUND,
    'beginner': 1,
    'intermediate': 2,
    'advanced': 3,
}

DEFAULT_BANK_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), 'data', 'questions.json')


def record_round(record: Dict[str, Any]) -> int:
    if record.get('round') is not None:
        return int(record['round'])
    level = (record.get('level') or '').strip().lower()
    return LEVEL_ROUNDS.get(level, TOTAL_ROUNDS)


def _answers(record: Dict[str, Any]) -> List[Answer]:
    answers = []
    for a in record.get('answers') or []:
        text = a.get('text') or a.get('answer')
        if not text:
            continue
        score = a.get('score', a.get('points', 0))
        answers.append(Answer(text=str(text).strip(), score=int(score or 0)))
    return answers


def prepare_game_questions(records: Iterable[Dict[str, Any]]) -> List[Question]:
    """Assign round, team and slot to each record; returns fresh Question objects."""
    by_round: Dict[int, List[Dict[str, Any]]] = {r: [] for r in range(TOSS_UP_ROUND, TOTAL_ROUNDS + 1)}
    for record in records:
        round_no = record_round(record)
        if round_no in by_round:
            by_round[round_no].append(record)

    questions: List[Question] = []
    for record in by_round[TOSS_UP_ROUND][:1]:
        questions.append(Question(
            id=str(record.get('id') or uuid.uuid4()),
            question=record['question'],
            category=record.get('category'),
            round=TOSS_UP_ROUND,
            answers=_answers(record),
        ))

    per_round = QUESTIONS_PER_TURN * len(TeamTag)
    teams = [TeamTag.TEAM1, TeamTag.TEAM2]
    for round_no in range(1, TOTAL_ROUNDS + 1):
        for idx, record in enumerate(by_round[round_no][:per_round]):
            questions.append(Question(
                id=str(record.get('id') or uuid.uuid4()),
                question=record['question'],
                category=record.get('category'),
                round=round_no,
                team_assignment=teams[(idx // QUESTIONS_PER_TURN) % len(teams)],
                question_number=(idx % QUESTIONS_PER_TURN) + 1,
                answers=_answers(record),
            ))
    return questions


def load_records(path: Optional[str] = None) -> List[Dict[str, Any]]:
    with open(path or DEFAULT_BANK_PATH, encoding='utf-8') as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        data = data.get('questions', [])
    return list(data)


def fills_game(records: Iterable[Dict[str, Any]]) -> bool:
    counts = Counter(record_round(r) for r in records)
    per_round = QUESTIONS_PER_TURN * len(TeamTag)
    return all(counts[r] >= per_round for r in range(1, TOTAL_ROUNDS + 1))


def load_db_records() -> List[Dict[str, Any]]:
    """Unused bank rows.

    Once the unused rows can no longer fill a game and some rows have been
    played, every row goes back into rotation.
    """
    from feud import db
    from feud.models import BankQuestion
    records = [q.to_record() for q in BankQuestion.query.filter_by(used=False).order_by(BankQuestion.id).all()]
    if not fills_game(records) and BankQuestion.query.filter_by(used=True).count():
        BankQuestion.query.update({'used': False})
        db.session.commit()
        records = [q.to_record() for q in BankQuestion.query.order_by(BankQuestion.id).all()]
    return records


def mark_used(record_ids: List[str]) -> None:
    from feud import db
    from feud.models import BankQuestion
    ids = [int(i) for i in record_ids]
    if not ids:
        return
    BankQuestion.query.filter(BankQuestion.id.in_(ids)).update({'used': True}, synchronize_session=False)
    db.session.commit()


def build_game_questions(app) -> List[Question]:
    """Questions for a new game: the database bank if seeded, else the JSON bank.

    Database rows dealt into the game are flagged ``used``.
    """
    try:
        records = load_db_records()
        if records:
            questions = prepare_game_questions(records)
            dealt = {q.id for q in questions}
            mark_used([r['id'] for r in records if r['id'] in dealt])
            return questions
    except SQLAlchemyError as exc:
        from feud import db
        db.session.rollback()
        app.logger.warning(f"[question-bank] database unavailable, using JSON bank: {exc}")
    return prepare_game_questions(load_records(app.config.get('QUESTION_BANK_PATH')))
