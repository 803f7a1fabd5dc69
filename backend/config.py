import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///feud.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = [o for o in os.environ.get('CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000').split(',') if o]
    # Reveal/advance timers (seconds)
    REVEAL_DELAY_SEC = float(os.environ.get('REVEAL_DELAY_SEC', '2'))
    ADVANCE_DELAY_SEC = float(os.environ.get('ADVANCE_DELAY_SEC', '3'))
    INCORRECT_ADVANCE_DELAY_SEC = float(os.environ.get('INCORRECT_ADVANCE_DELAY_SEC', '3'))
    # Stale game expiry
    GAME_RETENTION_SEC = int(os.environ.get('GAME_RETENTION_SEC', '3600'))
    CLEANUP_INTERVAL_SEC = int(os.environ.get('CLEANUP_INTERVAL_SEC', '3600'))
    GAME_CODE_LENGTH = int(os.environ.get('GAME_CODE_LENGTH', '6'))
    MAX_PLAYERS_PER_GAME = int(os.environ.get('MAX_PLAYERS_PER_GAME', '10'))
    # Answer matching: 'containment' (either string inside the other) or 'exact'
    ANSWER_MATCH_MODE = os.environ.get('ANSWER_MATCH_MODE', 'containment')
    ANSWER_MIN_FRAGMENT_LENGTH = int(os.environ.get('ANSWER_MIN_FRAGMENT_LENGTH', '1'))
    # Optional JSON question bank; falls back to the bundled set
    QUESTION_BANK_PATH = os.environ.get('QUESTION_BANK_PATH')
    # Run sequencer continuations in background tasks even when TESTING
    ENABLE_SCHEDULER_IN_TESTS = False
