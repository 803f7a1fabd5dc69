"""Game domain services: state, turns, judging and timed sequencing.

This package contains the authoritative game engine. HTTP routes and socket
handlers import ``GameService`` from here, keeping transport concerns
separated from core game mechanics.
"""
from .service import GameService
from .store import GameStore

__all__ = ['GameService', 'GameStore']
