"""
Blueprints package for the Rift Arena application
Contains modular route blueprints for different features
"""

from .auth import auth_bp
from .organizer import organizer_bp
from .player import player_bp
from .public import public_bp

__all__ = ['auth_bp', 'organizer_bp', 'player_bp', 'public_bp']
