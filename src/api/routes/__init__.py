"""FastAPI route modules.

Exports all route modules for inclusion in the main application.
"""

from src.api.routes import agent, chat, threads

__all__ = [
    "agent",
    "chat",
    "threads",
]
