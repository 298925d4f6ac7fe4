"""
Guessgame - Realtime "guess the secret word" party game service

One player picks a secret word; the others take timed turns asking
yes/no questions and guessing. The package provides:
- A pure turn engine over an explicit phase state machine
- A document-store abstraction (in-memory and Redis backends)
- Session and user repositories with minimal-path writes
- A per-client session controller with a turn countdown
- A FastAPI HTTP and WebSocket API
"""

__version__ = "0.1.0"
