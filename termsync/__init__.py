"""
termsync - keep a local view of a server's terminal sessions in sync.

Polls the terminals REST API with backoff, reconciles the running list
against a local cache, and hands out connection handles that are disposed
when their terminal disappears.
"""

__version__ = "0.1.0"

from termsync.sessions.manager import TerminalManager

__all__ = ["TerminalManager", "__version__"]
