"""Server package for socket-clientkit.

Contains the loopback peer used by integration tests and the serve command:
- peer: EchoPeer
"""

from server.peer import EchoPeer

__all__ = [
    "EchoPeer",
]
