"""Client package for socket-clientkit.

Contains the connection engine and the tasks it drives:
- engine: SocketClient, the reconnecting client
- link: SocketLink, open_link
- heartbeat: Heartbeat liveness writer
- receiver: Receiver loop
- scheduler: PeriodicTask, new_worker_pool
"""

from client.engine import LinkFactory, SocketClient
from client.heartbeat import Heartbeat
from client.link import SocketLink, open_link
from client.receiver import Receiver
from client.scheduler import PeriodicTask, new_worker_pool

__all__ = [
    "SocketClient",
    "LinkFactory",
    "SocketLink",
    "open_link",
    "Heartbeat",
    "Receiver",
    "PeriodicTask",
    "new_worker_pool",
]
