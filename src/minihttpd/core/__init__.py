"""
=============================================================================
CORE NETWORKING PACKAGE
=============================================================================

The socket-level pieces of the server, independent of HTTP semantics:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ socket_server.py   Listening socket + accept loop                   │
    │ connection.py      One client socket: read request, send, close     │
    │ supervisor.py      One tracked thread per connection               │
    └─────────────────────────────────────────────────────────────────────┘

    SocketServer.accept() ──► Connection ──► ConnectionSupervisor.spawn()
                                                      │
                                                      ▼
                                        thread: parse → route → write

=============================================================================
"""

from .socket_server import SocketServer, StartupError
from .connection import Connection, ConnectionState
from .supervisor import ConnectionSupervisor

__all__ = [
    "SocketServer",          # Accept loop
    "StartupError",          # socket/bind/listen failure
    "Connection",            # Client socket wrapper
    "ConnectionState",       # Connection lifecycle states
    "ConnectionSupervisor",  # Thread-per-connection tracking
]
