"""
=============================================================================
CONNECTION SUPERVISOR
=============================================================================

Runs each accepted connection in its own thread, and keeps track of those
threads so the server can wait for them on shutdown.

=============================================================================
THREAD PER CONNECTION
=============================================================================

    Main Thread (accept loop)
         │
         ├── accept() ──► spawn(process, conn1) ──► Thread conn-1
         ├── accept() ──► spawn(process, conn2) ──► Thread conn-2
         └── accept() ──► spawn(process, conn3) ──► Thread conn-3

The accept loop never waits for a connection thread. Each thread owns its
own socket, buffer, request and response; the only thing they share is
the frozen ServerConfig (and the filesystem).

=============================================================================
SUPERVISED, NOT DETACHED
=============================================================================

A fire-and-forget thread cannot be waited for. The supervisor registers
every thread when it starts and removes it when it finishes:

    spawn()      → add to _threads, start
    thread ends  → remove from _threads (always, even on exception)
    shutdown()   → refuse new spawns, join what is left (with timeout)

=============================================================================
OPTIONAL CONNECTION CAP
=============================================================================

By default concurrency is unbounded. With max_connections=N a semaphore
limits live threads to N; spawn() returns False when all N are busy and
the caller decides what to tell the client (the server sends 503).

=============================================================================
"""

import threading
import time
import logging
from typing import Callable, Optional, Any, Set


logger = logging.getLogger(__name__)


class ConnectionSupervisor:
    """
    Tracks one thread per connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   supervisor = ConnectionSupervisor(max_connections=None)           │
    │                                                                      │
    │   supervisor.spawn(handle_connection, conn, name=conn.id)           │
    │                                                                      │
    │   supervisor.active_count   # live connection threads               │
    │   supervisor.stats          # {"active": 3, "completed": 120, ...}  │
    │                                                                      │
    │   supervisor.shutdown(wait=True, timeout=30.0)                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(self, max_connections: Optional[int] = None):
        """
        Args:
            max_connections: Maximum live connection threads.
                             None = unbounded.
        """
        self.max_connections = max_connections

        self._threads: Set[threading.Thread] = set()
        self._lock = threading.Lock()  # Protects _threads, _closed and counters
        self._slots = (
            threading.BoundedSemaphore(max_connections) if max_connections else None
        )
        self._closed = False

        self.spawned = 0
        self.completed = 0
        self.failed = 0
        self.rejected = 0

    @property
    def active_count(self) -> int:
        """Number of connection threads still running."""
        with self._lock:
            return len(self._threads)

    @property
    def stats(self) -> dict:
        """Counters for logging and tests."""
        with self._lock:
            return {
                "active": len(self._threads),
                "spawned": self.spawned,
                "completed": self.completed,
                "failed": self.failed,
                "rejected": self.rejected,
            }

    def spawn(self, func: Callable[..., Any], *args: Any, name: Optional[str] = None) -> bool:
        """
        Run func(*args) in a new tracked thread.

        Returns:
            True if the thread was started. False if the supervisor is
            shut down or the connection cap is reached.
        """
        thread = threading.Thread(
            target=self._run,
            args=(func, args),
            name=f"conn-{name}" if name else None,
            daemon=True,  # Never keeps the process alive on its own
        )

        # Check, start and register under one lock: shutdown() either
        # refuses this thread or finds it, already started, in its snapshot.
        # The thread itself only takes the lock when it finishes.
        with self._lock:
            if self._closed:
                return False

            if self._slots is not None and not self._slots.acquire(blocking=False):
                self.rejected += 1
                return False

            try:
                thread.start()
            except RuntimeError:
                # Thread limit of the OS reached
                self.failed += 1
                if self._slots is not None:
                    self._slots.release()
                raise

            self._threads.add(thread)
            self.spawned += 1

        return True

    def _run(self, func: Callable[..., Any], args: tuple):
        """
        Thread body: run the task, then always deregister.

        An exception here only ends this one thread; it is logged and
        never reaches the accept loop or any other connection.
        """
        thread = threading.current_thread()
        start_time = time.time()
        failed = False

        try:
            func(*args)
        except Exception as e:
            failed = True
            logger.exception(f"{thread.name} failed after {time.time() - start_time:.3f}s: {e}")
        finally:
            self._release(thread, failed=failed)

    def _release(self, thread: threading.Thread, failed: bool):
        with self._lock:
            self._threads.discard(thread)
            if failed:
                self.failed += 1
            else:
                self.completed += 1

        if self._slots is not None:
            self._slots.release()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """
        Stop accepting new work and optionally wait for live threads.

        Args:
            wait: Join running connection threads.
            timeout: Total seconds to wait. None = wait forever.

        Returns:
            True if no connection threads are left running.
        """
        with self._lock:
            self._closed = True
            pending = list(self._threads)

        if pending:
            logger.info(f"Waiting for {len(pending)} connection(s) to finish...")

        if wait:
            deadline = None if timeout is None else time.time() + timeout
            for thread in pending:
                remaining = None if deadline is None else max(0.0, deadline - time.time())
                thread.join(remaining)

        still_running = self.active_count
        if still_running:
            logger.warning(f"{still_running} connection(s) still running at shutdown")
        return still_running == 0
