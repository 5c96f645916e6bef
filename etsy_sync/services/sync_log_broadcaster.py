"""
Sync Log Broadcaster - Pushes live sync run logs to SSE subscribers
"""
import json
import queue
import threading
from datetime import datetime
from typing import Dict, Generator

# Log levels
LOG_LEVEL_DEBUG = 'debug'
LOG_LEVEL_INFO = 'info'
LOG_LEVEL_WARN = 'warn'
LOG_LEVEL_ERROR = 'error'


class SyncLogBroadcaster:
    """Sync log broadcaster (singleton).

    Every subscriber gets its own bounded queue. When a queue is full the
    oldest entry is dropped to make room.
    """

    _instance = None
    _lock = threading.Lock()

    QUEUE_SIZE = 100
    HEARTBEAT_SECONDS = 30

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._initialized = True

        # SSE subscriber queues {client_id: queue}
        self._subscribers: Dict[str, queue.Queue] = {}
        self._sub_lock = threading.Lock()
        self._client_counter = 0

    def subscribe(self) -> tuple:
        """Subscribe to the log stream, returns (client_id, generator)"""
        with self._sub_lock:
            self._client_counter += 1
            client_id = f"client_{self._client_counter}"
            q = queue.Queue(maxsize=self.QUEUE_SIZE)
            self._subscribers[client_id] = q

        return client_id, self._create_generator(client_id, q)

    def unsubscribe(self, client_id: str):
        with self._sub_lock:
            self._subscribers.pop(client_id, None)

    def _create_generator(self, client_id: str, q: queue.Queue) -> Generator:
        """SSE event generator for one subscriber"""
        try:
            while True:
                try:
                    message = q.get(timeout=self.HEARTBEAT_SECONDS)
                    if message is None:  # close signal
                        break
                    yield f"data: {json.dumps(message, ensure_ascii=False, default=str)}\n\n"
                except queue.Empty:
                    yield ": heartbeat\n\n"
        finally:
            self.unsubscribe(client_id)

    def broadcast(self, level: str, message: str, run_id: int = None,
                  listing_id=None, extra: dict = None):
        """Broadcast a log entry to every subscriber"""
        log_entry = {
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'level': level,
            'message': message,
        }
        if run_id is not None:
            log_entry['run_id'] = run_id
        if listing_id is not None:
            log_entry['listing_id'] = listing_id
        if extra:
            log_entry['extra'] = extra

        with self._sub_lock:
            dead_clients = []
            for client_id, q in self._subscribers.items():
                try:
                    q.put_nowait(log_entry)
                except queue.Full:
                    try:
                        q.get_nowait()
                        q.put_nowait(log_entry)
                    except (queue.Empty, queue.Full):
                        dead_clients.append(client_id)

            for client_id in dead_clients:
                del self._subscribers[client_id]

    def close_all(self):
        """Send the close signal to every subscriber"""
        with self._sub_lock:
            for q in self._subscribers.values():
                try:
                    q.put_nowait(None)
                except queue.Full:
                    pass

    def info(self, message: str, **kwargs):
        self.broadcast(LOG_LEVEL_INFO, message, **kwargs)

    def warn(self, message: str, **kwargs):
        self.broadcast(LOG_LEVEL_WARN, message, **kwargs)

    def error(self, message: str, **kwargs):
        self.broadcast(LOG_LEVEL_ERROR, message, **kwargs)

    def debug(self, message: str, **kwargs):
        self.broadcast(LOG_LEVEL_DEBUG, message, **kwargs)

    @property
    def subscriber_count(self) -> int:
        with self._sub_lock:
            return len(self._subscribers)


# Global singleton
sync_log_broadcaster = SyncLogBroadcaster()
