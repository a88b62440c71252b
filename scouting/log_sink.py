"""
Background logging for the request path.

Records emitted by the service are put on a bounded queue and written by a
listener thread, so a slow log destination never delays a response. When the
queue is full the oldest queued record is dropped to make room.
"""
from logging.handlers import QueueHandler, QueueListener
from typing import Optional
import logging
import queue
import threading

from shared.claims import AuthContext

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


class DropOldestQueueHandler(QueueHandler):
    def __init__(self, log_queue: queue.Queue):
        super().__init__(log_queue)
        self.dropped = 0
        self._lock = threading.Lock()

    def enqueue(self, record):
        with self._lock:
            while True:
                try:
                    self.queue.put_nowait(record)
                    return
                except queue.Full:
                    try:
                        self.queue.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        pass


class BackgroundLogSink:
    def __init__(self, maxsize: int = 1000, handlers=None):
        self.queue = queue.Queue(maxsize=maxsize)
        self.handler = DropOldestQueueHandler(self.queue)
        if handlers is None:
            stream = logging.StreamHandler()
            stream.setFormatter(logging.Formatter(LOG_FORMAT))
            handlers = [stream]
        self.listener = QueueListener(self.queue, *handlers, respect_handler_level=True)
        self._started = False

    @property
    def dropped(self) -> int:
        return self.handler.dropped

    def start(self):
        if not self._started:
            self.listener.start()
            self._started = True

    def stop(self):
        if self._started:
            self.listener.stop()
            self._started = False

    def attach(self, target: logging.Logger, level: str = 'INFO'):
        if self.handler not in target.handlers:
            target.addHandler(self.handler)
        target.setLevel(level)
        target.propagate = False


_sink: Optional[BackgroundLogSink] = None


def configure_logging(app) -> BackgroundLogSink:
    """Route the service loggers through one shared background sink."""
    global _sink
    if _sink is None:
        _sink = BackgroundLogSink(maxsize=app.config.get('LOG_QUEUE_SIZE', 1000))
        _sink.start()
    level = app.config.get('LOG_LEVEL', 'INFO')
    for name in ('scouting', 'shared'):
        _sink.attach(logging.getLogger(name), level)
    return _sink


def log_internal_fault(operation: str, ctx: Optional[AuthContext], target, exc: BaseException):
    identity = f"user={ctx.subject_id} realm={ctx.realm_id}" if ctx else "anonymous"
    logger.error(
        f"Internal fault during {operation} ({identity}, target={target}): {exc}",
        exc_info=(type(exc), exc, exc.__traceback__)
    )
