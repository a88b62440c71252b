from threading import Lock, Thread
import logging
import queue

import redis

from .notifications import ObservationNotice

logger = logging.getLogger(__name__)

_STOP = object()


class PubSubClient:
    """
    Publishes observation notices to redis.

    Channels are realm-scoped so a subscriber only ever hears about data its
    own realm wrote.
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    @classmethod
    def from_url(cls, redis_url: str) -> "PubSubClient":
        return cls(redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        ))

    @staticmethod
    def realm_channel(realm_id: int) -> str:
        return f"realm:{realm_id}:observations"

    def publish_observation(self, notice: ObservationNotice) -> bool:
        channel = self.realm_channel(notice.realm_id)
        try:
            self.redis.publish(channel, notice.to_json())
            return True
        except redis.RedisError as e:
            logger.warning(f"Failed to publish {notice.type} on {channel}: {e}")
            return False


class BackgroundPublisher:
    """
    Hands notices to a worker thread so an unreachable redis never delays a
    response. The queue is bounded; when it is full the oldest notice is
    dropped.
    """

    def __init__(self, client: PubSubClient, maxsize: int = 1000):
        self.client = client
        self.queue = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self._lock = Lock()
        self._thread = None

    def start(self) -> "BackgroundPublisher":
        if self._thread is None:
            self._thread = Thread(target=self._publish_loop, daemon=True)
            self._thread.start()
        return self

    def stop(self):
        """Publish whatever is queued, then end the worker."""
        if self._thread is not None:
            self.queue.put(_STOP)
            self._thread.join()
            self._thread = None

    def submit(self, notice: ObservationNotice):
        with self._lock:
            while True:
                try:
                    self.queue.put_nowait(notice)
                    return
                except queue.Full:
                    try:
                        self.queue.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        pass

    def _publish_loop(self):
        while True:
            notice = self.queue.get()
            if notice is _STOP:
                return
            self.client.publish_observation(notice)
