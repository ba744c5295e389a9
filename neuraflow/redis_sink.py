"""
Redis mirror for the broker's default sink
Pushes every sink payload onto a Redis list for external consumers
"""

import base64
import json
from datetime import datetime
from typing import Optional

import redis

from .info import Info
from .output import output

SINK_QUEUE = "neura:sink"


class RedisSinkMirror:
    """
    Mirrors sink payloads with LPUSH.

    Failures are logged and reported through the return value, never raised:
    the sink stays best-effort whether or not Redis is reachable.
    """

    def __init__(self, config: Info, queue: str = SINK_QUEUE):
        self.redis_host = config.redis_host
        self.redis_port = config.redis_port
        self.redis_db = config.redis_db
        self.redis_password = config.redis_password
        self.queue = queue

        self._client: Optional[redis.Redis] = None
        self._connected = False

    def connect(self) -> bool:
        """
        Connect to Redis server with authentication.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            self._client = redis.Redis(
                host=self.redis_host,
                port=self.redis_port,
                db=self.redis_db,
                password=self.redis_password,
                decode_responses=False,
                socket_connect_timeout=5,
                socket_timeout=5
            )

            self._client.ping()
            self._connected = True
            output.info(f"[Broker] Mirroring sink to Redis at {self.redis_host}:{self.redis_port}")
            return True

        except redis.RedisError as e:
            output.error(f"[Broker] Failed to connect to Redis: {e}")
            self._connected = False
            return False

    def disconnect(self):
        """Disconnect from Redis server"""
        if self._client:
            try:
                self._client.close()
            except redis.RedisError as e:
                output.debug(f"[Broker] Redis close failed: {e}")
            finally:
                self._connected = False
                self._client = None

    def _encode(self, payload: bytes) -> bytes:
        message = {
            "service": "broker",
            "timestamp": datetime.now().isoformat(),
            "message": payload.decode("utf-8", errors="replace"),
        }
        return base64.b64encode(json.dumps(message).encode("utf-8"))

    def mirror(self, payload: bytes) -> bool:
        """
        Push one sink payload to the Redis list.

        Args:
            payload: Raw bytes received on the sink

        Returns:
            True if successful, False otherwise
        """
        if not self._connected and not self.connect():
            return False

        try:
            self._client.lpush(self.queue, self._encode(payload))
            return True

        except redis.ConnectionError as e:
            # Try reconnect once
            output.warning(f"[Broker] Redis connection lost ({e}), reconnecting...")
            self._connected = False
            if not self.connect():
                return False
            try:
                self._client.lpush(self.queue, self._encode(payload))
                return True
            except redis.RedisError as e2:
                output.error(f"[Broker] Sink mirror failed after reconnect: {e2}")
                return False

        except redis.RedisError as e:
            output.error(f"[Broker] Sink mirror failed: {e}")
            return False
