import os
from typing import Optional


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


class Info:
    """
    Process-wide settings for brokers and workers.

    Every value defaults to the reference addressing scheme and can be
    overridden through the environment, or per instance with keyword
    arguments (``Info(retry_interval=0.1)``).
    """

    def __init__(self, **overrides):
        self.name = "neuraflow"
        self.desc = "NeuraFlow service broker"
        from . import __version__
        self.version = __version__

        # Addressing scheme
        self.broker_rpc = os.getenv('NEURA_BROKER_RPC', 'ipc:///tmp/neura.rpc.broker')
        self.broker_sink = os.getenv('NEURA_BROKER_SINK', 'ipc:///tmp/neura.stream.broker')
        self.stream_prefix = os.getenv('NEURA_STREAM_PREFIX', 'ipc:///tmp/neura.stream')
        self.control_prefix = os.getenv('NEURA_CONTROL_PREFIX', 'ipc:///tmp/neura.rpc')
        self.first_identity = _env_int('NEURA_FIRST_IDENTITY', 100)

        # Transport
        self.max_message_size = _env_int('NEURA_MAX_MESSAGE_SIZE', 1024 * 1024)
        self.poll_interval = _env_float('NEURA_POLL_INTERVAL', 0.1)
        self.push_linger = _env_int('NEURA_PUSH_LINGER', 1000)

        # Registration
        self.retry_interval = _env_float('NEURA_RETRY_INTERVAL', 2.0)
        self.register_timeout: Optional[float] = _env_float('NEURA_REGISTER_TIMEOUT', 2.0)

        # Admin API (port 0 disables it)
        self.api_host = os.getenv('NEURA_API_HOST', '127.0.0.1')
        self.api_port = _env_int('NEURA_API_PORT', 0)

        # Sink mirror (disabled unless REDIS_HOST is set)
        self.redis_host: Optional[str] = os.getenv('REDIS_HOST') or None
        self.redis_port = _env_int('REDIS_PORT', 6379)
        self.redis_db = _env_int('REDIS_DB', 0)
        self.redis_password: Optional[str] = os.getenv('REDIS_PASSWORD') or None

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    def stream_address(self, identity: int) -> str:
        """Stream address allocated to a registration identity"""
        return f"{self.stream_prefix}.{identity}"

    def control_address(self, identity: int) -> str:
        """Control address a registered worker binds for its own RPC server"""
        return f"{self.control_prefix}.{identity}"

    def is_stream_address(self, reply: str) -> bool:
        """Check whether a registration reply carries an allocated stream address"""
        prefix = self.stream_prefix + "."
        suffix = reply[len(prefix):]
        return reply.startswith(prefix) and suffix.isascii() and suffix.isdigit()

    def control_address_for(self, stream_address: str) -> str:
        """Derive a worker's control address from its allocated stream address"""
        if not self.is_stream_address(stream_address):
            raise ValueError(f"Not an allocated stream address: {stream_address}")
        identity = stream_address[len(self.stream_prefix) + 1:]
        return self.control_address(int(identity))

info = Info()
