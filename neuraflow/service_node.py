"""
Service Node - lifecycle wrapper for NeuraFlow workers
Registers with the broker, binds the allocated stream address and exposes
the worker's control endpoint; the worker only supplies initialize/process
"""

from threading import Event, Lock
from typing import Callable, Optional, Protocol, Union, runtime_checkable

from .health import process_health
from .info import Info, info as default_info
from .ipc import IPCNode
from .output import output


@runtime_checkable
class ServiceWorker(Protocol):
    """Capabilities a concrete worker provides to its ServiceNode"""

    def initialize(self, config: bytes) -> bool:
        """Handle the "init" control call; True replies OK, False replies FAIL"""
        ...

    def process(self, payload: bytes) -> None:
        """Handle one stream message on the ingestion thread"""
        ...


class StreamEmitter:
    """Pushes worker output downstream (the broker's default sink unless told otherwise)"""

    def __init__(self, address: Optional[str] = None, config: Optional[Info] = None):
        self.info = config or default_info
        self.address = address or self.info.broker_sink
        self._ipc = IPCNode(self.info)

    def emit(self, data: Union[bytes, str]):
        self._ipc.push_stream(self.address, data)

    __call__ = emit

    def close(self):
        self._ipc.close()


class RegistrationState:
    DISCONNECTED = "disconnected"
    ATTEMPTING = "attempting"
    REGISTERED = "registered"
    STOPPED = "stopped"


class Registration:
    """
    Retry-until-registered state machine:
    disconnected -> attempting -> registered, or stopped once cancelled.

    There is no attempt cap; a failed attempt waits ``retry_interval``
    seconds before the next one.
    """

    def __init__(self, service_name: str, config: Optional[Info] = None,
                 call: Callable[..., bytes] = IPCNode.call):
        self.service_name = service_name
        self.info = config or default_info
        self.state = RegistrationState.DISCONNECTED
        self.address: Optional[str] = None
        self.attempts = 0
        self._call = call
        self._cancelled = Event()

    def attempt(self) -> bool:
        """One register call; True once the reply is an allocated stream address"""
        self.state = RegistrationState.ATTEMPTING
        self.attempts += 1

        reply = self._call(self.info.broker_rpc, "register", self.service_name,
                           timeout=self.info.register_timeout)
        text = reply.decode("utf-8", errors="replace")

        if self.info.is_stream_address(text):
            self.address = text
            self.state = RegistrationState.REGISTERED
            output.info(f"[{self.service_name}] Registration Successful!")
            output.info(f"[{self.service_name}] My Stream Address: {self.address}")
            return True

        self.state = RegistrationState.DISCONNECTED
        if "ERROR" not in text:
            output.error(f"[{self.service_name}] Broker allocated {text} outside stream prefix "
                         f"{self.info.stream_prefix}; check --stream-prefix")
        output.warning(f"[{self.service_name}] Registration failed ({text}), "
                       f"retrying in {self.info.retry_interval}s...")
        return False

    def run(self) -> bool:
        """Attempt until registered; returns False only when cancelled"""
        output.info(f"[{self.service_name}] Connecting to Broker at {self.info.broker_rpc}...")
        while not self._cancelled.is_set():
            if self.attempt():
                return True
            if self._cancelled.wait(self.info.retry_interval):
                break
        self.state = RegistrationState.STOPPED
        return False

    def cancel(self):
        self._cancelled.set()


class ServiceNode:
    """
    Hosts one ServiceWorker.

    start() blocks until the broker answers, then binds the stream receiver
    (payloads go to ``worker.process``) and the control server with the
    "init" and "status" actions at ``info.control_address_for(address)``.
    """

    def __init__(self, worker: ServiceWorker, service_name: Optional[str] = None,
                 config: Optional[Info] = None):
        if not isinstance(worker, ServiceWorker):
            raise TypeError(f"{type(worker).__name__} does not implement initialize/process")

        self.worker = worker
        self.service_name = service_name or getattr(worker, "service_name", None)
        if not self.service_name:
            raise ValueError("A service name is required")

        self.info = config or default_info
        self.registration = Registration(self.service_name, self.info)
        self.control_address: Optional[str] = None

        self._ipc = IPCNode(self.info)
        self._lock = Lock()
        self._started = False
        self._shutdown = Event()

    @property
    def address(self) -> Optional[str]:
        return self.registration.address

    def start(self) -> bool:
        """Register and bind; returns False if stopped before registration completed"""
        output.info(f"[{self.service_name}] Starting...")
        if not self.registration.run():
            return False

        with self._lock:
            if self._shutdown.is_set():
                return False
            self._ipc.register_rpc("init", self._rpc_init)
            self._ipc.register_rpc("status", self._rpc_status)
            self._ipc.start_stream_receiver(self.address, self.worker.process)
            self.control_address = self.info.control_address_for(self.address)
            self._ipc.start_rpc_server(self.control_address)
            self._started = True
        return True

    def run(self):
        """Start (if needed) and block until stop()"""
        if not self._started and not self.start():
            return
        output.info(f"[{self.service_name}] Running. Press Ctrl+C to stop.")
        self._shutdown.wait()

    def stop(self):
        self.registration.cancel()
        with self._lock:
            if self._shutdown.is_set():
                return
            self._shutdown.set()
            self._ipc.close()
        output.info(f"[{self.service_name}] Stopped.")

    def emit(self, data: Union[bytes, str]):
        """Send output to the broker's default sink"""
        self._ipc.push_stream(self.info.broker_sink, data)

    def _rpc_init(self, config: bytes) -> str:
        output.info(f"[{self.service_name}] Received INIT command.")
        return "OK" if self.worker.initialize(config) else "FAIL"

    def _rpc_status(self, data: bytes) -> str:
        status = "healthy" if self._started else self.registration.state
        return process_health(status, self.service_name, address=self.address).model_dump_json()
