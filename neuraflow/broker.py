"""
NeuraFlow Service Broker
Allocates stream addresses to registering services and hosts the default data sink
"""

import json
from threading import Event, Lock
from typing import Callable, List, Optional

from .health import HealthResponse, process_health
from .info import Info, info as default_info
from .ipc import IPCNode
from .output import output
from .redis_sink import RedisSinkMirror
from .registry import RegistryEntry, ServiceRegistry

SERVICE_NOT_FOUND = "ERROR: Service not found"


class BrokerState:
    STARTING = "starting"
    LISTENING = "listening"
    STOPPED = "stopped"


class ServiceBroker:
    """
    Singleton control-plane server of a NeuraFlow deployment.

    Control actions on ``info.broker_rpc``:
        register  service name -> allocated stream address
        lookup    service name -> stream address or "ERROR: Service not found"
        list      JSON array of registry entries
        status    JSON process health
    """

    def __init__(self, config: Optional[Info] = None):
        self.info = config or default_info
        self.registry = ServiceRegistry(self.info)
        self.state = BrokerState.STARTING

        self._ipc = IPCNode(self.info)
        self._shutdown = Event()
        self._sink_listeners: List[Callable[[bytes], None]] = []
        self._sink_lock = Lock()
        self._sink_mirror: Optional[RedisSinkMirror] = None
        if self.info.redis_host:
            self._sink_mirror = RedisSinkMirror(self.info)

    def start(self):
        """Bind the registry RPC endpoint and the default sink; bind failures exit the process"""
        self._ipc.register_rpc("register", self._rpc_register)
        self._ipc.register_rpc("lookup", self._rpc_lookup)
        self._ipc.register_rpc("list", self._rpc_list)
        self._ipc.register_rpc("status", self._rpc_status)
        self._ipc.start_rpc_server(self.info.broker_rpc)

        self._ipc.start_stream_receiver(self.info.broker_sink, self._on_sink_data)

        if self._sink_mirror:
            self._sink_mirror.connect()

        self.state = BrokerState.LISTENING
        output.info("[Broker] System Started.")
        output.info(f"   - RPC Registry: {self.info.broker_rpc}")
        output.info(f"   - Data Sink   : {self.info.broker_sink}")

    def run(self):
        """Start and block until stop() is called"""
        if self.state == BrokerState.STARTING:
            self.start()
        self._shutdown.wait()

    def stop(self):
        if self.state == BrokerState.STOPPED:
            return
        self._shutdown.set()
        self._ipc.close()
        if self._sink_mirror:
            self._sink_mirror.disconnect()
        self.state = BrokerState.STOPPED
        output.info("[Broker] Stopped.")

    # ================= Registration =================

    def handle_registration(self, service_name: str) -> str:
        """Allocate the next identity for a service and return its stream address"""
        entry = self.registry.allocate(service_name)
        output.info(f"[Broker] New Service Registered: {service_name} (ID: {entry.identity})")
        output.info(f"         -> Assigned Address: {entry.address}")
        return entry.address

    def lookup(self, service_name: str) -> Optional[RegistryEntry]:
        return self.registry.lookup(service_name)

    def health(self) -> HealthResponse:
        status = "healthy" if self.state == BrokerState.LISTENING else self.state
        return process_health(status, "broker", services=len(self.registry))

    def _rpc_register(self, data: bytes) -> str:
        return self.handle_registration(data.decode("utf-8", errors="replace"))

    def _rpc_lookup(self, data: bytes) -> str:
        entry = self.lookup(data.decode("utf-8", errors="replace"))
        return entry.address if entry else SERVICE_NOT_FOUND

    def _rpc_list(self, data: bytes) -> str:
        return json.dumps([entry.model_dump(mode="json") for entry in self.registry.entries()])

    def _rpc_status(self, data: bytes) -> str:
        return self.health().model_dump_json()

    # ================= Default sink =================

    def add_sink_listener(self, listener: Callable[[bytes], None]):
        """Observe every payload arriving on the default sink"""
        with self._sink_lock:
            self._sink_listeners.append(listener)

    def _on_sink_data(self, data: bytes):
        output.info(f"[Broker] Received Data Stream: {data.decode('utf-8', errors='replace')}")
        if self._sink_mirror:
            self._sink_mirror.mirror(data)
        with self._sink_lock:
            listeners = list(self._sink_listeners)
        for listener in listeners:
            try:
                listener(data)
            except Exception as e:
                output.error(f"[Broker] Sink listener {getattr(listener, '__name__', listener)} failed: {e}")
