from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .info import Info, info as default_info
from .output import output


class RegistryEntry(BaseModel):
    """One registered service"""
    service_name: str = Field(..., description="Registered service name")
    identity: int = Field(..., description="Broker-allocated identity")
    address: str = Field(..., description="Allocated stream address")
    registered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ServiceRegistry:
    """
    Service name -> allocated stream address.

    Identity allocation and the upsert happen in one critical section, so
    concurrent registrations always observe distinct, strictly increasing
    identities.
    """

    def __init__(self, config: Optional[Info] = None):
        self.info = config or default_info
        self._lock = Lock()
        self._next_identity = self.info.first_identity
        self._routes: Dict[str, RegistryEntry] = {}

    def allocate(self, service_name: str) -> RegistryEntry:
        """Allocate a new identity/address for a service, replacing any previous mapping"""
        with self._lock:
            identity = self._next_identity
            self._next_identity += 1

            entry = RegistryEntry(
                service_name=service_name,
                identity=identity,
                address=self.info.stream_address(identity),
            )
            previous = self._routes.get(service_name)
            self._routes[service_name] = entry

        if previous is not None:
            output.warning(f"[Broker] Service '{service_name}' re-registered; "
                           f"orphaned {previous.address} (ID: {previous.identity})")
        return entry

    def lookup(self, service_name: str) -> Optional[RegistryEntry]:
        with self._lock:
            return self._routes.get(service_name)

    def entries(self) -> List[RegistryEntry]:
        with self._lock:
            return sorted(self._routes.values(), key=lambda e: e.identity)

    @property
    def next_identity(self) -> int:
        with self._lock:
            return self._next_identity

    def __len__(self) -> int:
        with self._lock:
            return len(self._routes)
