import os
import time
from typing import Optional

import psutil
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Process health reported by brokers and workers"""
    status: str = Field(..., description="Component status")
    role: str = Field(..., description="broker or service name")
    pid: int = Field(..., description="Process ID")
    rss_bytes: int = Field(..., description="Resident memory")
    cpu_percent: float = Field(..., description="CPU usage since last sample")
    threads: int = Field(..., description="OS threads in the process")
    uptime_seconds: float = Field(..., description="Seconds since process start")
    services: Optional[int] = Field(None, description="Registered services (broker only)")
    address: Optional[str] = Field(None, description="Allocated stream address (workers only)")


_process = psutil.Process(os.getpid())


def process_health(status: str, role: str, services: Optional[int] = None,
                   address: Optional[str] = None) -> HealthResponse:
    """Sample this process with psutil"""
    with _process.oneshot():
        rss = _process.memory_info().rss
        cpu = _process.cpu_percent(interval=None)
        threads = _process.num_threads()
        started = _process.create_time()

    return HealthResponse(
        status=status,
        role=role,
        pid=_process.pid,
        rss_bytes=rss,
        cpu_percent=cpu,
        threads=threads,
        uptime_seconds=round(time.time() - started, 3),
        services=services,
        address=address,
    )
