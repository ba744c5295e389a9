"""
Broker admin HTTP API
Read-only view of the registry and broker health, served by uvicorn
"""

from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException

from .broker import ServiceBroker
from .health import HealthResponse
from .info import info
from .output import output, log_config
from .registry import RegistryEntry

# Broker instance served by the API (set by run_api)
broker: Optional[ServiceBroker] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan handler"""
    if broker is None:
        raise RuntimeError("Broker not initialized")

    output.info(f"[API] Broker admin API v{info.version} started")
    yield
    output.info("[API] Broker admin API shutting down")


app = FastAPI(
    title="NeuraFlow Broker",
    description="Service registry of a NeuraFlow broker",
    version=info.version,
    lifespan=lifespan
)


@app.get("/")
def get_root():
    """Root endpoint - API information."""
    return {
        "message": info.name + " broker API",
        "version": info.version,
        "rpc": broker.info.broker_rpc,
        "sink": broker.info.broker_sink,
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "services": "/api/services/"
        }
    }


@app.get("/health", response_model=HealthResponse)
def get_health():
    """Broker process health"""
    return broker.health()


@app.get("/api/services", response_model=List[RegistryEntry], tags=["services"])
def get_services():
    """All registered services, oldest identity first"""
    return broker.registry.entries()


@app.get("/api/services/{service_name}", response_model=RegistryEntry, tags=["services"])
def get_service(service_name: str):
    """Current registration of one service"""
    entry = broker.lookup(service_name)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Service {service_name} not registered")
    return entry


def run_api(broker_instance: ServiceBroker, host: str = "127.0.0.1", port: int = 8600):
    """Serve the admin API for a started broker (blocks)"""
    global broker
    broker = broker_instance

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
        access_log=False,
        log_config=log_config
    )
