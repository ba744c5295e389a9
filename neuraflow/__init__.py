"""
NeuraFlow - ZeroMQ service broker and worker lifecycle SDK
Workers register a service name, receive a stream address, and exchange
control calls and data streams over IPC
"""

__version__ = "0.4.0"
__author__ = "NeuraFlow Team"
__description__ = "NeuraFlow - ZeroMQ service broker + worker lifecycle nodes"

from .ipc import IPCNode, RpcResult
from .broker import ServiceBroker
from .service_node import ServiceNode, ServiceWorker, StreamEmitter

__all__ = [
    "IPCNode",
    "RpcResult",
    "ServiceBroker",
    "ServiceNode",
    "ServiceWorker",
    "StreamEmitter",
]
