"""Shared fixtures: private ipc:// endpoints and fast timings per test."""

import shutil
import tempfile
import time

import pytest

from neuraflow.broker import ServiceBroker
from neuraflow.info import Info
from neuraflow.ipc import IPCNode


@pytest.fixture
def ipc_dir():
    # ipc:// paths are limited to ~107 bytes, so stay out of pytest's deep tmp_path
    path = tempfile.mkdtemp(prefix="nf-", dir="/tmp")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def config(ipc_dir) -> Info:
    return Info(
        broker_rpc=f"ipc://{ipc_dir}/rpc.broker",
        broker_sink=f"ipc://{ipc_dir}/stream.broker",
        stream_prefix=f"ipc://{ipc_dir}/stream",
        control_prefix=f"ipc://{ipc_dir}/rpc",
        first_identity=100,
        retry_interval=0.1,
        register_timeout=0.5,
        poll_interval=0.02,
        push_linger=500,
        max_message_size=1024 * 1024,
        redis_host=None,
        api_port=0,
    )


@pytest.fixture
def node(config):
    ipc = IPCNode(config)
    yield ipc
    ipc.close()


@pytest.fixture
def broker(config):
    instance = ServiceBroker(config)
    instance.start()
    yield instance
    instance.stop()


@pytest.fixture
def wait_until():
    def _wait(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait
