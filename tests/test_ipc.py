"""Tests for the IPC node: control server/client and stream receiver/sender."""

import time

import pytest

from neuraflow.info import Info
from neuraflow.ipc import IPCNode, RpcError, RpcResult

PROMPT = b"Hello AI, who are you?"


class TestControlPlane:

    @pytest.fixture
    def server(self, node: IPCNode, config: Info) -> IPCNode:
        node.start_rpc_server(config.broker_rpc)
        return node

    def test_unknown_action_and_server_keeps_serving(self, server: IPCNode, config: Info) -> None:
        server.register_rpc("ping", lambda data: b"pong")

        assert IPCNode.call(config.broker_rpc, "no-such-action", b"x") == b"ERROR: Action not found"
        assert IPCNode.call(config.broker_rpc, "ping") == b"pong"
        assert IPCNode.call(config.broker_rpc, "other-missing") == b"ERROR: Action not found"

    def test_init_round_trip(self, server: IPCNode, config: Info) -> None:
        server.register_rpc("init", lambda cfg: "OK" if cfg == b"cfg-ok" else "FAIL")

        assert IPCNode.call(config.broker_rpc, "init", b"cfg-ok") == b"OK"
        assert IPCNode.call(config.broker_rpc, "init", b"cfg-bad") == b"FAIL"

    def test_payload_passed_unmodified(self, server: IPCNode, config: Info) -> None:
        received = []

        def handler(data: bytes) -> bytes:
            received.append(data)
            return data[::-1]

        server.register_rpc("reverse", handler)
        payload = bytes(range(256))

        assert IPCNode.call(config.broker_rpc, "reverse", payload) == payload[::-1]
        assert IPCNode.call(config.broker_rpc, "reverse") == b""
        assert received == [payload, b""]

    def test_register_rpc_replaces_handler(self, server: IPCNode, config: Info) -> None:
        server.register_rpc("version", lambda data: b"1")
        server.register_rpc("version", lambda data: b"2")

        assert IPCNode.call(config.broker_rpc, "version") == b"2"

    def test_handler_failure_replies_error_and_keeps_serving(self, server: IPCNode, config: Info) -> None:
        def broken(data: bytes) -> bytes:
            raise ValueError("boom")

        server.register_rpc("broken", broken)
        server.register_rpc("ping", lambda data: b"pong")

        assert IPCNode.call(config.broker_rpc, "broken") == b"ERROR: Handler failed"
        assert IPCNode.call(config.broker_rpc, "ping") == b"pong"

    @pytest.mark.parametrize("returned", [None, 42, {"reply": "ok"}])
    def test_non_bytes_reply_is_handler_failure(self, server: IPCNode, config: Info, returned) -> None:
        server.register_rpc("noop", lambda data: returned)
        server.register_rpc("ping", lambda data: b"pong")

        assert IPCNode.call(config.broker_rpc, "noop", timeout=5.0) == b"ERROR: Handler failed"
        assert IPCNode.call(config.broker_rpc, "ping", timeout=5.0) == b"pong"

    def test_call_result_success(self, server: IPCNode, config: Info) -> None:
        server.register_rpc("ping", lambda data: b"pong")

        result = IPCNode.call_result(config.broker_rpc, "ping")
        assert result.ok
        assert result.error is None
        assert result.text == "pong"

    def test_second_rpc_server_rejected(self, server: IPCNode, ipc_dir: str) -> None:
        with pytest.raises(RuntimeError):
            server.start_rpc_server(f"ipc://{ipc_dir}/other")


class TestClientFailures:

    def test_connect_failure_returns_sentinel(self) -> None:
        assert IPCNode.call("bogus://nowhere", "register", b"svc") == b"ERROR: Connect failed"

    def test_receive_timeout_returns_sentinel(self, ipc_dir: str) -> None:
        started = time.monotonic()
        reply = IPCNode.call(f"ipc://{ipc_dir}/nobody-home", "register", b"svc", timeout=0.2)

        assert reply == b"ERROR: Recv failed"
        assert time.monotonic() - started < 2.0

    def test_call_result_classifies_transport_failure(self) -> None:
        result = IPCNode.call_result("bogus://nowhere", "register")

        assert not result.ok
        assert result.error == RpcError.CONNECT_FAILED


class TestRpcResult:

    @pytest.mark.parametrize("reply, kind", [
        (b"ERROR: Connect failed", RpcError.CONNECT_FAILED),
        (b"ERROR: Recv failed", RpcError.RECV_FAILED),
        (b"ERROR: Action not found", RpcError.ACTION_NOT_FOUND),
        (b"ERROR: Handler failed", RpcError.HANDLER_FAILED),
        (b"ERROR: Service not found", RpcError.REMOTE),
    ])
    def test_error_kinds(self, reply: bytes, kind: str) -> None:
        result = RpcResult.from_reply(reply)

        assert not result.ok
        assert result.error == kind
        assert result.payload == reply

    def test_error_anywhere_in_reply_is_failure(self) -> None:
        result = RpcResult.from_reply(b"model said ERROR twice")

        assert not result.ok
        assert result.error == RpcError.REMOTE

    def test_plain_reply_is_success(self) -> None:
        result = RpcResult.from_reply(b"ipc:///tmp/neura.stream.100")

        assert result.ok
        assert result.message is None


class TestDataPlane:

    def test_stream_delivery_integrity(self, node: IPCNode, config: Info, wait_until) -> None:
        received = []
        node.start_stream_receiver(config.broker_sink, received.append)

        sender = IPCNode(config)
        try:
            sender.push_stream(config.broker_sink, PROMPT)
        finally:
            sender.close()

        assert wait_until(lambda: len(received) >= 1)
        time.sleep(0.1)
        assert received == [PROMPT]

    def test_single_sender_order_preserved(self, node: IPCNode, config: Info, wait_until) -> None:
        received = []
        node.start_stream_receiver(config.broker_sink, received.append)

        sender = IPCNode(config)
        try:
            for i in range(20):
                sender.push_stream(config.broker_sink, f"token-{i}")
        finally:
            sender.close()

        assert wait_until(lambda: len(received) == 20)
        assert received == [f"token-{i}".encode() for i in range(20)]

    def test_one_mebibyte_message(self, node: IPCNode, config: Info, wait_until) -> None:
        received = []
        node.start_stream_receiver(config.broker_sink, received.append)
        payload = b"x" * (1024 * 1024)

        sender = IPCNode(config)
        try:
            sender.push_stream(config.broker_sink, payload)
        finally:
            sender.close()

        assert wait_until(lambda: len(received) == 1)
        assert received[0] == payload

    def test_oversized_message_dropped(self, ipc_dir: str, config: Info, wait_until) -> None:
        small = Info(max_message_size=1024, poll_interval=0.02, push_linger=500)
        receiver = IPCNode(small)
        received = []
        receiver.start_stream_receiver(config.broker_sink, received.append)

        sender = IPCNode(config)
        try:
            sender.push_stream(config.broker_sink, b"y" * 4096)
            sender.push_stream(config.broker_sink, b"small")
        finally:
            sender.close()

        try:
            assert wait_until(lambda: b"small" in received)
            assert received == [b"small"]
        finally:
            receiver.close()

    def test_callback_failure_does_not_stop_ingestion(self, node: IPCNode, config: Info, wait_until) -> None:
        received = []

        def callback(data: bytes) -> None:
            if data == b"bad":
                raise RuntimeError("cannot handle")
            received.append(data)

        node.start_stream_receiver(config.broker_sink, callback)

        sender = IPCNode(config)
        try:
            sender.push_stream(config.broker_sink, b"bad")
            sender.push_stream(config.broker_sink, b"good")
        finally:
            sender.close()

        assert wait_until(lambda: received == [b"good"])

    def test_push_without_receiver_does_not_block(self, config: Info, ipc_dir: str) -> None:
        sender = IPCNode(config)
        started = time.monotonic()
        sender.push_stream(f"ipc://{ipc_dir}/nobody-home", b"lost")
        sender.close()

        assert time.monotonic() - started < 3.0

    def test_second_stream_receiver_rejected(self, node: IPCNode, config: Info, ipc_dir: str) -> None:
        node.start_stream_receiver(config.broker_sink, lambda data: None)
        with pytest.raises(RuntimeError):
            node.start_stream_receiver(f"ipc://{ipc_dir}/other", lambda data: None)


class TestLifecycle:

    def test_bind_failure_terminates(self, node: IPCNode) -> None:
        with pytest.raises(SystemExit) as exc:
            node.start_rpc_server("bogus://not-an-endpoint")
        assert exc.value.code == 1

    def test_stream_bind_failure_terminates(self, node: IPCNode) -> None:
        with pytest.raises(SystemExit):
            node.start_stream_receiver("bogus://not-an-endpoint", lambda data: None)

    def test_closed_node_rejects_use(self, config: Info) -> None:
        ipc = IPCNode(config)
        ipc.close()
        ipc.close()

        with pytest.raises(RuntimeError):
            ipc.push_stream(config.broker_sink, b"data")
        with pytest.raises(RuntimeError):
            ipc.start_rpc_server(config.broker_rpc)

    def test_close_stops_service_threads(self, config: Info) -> None:
        ipc = IPCNode(config)
        ipc.start_rpc_server(config.broker_rpc)
        ipc.start_stream_receiver(config.broker_sink, lambda data: None)
        threads = [ipc._rpc_thread, ipc._stream_thread]

        ipc.close()

        assert not any(t.is_alive() for t in threads)
