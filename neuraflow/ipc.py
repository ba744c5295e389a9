"""
IPC Node - ZeroMQ transport shared by the broker and every worker

Control plane: REP server + stateless REQ client (action frame, payload frame, one reply)
Data plane:    PULL receiver + fire-and-forget PUSH sender (one raw frame per message)
"""

import sys
from threading import Lock, Thread
from typing import Callable, Dict, Optional, Union

import zmq
from pydantic import BaseModel, Field

from .info import Info, info as default_info
from .output import output

RpcCallback = Callable[[bytes], Union[bytes, str]]
StreamCallback = Callable[[bytes], None]

ERROR_MARKER = b"ERROR"


class RpcError:
    """Error kinds carried in sentinel replies ("ERROR: <kind>")"""
    CONNECT_FAILED = "Connect failed"
    RECV_FAILED = "Recv failed"
    ACTION_NOT_FOUND = "Action not found"
    HANDLER_FAILED = "Handler failed"
    REMOTE = "Remote error"

    _known = (CONNECT_FAILED, RECV_FAILED, ACTION_NOT_FOUND, HANDLER_FAILED)

    @classmethod
    def reply(cls, kind: str) -> bytes:
        return f"ERROR: {kind}".encode("utf-8")


class RpcResult(BaseModel):
    """Typed view of a control reply; the wire format is unchanged"""
    ok: bool = Field(..., description="True when the reply carries no ERROR sentinel")
    error: Optional[str] = Field(None, description="Error kind, see RpcError")
    message: Optional[str] = Field(None, description="Sentinel text after 'ERROR: '")
    payload: bytes = Field(b"", description="Raw reply bytes")

    @classmethod
    def from_reply(cls, reply: bytes) -> "RpcResult":
        if ERROR_MARKER not in reply:
            return cls(ok=True, payload=reply)

        text = reply.decode("utf-8", errors="replace")
        message = text.split("ERROR: ", 1)[1] if "ERROR: " in text else text
        kind = RpcError.REMOTE
        for known in RpcError._known:
            if message.startswith(known):
                kind = known
                break
        return cls(ok=False, error=kind, message=message, payload=reply)

    @property
    def text(self) -> str:
        return self.payload.decode("utf-8", errors="replace")


class IPCNode:
    """
    One ZeroMQ context plus at most one control server and one stream
    receiver, each serviced by its own thread.
    """

    def __init__(self, config: Optional[Info] = None):
        self.info = config or default_info
        self._context = zmq.Context()
        self._running = False
        self._closed = False

        self._rpc_socket = None
        self._rpc_address: Optional[str] = None
        self._rpc_thread: Optional[Thread] = None
        self._rpc_map: Dict[str, RpcCallback] = {}
        self._map_lock = Lock()

        self._stream_socket = None
        self._stream_address: Optional[str] = None
        self._stream_thread: Optional[Thread] = None
        self._stream_cb: Optional[StreamCallback] = None

    @property
    def rpc_address(self) -> Optional[str]:
        return self._rpc_address

    @property
    def stream_address(self) -> Optional[str]:
        return self._stream_address

    @property
    def _poll_ms(self) -> int:
        return max(1, int(self.info.poll_interval * 1000))

    def _check_open(self):
        if self._closed:
            raise RuntimeError("IPC node is closed")

    def _bind(self, socket_type: int, address: str, label: str):
        """Create and bind a socket; a bind failure terminates the process"""
        sock = self._context.socket(socket_type)
        try:
            if socket_type == zmq.PULL and self.info.max_message_size:
                sock.setsockopt(zmq.MAXMSGSIZE, self.info.max_message_size)
            sock.bind(address)
        except zmq.ZMQError as e:
            sock.close(linger=0)
            output.critical(f"[IPC] {label} bind failed: {address} ({e})")
            sys.exit(1)
        return sock

    # ================= RPC server =================

    def start_rpc_server(self, address: str):
        """Bind a REP endpoint and start its service thread"""
        self._check_open()
        if self._rpc_socket is not None:
            raise RuntimeError(f"RPC server already listening on {self._rpc_address}")

        self._rpc_socket = self._bind(zmq.REP, address, "RPC")
        self._rpc_address = address
        self._running = True
        self._rpc_thread = Thread(target=self._rpc_loop, name=f"rpc:{address}", daemon=True)
        self._rpc_thread.start()
        output.info(f"[IPC] RPC server listening on {address}")

    def register_rpc(self, action: str, callback: RpcCallback):
        """Install (or replace) the handler for an action"""
        with self._map_lock:
            if action in self._rpc_map:
                output.debug(f"[IPC] Replacing RPC handler for '{action}'")
            self._rpc_map[action] = callback

    def _dispatch(self, action: str, data: bytes) -> bytes:
        with self._map_lock:
            callback = self._rpc_map.get(action)

        if callback is None:
            output.warning(f"[IPC] Unknown RPC action '{action}'")
            return RpcError.reply(RpcError.ACTION_NOT_FOUND)

        try:
            response = callback(data)
        except Exception as e:
            output.error(f"[IPC] RPC handler '{action}' failed: {e}")
            return RpcError.reply(RpcError.HANDLER_FAILED)

        if isinstance(response, str):
            response = response.encode("utf-8")
        if not isinstance(response, bytes):
            output.error(f"[IPC] RPC handler '{action}' returned {type(response).__name__}, expected bytes or str")
            return RpcError.reply(RpcError.HANDLER_FAILED)
        return response

    def _rpc_loop(self):
        sock = self._rpc_socket
        while self._running:
            try:
                if not sock.poll(self._poll_ms, zmq.POLLIN):
                    continue
                frames = sock.recv_multipart()
            except zmq.ZMQError as e:
                if self._running:
                    output.error(f"[IPC] RPC receive error on {self._rpc_address}: {e}")
                break

            action = frames[0].decode("utf-8", errors="replace")
            data = frames[1] if len(frames) > 1 else b""
            response = self._dispatch(action, data)

            try:
                sock.send(response)
            except zmq.ZMQError as e:
                output.error(f"[IPC] RPC reply for '{action}' failed: {e}")
                break

    # ================= RPC client =================

    @staticmethod
    def call(address: str, action: str, data: Union[bytes, str] = b"",
             timeout: Optional[float] = None) -> bytes:
        """
        One request/reply exchange on a fresh REQ connection.

        Never raises on transport failure: returns ``ERROR: Connect failed``
        or ``ERROR: Recv failed`` instead. ``timeout`` (seconds) bounds the
        wait for the reply; ``None`` waits indefinitely.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        ctx = zmq.Context()
        sock = ctx.socket(zmq.REQ)
        try:
            try:
                sock.connect(address)
            except zmq.ZMQError as e:
                output.debug(f"[IPC] Connect to {address} failed: {e}")
                return RpcError.reply(RpcError.CONNECT_FAILED)

            try:
                sock.send_multipart([action.encode("utf-8"), data])
                if timeout is not None and not sock.poll(int(timeout * 1000), zmq.POLLIN):
                    return RpcError.reply(RpcError.RECV_FAILED)
                return sock.recv()
            except zmq.ZMQError as e:
                output.debug(f"[IPC] Call '{action}' to {address} failed: {e}")
                return RpcError.reply(RpcError.RECV_FAILED)
        finally:
            sock.close(linger=0)
            ctx.term()

    @staticmethod
    def call_result(address: str, action: str, data: Union[bytes, str] = b"",
                    timeout: Optional[float] = None) -> RpcResult:
        """Same exchange as call(), classified into an RpcResult"""
        return RpcResult.from_reply(IPCNode.call(address, action, data, timeout=timeout))

    # ================= Stream receiver =================

    def start_stream_receiver(self, address: str, callback: StreamCallback):
        """Bind a PULL endpoint; callback runs on the ingestion thread"""
        self._check_open()
        if self._stream_socket is not None:
            raise RuntimeError(f"Stream receiver already listening on {self._stream_address}")

        self._stream_socket = self._bind(zmq.PULL, address, "Stream")
        self._stream_address = address
        self._stream_cb = callback
        self._running = True
        self._stream_thread = Thread(target=self._stream_loop, name=f"stream:{address}", daemon=True)
        self._stream_thread.start()
        output.info(f"[IPC] Stream receiver listening on {address}")

    def _stream_loop(self):
        sock = self._stream_socket
        while self._running:
            try:
                if not sock.poll(self._poll_ms, zmq.POLLIN):
                    continue
                data = sock.recv()
            except zmq.ZMQError as e:
                if self._running:
                    output.error(f"[IPC] Stream receive error on {self._stream_address}: {e}")
                break

            try:
                self._stream_cb(data)
            except Exception as e:
                output.error(f"[IPC] Stream callback on {self._stream_address} failed: {e}")

    # ================= Stream sender =================

    def push_stream(self, address: str, data: Union[bytes, str]):
        """Fire-and-forget: connect, send one frame, close"""
        self._check_open()
        if isinstance(data, str):
            data = data.encode("utf-8")

        sock = self._context.socket(zmq.PUSH)
        try:
            sock.connect(address)
            sock.send(data)
        except zmq.ZMQError as e:
            output.warning(f"[IPC] Push to {address} dropped: {e}")
        finally:
            # Pending data is flushed in the background for up to push_linger ms
            sock.close(linger=self.info.push_linger)

    # ================= Shutdown =================

    def close(self):
        """Stop the service threads and release every socket"""
        if self._closed:
            return
        self._running = False
        for thread in (self._rpc_thread, self._stream_thread):
            if thread is not None and thread.is_alive():
                thread.join()
        for sock in (self._rpc_socket, self._stream_socket):
            if sock is not None:
                sock.close(linger=0)
        self._context.term()
        self._closed = True
