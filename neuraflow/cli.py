#!/usr/bin/env python3
"""
NeuraFlow CLI Interface
Entry points for the broker process and the demo LLM worker process
"""

import argparse
import signal
import sys

from . import __version__
from .broker import ServiceBroker
from .info import info
from .output import output, setup_logging
from .service_node import ServiceNode, StreamEmitter
from .workers import LLMWorker


def _add_common_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--broker-rpc",
        default=info.broker_rpc,
        help=f"Broker control address (default: {info.broker_rpc})"
    )

    parser.add_argument(
        "--broker-sink",
        default=info.broker_sink,
        help=f"Broker default sink address (default: {info.broker_sink})"
    )

    parser.add_argument(
        "--stream-prefix",
        default=info.stream_prefix,
        help=f"Prefix of allocated worker stream addresses (default: {info.stream_prefix})"
    )

    parser.add_argument(
        "--control-prefix",
        default=info.control_prefix,
        help=f"Prefix of worker control addresses (default: {info.control_prefix})"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"NeuraFlow v{__version__}"
    )


def _apply_common_arguments(args):
    setup_logging(args.debug)
    info.broker_rpc = args.broker_rpc
    info.broker_sink = args.broker_sink
    # Brokers and workers must agree on both prefixes for registration to succeed
    info.stream_prefix = args.stream_prefix
    info.control_prefix = args.control_prefix


def _stop_on_signals(stop):
    def signal_handler(signum, frame):
        output.info(f"Received signal {signum}, shutting down...")
        stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def broker_main():
    """Broker process entry point"""
    parser = argparse.ArgumentParser(
        description="NeuraFlow Service Broker - service registry and default data sink",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  neuraflow-broker
  neuraflow-broker --api-port 8600
  neuraflow-broker --broker-rpc ipc:///run/neura.rpc.broker --stream-prefix ipc:///run/neura.stream
        """
    )
    _add_common_arguments(parser)

    parser.add_argument(
        "--api-host",
        default=info.api_host,
        help=f"Admin API bind address (default: {info.api_host})"
    )

    parser.add_argument(
        "--api-port",
        type=int,
        default=info.api_port,
        help="Admin API port, 0 disables the API (default: %(default)s)"
    )

    args = parser.parse_args()
    _apply_common_arguments(args)

    if args.api_port < 0:
        output.error("api-port must be 0 (disabled) or a valid port")
        sys.exit(1)

    broker = ServiceBroker(info)
    try:
        broker.start()
        if args.api_port:
            # uvicorn owns the main thread and its signal handling
            from .api import run_api
            run_api(broker, host=args.api_host, port=args.api_port)
        else:
            _stop_on_signals(broker.stop)
            broker.run()
    except KeyboardInterrupt:
        output.info("Shutting down broker...")
    finally:
        broker.stop()


def worker_main():
    """Demo LLM worker entry point"""
    parser = argparse.ArgumentParser(
        description="NeuraFlow LLM Worker - simulated token streaming service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  neuraflow-worker
  neuraflow-worker --service-name llm_service_b --retry-interval 5
  neuraflow-worker --broker-rpc ipc:///run/neura.rpc.broker --stream-prefix ipc:///run/neura.stream
        """
    )
    _add_common_arguments(parser)

    parser.add_argument(
        "--service-name",
        default=LLMWorker.service_name,
        help=f"Service name to register (default: {LLMWorker.service_name})"
    )

    parser.add_argument(
        "--retry-interval",
        type=float,
        default=info.retry_interval,
        help="Seconds between registration attempts (default: %(default)s)"
    )

    parser.add_argument(
        "--token-delay",
        type=float,
        default=0.2,
        help="Simulated seconds per generated token (default: %(default)s)"
    )

    args = parser.parse_args()
    _apply_common_arguments(args)

    if args.retry_interval <= 0:
        output.error("retry-interval must be positive")
        sys.exit(1)
    info.retry_interval = args.retry_interval

    emitter = StreamEmitter(config=info)
    worker = LLMWorker(emitter.emit, token_delay=args.token_delay)
    node = ServiceNode(worker, service_name=args.service_name, config=info)
    _stop_on_signals(node.stop)

    try:
        node.run()
    except KeyboardInterrupt:
        output.info("Shutting down worker...")
    finally:
        node.stop()
        emitter.close()


if __name__ == "__main__":
    broker_main()
