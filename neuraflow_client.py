#!/usr/bin/env python3
"""
NeuraFlow Client Simulator
Plays an external caller: resolve a service, initialize it, push a prompt,
or list the broker's registry.
"""

import argparse
import json
import sys
from typing import Optional

import httpx

from neuraflow.info import info
from neuraflow.ipc import IPCNode
from neuraflow.output import output, setup_logging


def resolve_service(service_name: str, timeout: Optional[float] = None) -> Optional[str]:
    """Ask the broker for a service's stream address"""
    result = IPCNode.call_result(info.broker_rpc, "lookup", service_name, timeout=timeout)
    if not result.ok:
        output.error(f"[Client] Lookup of '{service_name}' failed: {result.message}")
        return None
    return result.text


def send_prompt(service_name: str, prompt: str, init_config: Optional[str] = None,
                timeout: Optional[float] = None) -> int:
    """Resolve, optionally initialize, then push one prompt to the service stream"""
    stream_address = resolve_service(service_name, timeout=timeout)
    if not stream_address:
        return 1

    if init_config is not None:
        try:
            control_address = info.control_address_for(stream_address)
        except ValueError as e:
            output.error(f"[Client] {e} (is --stream-prefix the broker's?)")
            return 1
        output.info(f"[Client] Sending INIT to {control_address}...")
        result = IPCNode.call_result(control_address, "init", init_config, timeout=timeout)
        output.info(f"[Client] INIT reply: {result.text}")
        if not result.ok or result.text != "OK":
            return 1

    output.info(f"[Client] Sending Prompt to {stream_address}...")
    client = IPCNode(info)
    try:
        client.push_stream(stream_address, prompt)
    finally:
        client.close()

    output.info("[Client] Prompt sent! Output arrives on the broker sink.")
    return 0


def list_services(api_url: Optional[str] = None, timeout: Optional[float] = None) -> int:
    """Print the registry, through the admin API when a URL is given"""
    if api_url:
        try:
            response = httpx.get(f"{api_url.rstrip('/')}/api/services", timeout=timeout or 10.0)
            response.raise_for_status()
            entries = response.json()
        except httpx.HTTPError as e:
            output.error(f"[Client] Admin API request failed: {e}")
            return 1
    else:
        result = IPCNode.call_result(info.broker_rpc, "list", timeout=timeout)
        if not result.ok:
            output.error(f"[Client] Broker list failed: {result.message}")
            return 1
        entries = json.loads(result.payload)

    for entry in entries:
        print(f"{entry['identity']:>6}  {entry['service_name']:<24} {entry['address']}")
    return 0


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="NeuraFlow client simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  neuraflow-client prompt --service llm_service "Hello AI, who are you?"
  neuraflow-client prompt --init model=deepseek "Hello AI, who are you?"
  neuraflow-client services --api-url http://127.0.0.1:8600
        """
    )
    parser.add_argument("--broker-rpc", default=info.broker_rpc,
                        help=f"Broker control address (default: {info.broker_rpc})")
    parser.add_argument("--stream-prefix", default=info.stream_prefix,
                        help=f"Prefix of allocated worker stream addresses (default: {info.stream_prefix})")
    parser.add_argument("--control-prefix", default=info.control_prefix,
                        help=f"Prefix of worker control addresses (default: {info.control_prefix})")
    parser.add_argument("--timeout", type=float, default=5.0,
                        help="Seconds to wait for each reply (default: %(default)s)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    prompt_parser = commands.add_parser("prompt", help="Push a prompt to a service")
    prompt_parser.add_argument("prompt", help="Prompt text")
    prompt_parser.add_argument("--service", default="llm_service",
                               help="Target service name (default: %(default)s)")
    prompt_parser.add_argument("--init", dest="init_config", default=None,
                               help="Send an init call with this config first")

    services_parser = commands.add_parser("services", help="List registered services")
    services_parser.add_argument("--api-url", default=None,
                                 help="Broker admin API URL (default: ask the broker directly)")

    args = parser.parse_args()
    setup_logging(args.debug)
    info.broker_rpc = args.broker_rpc
    info.stream_prefix = args.stream_prefix
    info.control_prefix = args.control_prefix

    if args.command == "prompt":
        sys.exit(send_prompt(args.service, args.prompt, args.init_config, timeout=args.timeout))
    sys.exit(list_services(args.api_url, timeout=args.timeout))


if __name__ == '__main__':
    main()
