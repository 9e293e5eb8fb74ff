"""
Command-line interface for Kubehop.

This module provides the command-line interface for the Kubehop application,
handling argument parsing, input validation and dispatch to one of three
commands.

Key Functions:
- build_parser: Create and configure the argument parser
- main: Main entry point for the CLI application

Commands:
- connect: Interactive session, then port-forward (and optionally follow logs)
- services: Print the resolved service index and exit
- serve: Run the JSON HTTP API

Example:
    ```bash
    # Fully interactive
    kubehop connect

    # Skip the namespace and port prompts
    kubehop connect --namespace payments --local-port 4000 --remote-port 8080 --logs

    # Resolved services as JSON
    kubehop services --all-namespaces --json
    ```
"""

import argparse
import asyncio
import json
import logging
import os
import sys
import threading
from typing import Optional

from .commands import start_tunnel, TunnelProcess
from .constants import (
    DEFAULT_HOST, DEFAULT_PORT, DEFAULT_LOCAL_PORT, DEFAULT_KUBECTL, DEFAULT_UVICORN_LOG_LEVEL,
    ENV_HOST, ENV_PORT, ENV_DEFAULT_PORT, ENV_KUBECTL, ENV_UVICORN_LEVEL
)
from .exceptions import ConfigurationError, KubehopError
from .kube import KubeGateway, load_kube, list_pods, stream_logs
from .models import ServerConfig, TunnelSpec
from .prompts import TerminalPrompter
from .resolver import resolve, index_to_dict, sorted_services, environments_for
from .server import run_server, _log_exception
from .session import SessionDriver
from .validation import validate_host, validate_namespace, validate_port, port_from_env

log = logging.getLogger('kubehop')


def build_parser() -> argparse.ArgumentParser:
    """
    Build and configure the command-line argument parser.

    Environment Variables:
        KUBEHOP_HOST: Default host for `serve` (default: localhost)
        KUBEHOP_PORT: Default port for `serve` (default: 8080)
        KUBEHOP_DEFAULT_PORT: Default local/fallback remote port (default: 3000)
        KUBEHOP_KUBECTL: kubectl binary used for port-forwards (default: kubectl)
    """
    env_host = os.getenv(ENV_HOST, DEFAULT_HOST)
    env_port = port_from_env(ENV_PORT, DEFAULT_PORT)

    p = argparse.ArgumentParser("kubehop", description="Pick a Kubernetes service by name and environment, then port-forward to it")
    p.add_argument("command", choices=['connect', 'services', 'serve'], help="Subcommand to run")
    p.add_argument("--namespace", "-n", default=None, help="Namespace to look in (default: ask, or all for 'services')")
    p.add_argument("--all-namespaces", "-A", action="store_true", help="Look in all namespaces without asking")
    p.add_argument("--kubeconfig", default=None, help="Path to kubeconfig (defaults to kube rules)")
    p.add_argument("--context", default=None, help="Kubecontext override")
    p.add_argument("--local-port", default=None, help="Local port for the tunnel (default: ask)")
    p.add_argument("--remote-port", default=None, help="Destination port on the pod (default: ask, pre-filled from the service)")
    p.add_argument("--logs", action=argparse.BooleanOptionalAction, default=None, help="Follow pod logs after the tunnel starts (default: ask)")
    p.add_argument("--json", action="store_true", help="Print services as JSON ('services' only)")
    p.add_argument("--host", default=env_host, help="Host to bind for 'serve' (env: KUBEHOP_HOST)")
    p.add_argument("--port", default=env_port, help="Port for 'serve' (env: KUBEHOP_PORT)")
    return p


def _optional_port(value: Optional[str]) -> Optional[int]:
    return None if value is None else validate_port(value)


def _print_services(index, as_json: bool) -> None:
    if as_json:
        print(json.dumps(index_to_dict(index), indent=2))
        return
    if not index:
        print("No services found")
        return
    width = max(len(name) for name in index)
    for name in sorted_services(index):
        for env in environments_for(index, name):
            d = index[name][env]
            print(f"{name.ljust(width)}  {env.value:<7}  {d.namespace}/{d.target}")


async def _services(args, namespace: Optional[str]) -> int:
    kube = await load_kube(args.kubeconfig, args.context)
    listing = await list_pods(kube.core, namespace)
    _print_services(resolve(listing, namespace), args.json)
    return 0


async def _connect(args, namespace: Optional[str], default_port: int, kubectl: str) -> int:
    kube = await load_kube(args.kubeconfig, args.context)
    prompter = TerminalPrompter()
    driver = SessionDriver(
        KubeGateway(kube),
        prompter,
        default_port=default_port,
        namespace=namespace,
        local_port=_optional_port(args.local_port),
        remote_port=_optional_port(args.remote_port),
        follow_logs=args.logs,
    )
    tunnels = []

    async def launch(spec: TunnelSpec) -> TunnelProcess:
        tunnel = await start_tunnel(spec, kubectl)
        tunnels.append(tunnel)
        return tunnel

    result = await driver.run(launch)
    if result is None:
        return 0

    tunnel = tunnels[0]
    stop = threading.Event()
    tasks = [asyncio.ensure_future(tunnel.pump_output(lambda line: log.info(f"[tunnel] {line}")))]
    if result.follow_logs:
        tasks.append(asyncio.ensure_future(stream_logs(kube.core, result.tunnel.descriptor, print, stop)))
    try:
        code = await tasks[0]
    finally:
        stop.set()
        await tunnel.stop()
        for t in tasks[1:]:
            t.cancel()
        await asyncio.gather(*tasks[1:], return_exceptions=True)
    return code


def main() -> None:
    """
    Main entry point for the Kubehop CLI application.

    Raises:
        SystemExit: On configuration errors (exit code 2) or session errors (exit code 1)
    """
    parser = build_parser()
    args = parser.parse_args()

    # Validate inputs
    try:
        namespace = "" if args.all_namespaces else validate_namespace(args.namespace)
        default_port = port_from_env(ENV_DEFAULT_PORT, DEFAULT_LOCAL_PORT)
        kubectl = os.getenv(ENV_KUBECTL, DEFAULT_KUBECTL)
        _optional_port(args.local_port)
        _optional_port(args.remote_port)
        if args.command == 'serve':
            host = validate_host(args.host)
            port = validate_port(args.port)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    try:
        if args.command == 'serve':
            cfg = ServerConfig(
                host=host,
                port=port,
                kubeconfig=args.kubeconfig,
                context=args.context,
                kubectl=kubectl,
                default_port=default_port,
                uvicorn_log_level=os.getenv(ENV_UVICORN_LEVEL, DEFAULT_UVICORN_LOG_LEVEL),
            )
            asyncio.run(run_server(cfg))
            code = 0
        elif args.command == 'services':
            code = asyncio.run(_services(args, namespace or None))
        else:
            code = asyncio.run(_connect(args, namespace, default_port, kubectl))
    except KeyboardInterrupt:
        print("\nShutting down...", file=sys.stderr)
        code = 0
    except KubehopError as e:
        _log_exception("[cli] session failed", e, logging.DEBUG)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":  # pragma: no cover
    main()
