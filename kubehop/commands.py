"""
Tunnel and log-stream commands for Kubehop.

This module builds the kubectl command lines that address a resolved instance
and runs the port-forward as a child process.

Key Components:
- forward_command: `kubectl port-forward --namespace <ns> <pod> <local>:<remote>`
- logs_command: `kubectl logs --namespace <ns> <pod> -f`
- format_command: Shell-quoted rendering for display and logging
- TunnelProcess: Handle on a running port-forward
- start_tunnel: Launch a port-forward for a TunnelSpec

Example:
    ```python
    tunnel = await start_tunnel(spec)
    await tunnel.pump_output(print)
    ```
"""

import asyncio
import logging
import shlex
from typing import Callable, List, Optional

from .constants import DEFAULT_KUBECTL
from .exceptions import TunnelError
from .models import TunnelSpec

log = logging.getLogger('kubehop')


def _namespace_args(namespace: str) -> List[str]:
    return ["--namespace", namespace] if namespace else []


def forward_command(spec: TunnelSpec, kubectl: str = DEFAULT_KUBECTL) -> List[str]:
    """Argument vector forwarding spec.local_port to spec.remote_port on the instance."""
    return [kubectl, "port-forward", *_namespace_args(spec.namespace), spec.target, spec.port_mapping]


def logs_command(spec: TunnelSpec, kubectl: str = DEFAULT_KUBECTL) -> List[str]:
    """Argument vector following the instance's logs."""
    return [kubectl, "logs", *_namespace_args(spec.namespace), spec.target, "-f"]


def format_command(argv: List[str]) -> str:
    return shlex.join(argv)


class TunnelProcess:
    """
    Handle on a running `kubectl port-forward` process.

    Attributes:
        spec: The tunnel being served
        command: Argument vector the process was started with
        process: Underlying asyncio subprocess
    """

    def __init__(self, spec: TunnelSpec, command: List[str], process: asyncio.subprocess.Process):
        self.spec = spec
        self.command = command
        self.process = process

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def running(self) -> bool:
        return self.process.returncode is None

    async def pump_output(self, line_cb: Callable[[str], None]) -> int:
        """Relay process output to line_cb until it exits; returns the exit code."""
        stream = self.process.stdout
        if stream is not None:
            while True:
                raw = await stream.readline()
                if not raw:
                    break
                line_cb(raw.decode('utf-8', 'replace').rstrip('\n'))
        return await self.wait()

    async def wait(self) -> int:
        code = await self.process.wait()
        log.info(f"[tunnel] {self.spec.target} {self.spec.port_mapping} exited with code {code}")
        return code

    async def stop(self, timeout: float = 5.0) -> Optional[int]:
        """Terminate the process, killing it if it does not exit within timeout."""
        if not self.running:
            return self.process.returncode
        log.info(f"[tunnel] stopping {self.spec.target} (pid {self.pid})")
        self.process.terminate()
        try:
            return await asyncio.wait_for(self.process.wait(), timeout)
        except asyncio.TimeoutError:
            self.process.kill()
            return await self.process.wait()


async def start_tunnel(spec: TunnelSpec, kubectl: str = DEFAULT_KUBECTL) -> TunnelProcess:
    """
    Launch `kubectl port-forward` for spec.

    Raises:
        TunnelError: If the process cannot be started
    """
    argv = forward_command(spec, kubectl)
    log.info(f"[tunnel] Running: {format_command(argv)}")
    try:
        process = await asyncio.create_subprocess_exec(
            *argv, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.STDOUT
        )
    except OSError as e:
        raise TunnelError(f"Failed to start port-forward ({argv[0]}): {e}") from e
    return TunnelProcess(spec, argv, process)
