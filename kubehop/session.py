"""
Interactive session flow for Kubehop.

A session is a fixed sequence of request/response steps, each depending only on
the result of the previous one:

    namespace -> service -> environment -> ports -> tunnel -> (logs?)

The step helpers in this module are pure functions; SessionDriver wires them to
a gateway (cluster queries) and a prompter (user interaction), so the same flow
runs in a terminal or behind any other front end.

Key Components:
- Gateway, Prompter: Interfaces the driver depends on
- namespace_options / namespace_from_option: Namespace step
- service_options: Service step
- choose_environment: Environment step
- default_remote_port: Remote port default from detected service ports
- build_tunnel_spec: Final step producing a TunnelSpec
- SessionDriver: Runs one session end to end

Example:
    ```python
    driver = SessionDriver(KubeGateway(kube), TerminalPrompter())
    result = await driver.run(launch=start_tunnel)
    ```
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Sequence

from .constants import ALL_NAMESPACES_LABEL, DEFAULT_LOCAL_PORT, DEFAULT_REMOTE_PORT
from .exceptions import ClusterQueryError, ServiceNotFoundError, SessionCancelled
from .models import (
    EnvironmentTag, InstanceDescriptor, ServiceIndex, NamespaceChoice, ServiceChoice,
    EnvironmentChoice, PortChoice, TunnelSpec, SessionResult
)
from .resolver import resolve, sorted_services, environments_for
from .validation import validate_port

log = logging.getLogger('kubehop')


class Gateway(Protocol):
    async def list_namespaces(self) -> List[str]: ...

    async def list_pods(self, namespace: Optional[str]) -> str: ...

    async def get_service_ports(self, namespace: str, service_name: str) -> List[int]: ...


class Prompter(Protocol):
    """User interaction; choose/ask return None when the user aborts."""

    async def choose(self, message: str, options: Sequence[str]) -> Optional[str]: ...

    async def ask(self, message: str, default: str) -> Optional[str]: ...

    async def confirm(self, message: str, default: bool = False) -> bool: ...

    def info(self, message: str) -> None: ...


def namespace_options(namespaces: Sequence[str]) -> List[str]:
    return [ALL_NAMESPACES_LABEL, *namespaces]


def namespace_from_option(option: str) -> NamespaceChoice:
    return NamespaceChoice(None if option == ALL_NAMESPACES_LABEL else option)


def service_options(index: ServiceIndex) -> List[str]:
    return sorted_services(index)


def choose_environment(index: ServiceIndex, service: str, environment: str) -> EnvironmentChoice:
    """
    Look up the instance serving service in environment.

    Raises:
        ServiceNotFoundError: If the service or environment is not in the index
    """
    envs = index.get(service)
    if envs is None:
        raise ServiceNotFoundError(f"Service not found: {service}")
    try:
        env = EnvironmentTag(environment)
    except ValueError:
        raise ServiceNotFoundError(f"Unknown environment: {environment}")
    descriptor = envs.get(env)
    if descriptor is None:
        raise ServiceNotFoundError(f"Service {service} has no {env.value} instance")
    return EnvironmentChoice(env, descriptor)


def effective_namespace(namespace_filter: Optional[str], descriptor: InstanceDescriptor) -> str:
    return namespace_filter or descriptor.namespace


def default_remote_port(detected: Sequence[int], fallback: int = DEFAULT_REMOTE_PORT) -> int:
    """First detected service port, or fallback when none was detected."""
    return detected[0] if detected else fallback


def build_tunnel_spec(service: ServiceChoice, environment: EnvironmentChoice, namespace_filter: Optional[str], ports: PortChoice) -> TunnelSpec:
    return TunnelSpec(
        service=service.service,
        environment=environment.environment,
        namespace=effective_namespace(namespace_filter, environment.descriptor),
        descriptor=environment.descriptor,
        local_port=ports.local_port,
        remote_port=ports.remote_port,
    )


async def detect_ports(gateway: Gateway, namespace: str, service_name: str) -> List[int]:
    """Ports of the Kubernetes service named like the instance; empty on failure."""
    try:
        ports = await gateway.get_service_ports(namespace, service_name)
    except ClusterQueryError as e:
        log.warning(f"[session] Error detecting port: {e}")
        return []
    log.info(f"[session] Port detected: {' '.join(str(p) for p in ports) or 'none'}")
    return ports


class SessionDriver:
    """
    Runs one interactive session.

    Preset values skip the matching prompt: a namespace (use "" for all
    namespaces), ports, and whether to follow logs.

    Attributes:
        gateway: Cluster query gateway
        prompter: User interaction
        default_port: Default local port and fallback remote port
    """

    def __init__(
        self,
        gateway: Gateway,
        prompter: Prompter,
        default_port: int = DEFAULT_LOCAL_PORT,
        namespace: Optional[str] = None,
        local_port: Optional[int] = None,
        remote_port: Optional[int] = None,
        follow_logs: Optional[bool] = None,
    ):
        self.gateway = gateway
        self.prompter = prompter
        self.default_port = default_port
        self.preset_namespace = namespace
        self.preset_local_port = local_port
        self.preset_remote_port = remote_port
        self.preset_follow_logs = follow_logs

    async def _choose(self, message: str, options: Sequence[str]) -> str:
        picked = await self.prompter.choose(message, options)
        if picked is None:
            raise SessionCancelled(message)
        return picked

    async def _ask_port(self, message: str, default: int) -> int:
        answer = await self.prompter.ask(message, str(default))
        if answer is None:
            raise SessionCancelled(message)
        if not answer.strip():
            return default
        return validate_port(answer)

    async def choose_namespace(self) -> NamespaceChoice:
        if self.preset_namespace is not None:
            return NamespaceChoice(self.preset_namespace or None)
        namespaces = await self.gateway.list_namespaces()
        picked = await self._choose("Select a namespace (or all)", namespace_options(namespaces))
        log.info(f"[session] You selected namespace: {picked}")
        return namespace_from_option(picked)

    async def load_index(self, namespace: NamespaceChoice) -> ServiceIndex:
        listing = await self.gateway.list_pods(namespace.namespace)
        return resolve(listing, namespace.namespace)

    async def choose_service(self, index: ServiceIndex) -> ServiceChoice:
        picked = await self._choose("Select a service", service_options(index))
        log.info(f"[session] You selected service: {picked}")
        return ServiceChoice(picked)

    async def choose_env(self, index: ServiceIndex, service: ServiceChoice) -> EnvironmentChoice:
        envs = [env.value for env in environments_for(index, service.service)]
        picked = await self._choose("Select environment", envs)
        choice = choose_environment(index, service.service, picked)
        d = choice.descriptor
        log.info(f"[session] Selected environment: {picked} (id={d.id} namespace={d.namespace} name={d.service_name})")
        return choice

    async def choose_ports(self, namespace: str, descriptor: InstanceDescriptor) -> PortChoice:
        if self.preset_local_port is not None:
            local_port = self.preset_local_port
        else:
            local_port = await self._ask_port("Enter local port", self.default_port)
        log.info(f"[session] Local port: {local_port}")

        if self.preset_remote_port is not None:
            remote_port = self.preset_remote_port
        else:
            detected = await detect_ports(self.gateway, namespace, descriptor.service_name)
            remote_port = await self._ask_port(
                "Enter the destination port on the Kubernetes service "
                f"(try {self.default_port} if the detected port fails)",
                default_remote_port(detected, self.default_port),
            )
        log.info(f"[session] Destination port: {remote_port}")
        return PortChoice(local_port, remote_port)

    async def choose_logs(self) -> bool:
        if self.preset_follow_logs is not None:
            return self.preset_follow_logs
        return await self.prompter.confirm("Would you like to see the logs in real time?", default=False)

    async def plan(self) -> Optional[TunnelSpec]:
        """Run the selection steps; None when the cluster has no matching services."""
        namespace = await self.choose_namespace()
        index = await self.load_index(namespace)
        if not index:
            self.prompter.info("No services found")
            return None
        service = await self.choose_service(index)
        env = await self.choose_env(index, service)
        ns = effective_namespace(namespace.namespace, env.descriptor)
        ports = await self.choose_ports(ns, env.descriptor)
        return build_tunnel_spec(service, env, namespace.namespace, ports)

    async def run(self, launch: Callable[[TunnelSpec], Awaitable[Any]]) -> Optional[SessionResult]:
        """
        Run the whole session: plan the tunnel, launch it, then ask about logs.

        Returns None when the user cancels or no services were found.
        """
        try:
            spec = await self.plan()
        except SessionCancelled as e:
            log.info(f"[session] cancelled at: {e}")
            return None
        if spec is None:
            return None

        await launch(spec)
        self.prompter.info(f"Service available at: {spec.local_url}")
        follow = await self.choose_logs()
        return SessionResult(spec, follow)
