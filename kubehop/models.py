"""
Data models for Kubehop.

This module defines the data structures used throughout the Kubehop
application. It provides type-safe representations of pod listing rows,
environment classification, resolved service instances and the results of
each step of an interactive session.

Key Models:
- PodRecord: One row of a tabular pod listing
- EnvironmentTag: Deployment environment inferred from a pod name prefix
- InstanceDescriptor: Addressable identity of one running pod
- ServiceIndex: Logical service name -> environment -> instance descriptor
- NamespaceChoice, ServiceChoice, EnvironmentChoice, PortChoice: Session steps
- TunnelSpec: Everything needed to forward a port and follow logs
- SessionResult: Outcome of one completed session
- ServerConfig: HTTP surface configuration parameters

Descriptors and session steps are frozen dataclasses; nothing here is shared
between resolution calls.

Example:
    ```python
    descriptor = InstanceDescriptor(
        id="abc12-99zz",
        namespace="payments",
        service_name="dev-billing",
    )
    print(descriptor.target)  # dev-billing-abc12-99zz
    ```
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional, Mapping


@dataclass(frozen=True)
class PodRecord:
    """
    A single row of a pod listing.

    Attributes:
        name: Pod name (from the NAME column)
        namespace: Namespace column value, None when the listing has no such column
        status: Status column value, None when the listing has no such column

    Example:
        ```python
        record = PodRecord(name="dev-billing-abc12-99zz", namespace="payments", status="Running")
        ```
    """
    name: str
    namespace: Optional[str] = None
    status: Optional[str] = None


class EnvironmentTag(str, Enum):
    """Deployment environment, derived from a pod name prefix."""
    DEV = "dev"
    QA = "qa"
    STG = "stg"
    PROD = "prod"
    DEFAULT = "default"

    @property
    def prefix(self) -> Optional[str]:
        """Pod name prefix for this environment, None for DEFAULT."""
        if self is EnvironmentTag.DEFAULT:
            return None
        return f"{self.value}-"


# Prefix classification order; DEFAULT is the fallback and carries no prefix.
ENVIRONMENT_ORDER = (
    EnvironmentTag.DEV,
    EnvironmentTag.QA,
    EnvironmentTag.STG,
    EnvironmentTag.PROD,
    EnvironmentTag.DEFAULT,
)


@dataclass(frozen=True)
class InstanceDescriptor:
    """
    Addressable identity of one running pod backing a logical service.

    Attributes:
        id: Orchestrator-assigned instance suffix (e.g. "7f9c8-x2k1")
        namespace: Namespace the pod runs in
        service_name: Full service name including any environment prefix,
            excluding the instance suffix (e.g. "dev-billing")

    Example:
        ```python
        descriptor = InstanceDescriptor(id="7f9c8-x2k1", namespace="teamA", service_name="teamA-orders")
        descriptor.target  # "teamA-orders-7f9c8-x2k1"
        ```
    """
    id: str
    namespace: str
    service_name: str

    @property
    def target(self) -> str:
        """Pod name addressed by tunnel and log commands."""
        return f"{self.service_name}-{self.id}"

    def to_dict(self) -> Dict[str, str]:
        return {'id': self.id, 'namespace': self.namespace, 'serviceName': self.service_name}


ServiceIndex = Mapping[str, Mapping[EnvironmentTag, InstanceDescriptor]]


@dataclass(frozen=True)
class NamespaceChoice:
    """Namespace picked by the user; None means all namespaces."""
    namespace: Optional[str]


@dataclass(frozen=True)
class ServiceChoice:
    """Logical service picked from the sorted service list."""
    service: str


@dataclass(frozen=True)
class EnvironmentChoice:
    """Environment picked for the chosen service, with its resolved instance."""
    environment: EnvironmentTag
    descriptor: InstanceDescriptor


@dataclass(frozen=True)
class PortChoice:
    """Local and destination ports for the tunnel."""
    local_port: int
    remote_port: int


@dataclass(frozen=True)
class TunnelSpec:
    """
    Everything needed to forward a port to one instance and follow its logs.

    Attributes:
        service: Logical service name the user picked
        environment: Environment the user picked
        namespace: Effective namespace (namespace filter, else the instance's own)
        descriptor: Resolved instance
        local_port: Port on localhost
        remote_port: Destination port on the pod

    Example:
        ```python
        spec = TunnelSpec(
            service="billing",
            environment=EnvironmentTag.DEV,
            namespace="payments",
            descriptor=descriptor,
            local_port=3000,
            remote_port=8080,
        )
        spec.address  # "localhost:3000:8080"
        ```
    """
    service: str
    environment: EnvironmentTag
    namespace: str
    descriptor: InstanceDescriptor
    local_port: int
    remote_port: int

    @property
    def target(self) -> str:
        return self.descriptor.target

    @property
    def port_mapping(self) -> str:
        return f"{self.local_port}:{self.remote_port}"

    @property
    def local_url(self) -> str:
        return f"http://localhost:{self.local_port}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'service': self.service,
            'environment': self.environment.value,
            'namespace': self.namespace,
            'instance': self.descriptor.to_dict(),
            'localPort': self.local_port,
            'remotePort': self.remote_port,
            'url': self.local_url,
        }


@dataclass(frozen=True)
class SessionResult:
    """Outcome of a completed session: the tunnel and whether logs were requested."""
    tunnel: TunnelSpec
    follow_logs: bool = False


@dataclass
class ServerConfig:
    """
    HTTP surface configuration parameters.

    Attributes:
        host: Server bind host
        port: Server port
        kubeconfig: Path to kubeconfig file (None for default loading rules)
        context: Kubernetes context override
        kubectl: kubectl binary used for tunnels
        default_port: Fallback port when none is supplied or detected
        uvicorn_log_level: Uvicorn server log level
    """
    host: str
    port: int
    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    kubectl: str = "kubectl"
    default_port: int = 3000
    uvicorn_log_level: str = "info"
