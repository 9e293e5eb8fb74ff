"""
Kubernetes client and API interactions for Kubehop.

This module is the cluster query gateway: it issues the read-only queries a
session needs (namespaces, pods, service ports) and follows pod logs. Pods are
rendered into the same tabular text `kubectl get pods` prints, which is the
input format of the resolver.

Key Components:
- KubeContext: Container for Kubernetes API clients
- load_kube: Initialize Kubernetes client with config loading
- list_namespaces: Names of all namespaces
- list_pods: Pod listing text for one namespace or all of them
- render_pod_listing: Render pod objects as a pod listing table
- get_service_ports: Ports declared by a Kubernetes service
- stream_logs: Follow a pod's logs line by line

The module supports both external kubeconfig files and in-cluster configuration.
Blocking client calls run in the default executor. Failed queries raise
ClusterQueryError; no query is retried.

Example:
    ```python
    kube = await load_kube(kubeconfig=None, context=None)
    text = await list_pods(kube.core, "payments")
    index = resolve(text, "payments")
    ```
"""

from __future__ import annotations
import asyncio
import logging
import threading
from typing import Any, Callable, Iterable, List, Optional
from kubernetes import client, config
from kubernetes.client import ApiException

from .constants import (
    COLUMN_NAME, COLUMN_NAMESPACE, COLUMN_STATUS, TERMINATING_STATUS, LOG_TAIL_LINES
)
from .exceptions import ClusterQueryError, KubernetesConnectionError
from .models import InstanceDescriptor

log = logging.getLogger('kubehop')


class KubeContext:
    """
    Container for Kubernetes API clients.

    Attributes:
        core: CoreV1Api client for namespace, pod, service and log operations

    Example:
        ```python
        kube = await load_kube(kubeconfig, context)
        namespaces = await list_namespaces(kube.core)
        ```
    """

    def __init__(self, core: client.CoreV1Api):
        self.core = core


async def load_kube(kubeconfig: Optional[str], context: Optional[str]) -> KubeContext:
    """
    Load Kubernetes configuration and create the API client.

    With an explicit kubeconfig or context, that configuration is loaded; otherwise
    the default kubeconfig is tried first and in-cluster configuration second.

    Args:
        kubeconfig: Path to kubeconfig file (optional, uses default if None)
        context: Kubernetes context name (optional, uses current context if None)

    Returns:
        KubeContext: Initialized context

    Raises:
        KubernetesConnectionError: If no configuration can be loaded
    """
    def _load():
        if kubeconfig or context:
            config.load_kube_config(config_file=kubeconfig, context=context)
        else:
            try:
                config.load_kube_config()
            except Exception:
                config.load_incluster_config()
        return client.CoreV1Api()
    loop = asyncio.get_event_loop()
    try:
        core = await loop.run_in_executor(None, _load)
    except Exception as e:
        raise KubernetesConnectionError(f"Failed to load Kubernetes configuration: {e}") from e
    return KubeContext(core)


async def _query(description: str, fn: Callable[[], Any]) -> Any:
    log.info(f"[gateway] Running: {description}")
    loop = asyncio.get_event_loop()
    try:
        return await loop.run_in_executor(None, fn)
    except ApiException as e:
        raise ClusterQueryError(f"{description} failed: {e.status} {e.reason}") from e
    except Exception as e:
        raise ClusterQueryError(f"{description} failed: {e.__class__.__name__}: {e}") from e


async def list_namespaces(core: client.CoreV1Api) -> List[str]:
    """Return the names of all namespaces in the cluster."""
    result = await _query("list namespaces", core.list_namespace)
    return [ns.metadata.name for ns in result.items or []]


def pod_display_status(pod: Any) -> str:
    """
    Status shown for a pod in a listing.

    Terminating when a deletion timestamp is set, otherwise the reason of the
    first waiting or terminated container, otherwise the pod-level reason or phase.
    """
    if getattr(pod.metadata, 'deletion_timestamp', None):
        return TERMINATING_STATUS
    status = pod.status
    for cstat in getattr(status, 'container_statuses', None) or []:
        state = cstat.state
        if state is None:
            continue
        if state.waiting and state.waiting.reason:
            return state.waiting.reason
        if state.terminated and state.terminated.reason:
            return state.terminated.reason
    return getattr(status, 'reason', None) or status.phase or "Unknown"


def render_pod_listing(pods: Iterable[Any], include_namespace: bool) -> str:
    """
    Render pod objects as a pod listing table.

    Columns are NAMESPACE (only when include_namespace), NAME and STATUS, padded
    like kubectl output. A header is always present, even with no pods.
    """
    headers = ([COLUMN_NAMESPACE] if include_namespace else []) + [COLUMN_NAME, COLUMN_STATUS]
    rows = []
    for p in pods:
        row = [p.metadata.namespace] if include_namespace else []
        row += [p.metadata.name, pod_display_status(p)]
        rows.append(row)

    widths = [max(len(str(r[i])) for r in [headers] + rows) for i in range(len(headers))]
    lines = []
    for r in [headers] + rows:
        cells = [str(c).ljust(w) for c, w in zip(r, widths)]
        lines.append("   ".join(cells).rstrip())
    return "\n".join(lines) + "\n"


async def list_pods(core: client.CoreV1Api, namespace: Optional[str]) -> str:
    """
    Return the pod listing text for one namespace, or for all when namespace is None.

    Scoped listings carry no NAMESPACE column, matching `kubectl get pods --namespace`.
    """
    if namespace:
        result = await _query(f"get pods --namespace {namespace}",
                              lambda: core.list_namespaced_pod(namespace=namespace))
    else:
        result = await _query("get pods --all-namespaces", core.list_pod_for_all_namespaces)
    return render_pod_listing(result.items or [], include_namespace=not namespace)


async def get_service_ports(core: client.CoreV1Api, namespace: str, service_name: str) -> List[int]:
    """
    Return the ports declared by a Kubernetes service.

    Raises:
        ClusterQueryError: If the service cannot be read (including 404)
    """
    svc = await _query(f"get service --namespace {namespace} {service_name}",
                       lambda: core.read_namespaced_service(name=service_name, namespace=namespace))
    return [p.port for p in (svc.spec.ports or []) if p.port]


async def stream_logs(core: client.CoreV1Api, descriptor: InstanceDescriptor, line_cb: Callable[[str], None], stop_event: threading.Event) -> None:
    """
    Follow the logs of a resolved instance.

    Calls line_cb for each log line until stop_event is set or the stream ends.
    Stream errors are reported through line_cb as a "[log-stream-error]" line.
    The blocking read runs in a daemon thread; cancelling the awaiting task
    returns at once even while the pod is quiet.

    Example:
        ```python
        stop = threading.Event()
        await stream_logs(kube.core, descriptor, print, stop)
        ```
    """
    def _stream():
        try:
            resp = core.read_namespaced_pod_log(name=descriptor.target, namespace=descriptor.namespace, follow=True, _preload_content=False, tail_lines=LOG_TAIL_LINES)
            for line in resp.stream():  # type: ignore
                if stop_event.is_set():
                    break
                try:
                    decoded = line.decode('utf-8', 'replace').rstrip('\n')
                except AttributeError:
                    decoded = str(line)
                line_cb(decoded)
        except Exception as e:
            line_cb(f"[log-stream-error] {e}")
    log.info(f"[logs] Running: logs --namespace {descriptor.namespace} {descriptor.target} -f")
    loop = asyncio.get_event_loop()
    done = loop.create_future()

    def _finish():
        if not done.done():
            done.set_result(None)

    def _run():
        _stream()
        try:
            loop.call_soon_threadsafe(_finish)
        except RuntimeError:
            # loop already closed after the caller gave up on the stream
            log.debug(f"[logs] {descriptor.target} stream ended after shutdown")

    threading.Thread(target=_run, name=f"logs-{descriptor.target}", daemon=True).start()
    await done


class KubeGateway:
    """
    Cluster query gateway bound to one KubeContext.

    Exposes the three read-only queries a session needs as methods, so session
    code can be driven by any object with the same interface.
    """

    def __init__(self, kube: KubeContext):
        self.kube = kube

    async def list_namespaces(self) -> List[str]:
        return await list_namespaces(self.kube.core)

    async def list_pods(self, namespace: Optional[str]) -> str:
        return await list_pods(self.kube.core, namespace)

    async def get_service_ports(self, namespace: str, service_name: str) -> List[int]:
        return await get_service_ports(self.kube.core, namespace, service_name)
