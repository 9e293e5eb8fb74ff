"""
FastAPI server for Kubehop.

This module exposes the session steps over a JSON HTTP API, so a browser or
another tool can drive the same namespace -> service -> environment -> ports
flow as the terminal session and keep several tunnels open at once.

Key Components:
- Hub: Central state (gateway, running tunnels, defaults)
- FastAPI routes: Namespaces, resolved services, environments, ports, tunnels
- run_server: Main server startup and configuration

Routes:
- GET    /api/namespaces
- GET    /api/services?namespace=
- GET    /api/services/{service}/environments?namespace=
- GET    /api/ports?namespace=&service=
- GET    /api/tunnels
- POST   /api/tunnels
- DELETE /api/tunnels/{tunnel_id}

Example:
    ```python
    await run_server(ServerConfig(host="127.0.0.1", port=8080))
    ```
"""

import itertools
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from .commands import TunnelProcess, start_tunnel, logs_command, format_command
from .constants import DEFAULT_LOG_LEVEL, DEFAULT_REMOTE_PORT, DEFAULT_KUBECTL, ENV_LOG_LEVEL
from .exceptions import (
    ClusterQueryError, ConfigurationError, KubernetesConnectionError, ListingFormatError,
    ServiceNotFoundError, TunnelError
)
from .kube import KubeGateway, load_kube
from .models import ServerConfig, ServiceIndex, ServiceChoice, PortChoice, TunnelSpec
from .resolver import resolve, environments_for, index_to_dict
from .session import (
    Gateway, build_tunnel_spec, choose_environment, default_remote_port, detect_ports
)
from .validation import validate_namespace, validate_port

# Logging setup (level via KUBEHOP_LOG_LEVEL env or default INFO)
logging.basicConfig(
    level=getattr(logging, os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).upper(), logging.INFO),
    format='[%(asctime)s] %(levelname)s %(message)s'
)
log = logging.getLogger('kubehop')


# Helper for safe exception logging
def _log_exception(msg: str, exc: Exception, level: int = logging.WARNING):
    """Log an exception with proper formatting."""
    log.log(level, f"{msg}: {exc.__class__.__name__}: {exc}")


class TunnelRequest(BaseModel):
    service: str
    environment: str
    namespace: Optional[str] = None
    local_port: Optional[int] = Field(default=None, alias='localPort')
    remote_port: Optional[int] = Field(default=None, alias='remotePort')


class Hub:
    """
    Central state for the HTTP surface.

    Attributes:
        gateway: Cluster query gateway (None until the server starts)
        tunnels: Running tunnels keyed by id
        default_port: Default local port and fallback remote port
        kubectl: kubectl binary used for tunnels
        launch: Coroutine starting a tunnel for a TunnelSpec
    """

    def __init__(self):
        self.gateway: Optional[Gateway] = None
        self.tunnels: Dict[str, TunnelProcess] = {}
        self.default_port: int = DEFAULT_REMOTE_PORT
        self.kubectl: str = DEFAULT_KUBECTL
        self.launch: Callable[[TunnelSpec, str], Awaitable[TunnelProcess]] = start_tunnel
        self._ids = itertools.count(1)

    def next_id(self) -> str:
        return str(next(self._ids))

    def require_gateway(self) -> Gateway:
        if self.gateway is None:
            raise HTTPException(status_code=503, detail="Cluster connection not initialized")
        return self.gateway


hub = Hub()


async def stop_tunnels():
    for tunnel_id, tunnel in list(hub.tunnels.items()):
        try:
            await tunnel.stop()
        except ProcessLookupError as e:
            _log_exception(f"[server] tunnel {tunnel_id} already gone", e)
    hub.tunnels.clear()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await stop_tunnels()


app = FastAPI(title="kubehop", lifespan=lifespan)


def _tunnel_view(tunnel_id: str, tunnel: TunnelProcess) -> Dict[str, Any]:
    view = tunnel.spec.to_dict()
    view.update({
        'id': tunnel_id,
        'pid': tunnel.pid,
        'running': tunnel.running,
        'command': format_command(tunnel.command),
        'logsCommand': format_command(logs_command(tunnel.spec, hub.kubectl)),
    })
    return view


def _namespace_param(namespace: Optional[str]) -> Optional[str]:
    try:
        return validate_namespace(namespace)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def _load_index(namespace: Optional[str]) -> ServiceIndex:
    gateway = hub.require_gateway()
    try:
        listing = await gateway.list_pods(namespace)
        return resolve(listing, namespace)
    except (ClusterQueryError, ListingFormatError) as e:
        _log_exception("[server] Failed to load pods", e)
        raise HTTPException(status_code=502, detail=str(e))


@app.get('/api/namespaces')
async def namespaces():
    gateway = hub.require_gateway()
    try:
        return {'namespaces': await gateway.list_namespaces()}
    except ClusterQueryError as e:
        _log_exception("[server] Failed to list namespaces", e)
        raise HTTPException(status_code=502, detail=str(e))


@app.get('/api/services')
async def services(namespace: Optional[str] = Query(default=None)):
    ns = _namespace_param(namespace)
    index = await _load_index(ns)
    return {'namespace': ns, 'services': index_to_dict(index)}


@app.get('/api/services/{service}/environments')
async def service_environments(service: str, namespace: Optional[str] = Query(default=None)):
    index = await _load_index(_namespace_param(namespace))
    if service not in index:
        raise HTTPException(status_code=404, detail=f"Service not found: {service}")
    return {
        'service': service,
        'environments': {env.value: index[service][env].to_dict() for env in environments_for(index, service)},
    }


@app.get('/api/ports')
async def ports(namespace: str = Query(...), service: str = Query(...)):
    """Ports of a Kubernetes service; falls back to the default port when detection fails."""
    ns = _namespace_param(namespace)
    detected = await detect_ports(hub.require_gateway(), ns or "", service)
    return {'ports': detected, 'default': default_remote_port(detected, hub.default_port)}


@app.get('/api/tunnels')
async def list_tunnels():
    return {'tunnels': [_tunnel_view(tid, t) for tid, t in hub.tunnels.items()]}


@app.post('/api/tunnels', status_code=201)
async def create_tunnel(req: TunnelRequest):
    ns = _namespace_param(req.namespace)
    index = await _load_index(ns)
    try:
        env = choose_environment(index, req.service, req.environment)
        local_port = validate_port(req.local_port) if req.local_port is not None else hub.default_port
        if req.remote_port is not None:
            remote_port = validate_port(req.remote_port)
        else:
            detected = await detect_ports(hub.require_gateway(), ns or env.descriptor.namespace, env.descriptor.service_name)
            remote_port = default_remote_port(detected, hub.default_port)
    except ServiceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    spec = build_tunnel_spec(ServiceChoice(req.service), env, ns, PortChoice(local_port, remote_port))
    try:
        tunnel = await hub.launch(spec, hub.kubectl)
    except TunnelError as e:
        _log_exception("[server] Failed to start tunnel", e, logging.ERROR)
        raise HTTPException(status_code=500, detail=str(e))

    tunnel_id = hub.next_id()
    hub.tunnels[tunnel_id] = tunnel
    log.info(f"[server] tunnel {tunnel_id} started: {spec.target} {spec.port_mapping}")
    return _tunnel_view(tunnel_id, tunnel)


@app.delete('/api/tunnels/{tunnel_id}')
async def delete_tunnel(tunnel_id: str):
    tunnel = hub.tunnels.pop(tunnel_id, None)
    if tunnel is None:
        raise HTTPException(status_code=404, detail=f"Tunnel not found: {tunnel_id}")
    code = await tunnel.stop()
    log.info(f"[server] tunnel {tunnel_id} stopped")
    return {'ok': True, 'id': tunnel_id, 'exitCode': code}


async def run_server(cfg: ServerConfig) -> None:
    """Run the Kubehop HTTP server with proper error handling."""
    try:
        kube = await load_kube(cfg.kubeconfig, cfg.context)
    except KubernetesConnectionError as e:
        _log_exception("[server] Failed to load Kubernetes configuration", e)
        raise

    hub.gateway = KubeGateway(kube)
    hub.default_port = cfg.default_port
    hub.kubectl = cfg.kubectl
    log.info(f"[server] listening on http://{cfg.host}:{cfg.port}")

    import uvicorn
    config = uvicorn.Config(app, host=cfg.host, port=cfg.port, log_level=cfg.uvicorn_log_level)
    server = uvicorn.Server(config)
    await server.serve()
