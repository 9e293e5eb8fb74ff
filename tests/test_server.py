import pytest
from fastapi.testclient import TestClient

from kubehop.exceptions import ClusterQueryError, TunnelError
from kubehop.server import app, hub

from conftest import FakeGateway


class FakeTunnel:
    def __init__(self, spec, kubectl):
        self.spec = spec
        self.command = [kubectl, "port-forward", spec.target, spec.port_mapping]
        self.pid = 4242
        self.running = True

    async def stop(self):
        self.running = False
        return -15


class FailingGateway(FakeGateway):
    async def list_pods(self, namespace):
        raise ClusterQueryError("get pods --all-namespaces failed: 403 Forbidden")


@pytest.fixture
def client(gateway):
    launched = []

    async def launch(spec, kubectl):
        tunnel = FakeTunnel(spec, kubectl)
        launched.append(tunnel)
        return tunnel

    hub.gateway = gateway
    hub.tunnels = {}
    hub.default_port = 3000
    hub.kubectl = "kubectl"
    hub.launch = launch
    client = TestClient(app)
    client.launched = launched
    yield client
    hub.gateway = None
    hub.tunnels = {}


def test_namespaces(client):
    assert client.get("/api/namespaces").json() == {'namespaces': ["kube-system", "payments", "teamA"]}


def test_services_all_namespaces(client):
    body = client.get("/api/services").json()
    assert body['namespace'] is None
    assert sorted(body['services']) == ["billing", "orders"]
    assert body['services']['billing']['dev'] == {
        'id': "abc12-99zz", 'namespace': "payments", 'serviceName': "dev-billing"
    }


def test_services_scoped(client):
    body = client.get("/api/services", params={'namespace': "teamA"}).json()
    assert body['services']['orders']['default']['namespace'] == "teamA"


def test_services_rejects_bad_namespace(client):
    assert client.get("/api/services", params={'namespace': "Not_Valid"}).status_code == 400


def test_environments(client):
    body = client.get("/api/services/billing/environments").json()
    assert list(body['environments']) == ["dev", "prod"]
    assert client.get("/api/services/missing/environments").status_code == 404


def test_ports_detected_and_fallback(client):
    detected = client.get("/api/ports", params={'namespace': "payments", 'service': "prod-billing"}).json()
    assert detected == {'ports': [8080, 9090], 'default': 8080}
    fallback = client.get("/api/ports", params={'namespace': "payments", 'service': "dev-billing"}).json()
    assert fallback == {'ports': [], 'default': 3000}


def test_create_list_delete_tunnel(client):
    resp = client.post("/api/tunnels", json={'service': "billing", 'environment': "prod", 'localPort': 4000})
    assert resp.status_code == 201
    body = resp.json()
    assert body['remotePort'] == 8080
    assert body['url'] == "http://localhost:4000"
    assert body['command'] == "kubectl port-forward prod-billing-def34-11aa 4000:8080"
    assert body['logsCommand'] == "kubectl logs --namespace payments prod-billing-def34-11aa -f"

    listed = client.get("/api/tunnels").json()['tunnels']
    assert [t['id'] for t in listed] == [body['id']]

    deleted = client.delete(f"/api/tunnels/{body['id']}").json()
    assert deleted['exitCode'] == -15
    assert client.launched[0].running is False
    assert client.get("/api/tunnels").json() == {'tunnels': []}
    assert client.delete(f"/api/tunnels/{body['id']}").status_code == 404


def test_create_tunnel_unknown_environment(client):
    resp = client.post("/api/tunnels", json={'service': "billing", 'environment': "qa"})
    assert resp.status_code == 404


def test_create_tunnel_bad_port(client):
    resp = client.post("/api/tunnels", json={'service': "billing", 'environment': "dev", 'localPort': 70000})
    assert resp.status_code == 400


def test_create_tunnel_launch_failure(client):
    async def broken(spec, kubectl):
        raise TunnelError("Failed to start port-forward (kubectl): not found")

    hub.launch = broken
    resp = client.post("/api/tunnels", json={'service': "billing", 'environment': "dev", 'remotePort': 80})
    assert resp.status_code == 500
    assert hub.tunnels == {}


def test_upstream_failure_is_bad_gateway(client):
    hub.gateway = FailingGateway()
    resp = client.get("/api/services")
    assert resp.status_code == 502
    assert "403" in resp.json()['detail']


def test_uninitialized_gateway(client):
    hub.gateway = None
    assert client.get("/api/namespaces").status_code == 503


def test_shutdown_stops_open_tunnels(client):
    with TestClient(app) as running:
        resp = running.post("/api/tunnels", json={'service': "billing", 'environment': "dev", 'remotePort': 80})
        assert resp.status_code == 201
    assert client.launched[0].running is False
    assert hub.tunnels == {}
