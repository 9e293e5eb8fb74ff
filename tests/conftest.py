import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from kubehop.exceptions import ClusterQueryError


ALL_PODS = """\
NAMESPACE     NAME                               READY   STATUS             RESTARTS   AGE
payments      dev-billing-abc12-99zz             1/1     Running            0          3d
payments      prod-billing-def34-11aa            1/1     Running            0          3d
payments      stg-billing-aaa11-bbb22            0/1     CrashLoopBackOff   12         1h
teamA         teamA-orders-7f9c8-x2k1            1/1     Running            0          5h
teamA         qa-teamA-orders-1a2b3-c4d5         1/1     Running            0          5h
kube-system   coredns-5d78c                      1/1     Running            0          30d
"""

TEAM_A_PODS = """\
NAME                         READY   STATUS    RESTARTS   AGE
teamA-orders-7f9c8-x2k1      1/1     Running   0          5h
qa-teamA-orders-1a2b3-c4d5   1/1     Running   0          5h
"""


class FakeGateway:
    """In-memory gateway keyed by namespace ("" for all namespaces)."""

    def __init__(self, listings=None, namespaces=None, ports=None):
        self.listings = listings if listings is not None else {"": ALL_PODS, "teamA": TEAM_A_PODS}
        self.namespaces = namespaces if namespaces is not None else ["kube-system", "payments", "teamA"]
        self.ports = ports if ports is not None else {}
        self.calls = []

    async def list_namespaces(self):
        self.calls.append(("list_namespaces",))
        return list(self.namespaces)

    async def list_pods(self, namespace):
        self.calls.append(("list_pods", namespace))
        return self.listings.get(namespace or "", "NAME   STATUS\n")

    async def get_service_ports(self, namespace, service_name):
        self.calls.append(("get_service_ports", namespace, service_name))
        key = (namespace, service_name)
        if key not in self.ports:
            raise ClusterQueryError(f"get service --namespace {namespace} {service_name} failed: 404 Not Found")
        return list(self.ports[key])


@pytest.fixture
def gateway():
    return FakeGateway(ports={("payments", "prod-billing"): [8080, 9090]})
