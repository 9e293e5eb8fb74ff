import argparse
import asyncio
import json
import time
from types import SimpleNamespace

import pytest

from kubehop import cli
from kubehop.cli import _print_services, build_parser
from kubehop.exceptions import ClusterQueryError
from kubehop.kube import KubeContext
from kubehop.models import EnvironmentTag, InstanceDescriptor, SessionResult, TunnelSpec
from kubehop.resolver import resolve

from conftest import ALL_PODS


def test_parser_defaults(monkeypatch):
    monkeypatch.delenv("KUBEHOP_PORT", raising=False)
    args = build_parser().parse_args(["connect"])
    assert args.namespace is None
    assert args.logs is None
    assert args.port == 8080


def test_parser_flags():
    args = build_parser().parse_args(["connect", "-n", "payments", "--local-port", "4000", "--no-logs"])
    assert args.namespace == "payments"
    assert args.local_port == "4000"
    assert args.logs is False


def test_parser_rejects_unknown_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["explode"])


def test_print_services_table(capsys):
    _print_services(resolve(ALL_PODS), as_json=False)
    out = capsys.readouterr().out.splitlines()
    assert out[0].split() == ["billing", "dev", "payments/dev-billing-abc12-99zz"]
    assert out[-1].split() == ["orders", "default", "teamA/teamA-orders-7f9c8-x2k1"]


def test_print_services_json(capsys):
    _print_services(resolve(ALL_PODS), as_json=True)
    data = json.loads(capsys.readouterr().out)
    assert data["orders"]["qa"]["serviceName"] == "qa-teamA-orders"


def test_print_no_services(capsys):
    _print_services(resolve("NAME\n"), as_json=False)
    assert capsys.readouterr().out.strip() == "No services found"


# ----------------------------
# Entry point and exit codes
# ----------------------------

async def fake_load_kube(kubeconfig, context):
    return KubeContext(core=None)


def run_main(monkeypatch, *argv):
    monkeypatch.setattr("sys.argv", ["kubehop", *argv])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    return exc.value.code


def test_services_exits_zero(monkeypatch, capsys):
    async def list_pods(core, namespace):
        return ALL_PODS

    monkeypatch.setattr(cli, "load_kube", fake_load_kube)
    monkeypatch.setattr(cli, "list_pods", list_pods)
    assert run_main(monkeypatch, "services", "--json") == 0
    assert "billing" in json.loads(capsys.readouterr().out)


def test_upstream_failure_exits_one(monkeypatch, capsys):
    async def list_pods(core, namespace):
        raise ClusterQueryError("get pods --all-namespaces failed: 403 Forbidden")

    monkeypatch.setattr(cli, "load_kube", fake_load_kube)
    monkeypatch.setattr(cli, "list_pods", list_pods)
    assert run_main(monkeypatch, "services") == 1
    assert "Error: get pods --all-namespaces failed: 403 Forbidden" in capsys.readouterr().err


def test_invalid_port_exits_two(monkeypatch, capsys):
    monkeypatch.setattr(cli, "load_kube", fake_load_kube)
    assert run_main(monkeypatch, "connect", "--local-port", "0") == 2
    assert "Configuration error" in capsys.readouterr().err


def test_cancelled_connect_exits_zero(monkeypatch):
    class CancelledDriver:
        def __init__(self, *args, **kwargs):
            pass

        async def run(self, launch):
            return None

    monkeypatch.setattr(cli, "load_kube", fake_load_kube)
    monkeypatch.setattr(cli, "SessionDriver", CancelledDriver)
    assert run_main(monkeypatch, "connect") == 0


def test_connect_returns_when_tunnel_exits_on_quiet_pod(monkeypatch):
    def quiet_stream():
        time.sleep(5)
        yield b"late line\n"

    core = SimpleNamespace(read_namespaced_pod_log=lambda **kwargs: SimpleNamespace(stream=quiet_stream))
    spec = TunnelSpec(
        service="billing",
        environment=EnvironmentTag.DEV,
        namespace="payments",
        descriptor=InstanceDescriptor(id="abc12-99zz", namespace="payments", service_name="dev-billing"),
        local_port=3000,
        remote_port=8080,
    )

    class ExitedTunnel:
        async def pump_output(self, line_cb):
            return 1

        async def stop(self):
            return 1

    class LaunchingDriver:
        def __init__(self, *args, **kwargs):
            pass

        async def run(self, launch):
            await launch(spec)
            return SessionResult(spec, follow_logs=True)

    async def load_kube(kubeconfig, context):
        return KubeContext(core)

    async def start_tunnel(spec, kubectl):
        return ExitedTunnel()

    monkeypatch.setattr(cli, "load_kube", load_kube)
    monkeypatch.setattr(cli, "SessionDriver", LaunchingDriver)
    monkeypatch.setattr(cli, "start_tunnel", start_tunnel)
    monkeypatch.setattr(cli, "TerminalPrompter", lambda: None)

    args = argparse.Namespace(kubeconfig=None, context=None, local_port=None, remote_port=None, logs=True)
    started = time.monotonic()
    code = asyncio.run(cli._connect(args, "payments", 3000, "kubectl"))
    assert code == 1
    assert time.monotonic() - started < 2
