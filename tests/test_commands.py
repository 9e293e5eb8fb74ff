import asyncio

import pytest

from kubehop.commands import TunnelProcess, format_command, forward_command, logs_command, start_tunnel
from kubehop.exceptions import TunnelError
from kubehop.models import EnvironmentTag, InstanceDescriptor, TunnelSpec


def make_spec(namespace="payments"):
    return TunnelSpec(
        service="billing",
        environment=EnvironmentTag.DEV,
        namespace=namespace,
        descriptor=InstanceDescriptor(id="abc12-99zz", namespace=namespace, service_name="dev-billing"),
        local_port=3000,
        remote_port=8080,
    )


def test_forward_command():
    assert forward_command(make_spec()) == [
        "kubectl", "port-forward", "--namespace", "payments", "dev-billing-abc12-99zz", "3000:8080"
    ]


def test_logs_command():
    assert format_command(logs_command(make_spec(), "/usr/local/bin/kubectl")) == \
        "/usr/local/bin/kubectl logs --namespace payments dev-billing-abc12-99zz -f"


def test_commands_without_namespace():
    assert "--namespace" not in forward_command(make_spec(namespace=""))


def test_start_tunnel_relays_output():
    async def run():
        tunnel = await start_tunnel(make_spec(), kubectl="echo")
        lines = []
        code = await tunnel.pump_output(lines.append)
        return tunnel, lines, code

    tunnel, lines, code = asyncio.run(run())
    assert code == 0
    assert lines == ["port-forward --namespace payments dev-billing-abc12-99zz 3000:8080"]
    assert not tunnel.running


def test_stop_running_tunnel():
    async def run():
        process = await asyncio.create_subprocess_exec("sleep", "30")
        tunnel = TunnelProcess(make_spec(), ["sleep", "30"], process)
        assert tunnel.running
        code = await tunnel.stop()
        return tunnel, code

    tunnel, code = asyncio.run(run())
    assert code is not None
    assert not tunnel.running


def test_start_tunnel_missing_binary():
    with pytest.raises(TunnelError):
        asyncio.run(start_tunnel(make_spec(), kubectl="/nonexistent/kubectl"))
