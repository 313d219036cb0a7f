"""Tests for the agent HTTP server."""

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, Mock

from aiohttp.test_utils import TestClient, TestServer

from keel.agent.server import AgentServer
from keel.errors import ApplySpecError
from keel.models.applyspec import ApplySpec


@pytest.fixture
def mock_dependencies():
    """Create mock engine and config manager."""
    engine = AsyncMock()
    engine.get_status.return_value = {
        "last_reconciliation": None,
        "deployment": "fake-deployment",
        "index": 0,
        "jobs": ["nginx"],
        "networks": ["net1"],
        "address_broadcast": "done",
    }
    engine.list_jobs.return_value = [
        {"name": "nginx", "version": "1-sha", "enabled": True, "path": "/jobs/nginx/1-sha"},
    ]
    engine.apply.return_value = True
    engine.spec_service = Mock()

    config_manager = AsyncMock()
    config_manager.desired_spec = None
    config_manager.settings = Mock()

    return engine, config_manager


@pytest_asyncio.fixture
async def client(mock_dependencies, tmp_path):
    engine, config_manager = mock_dependencies
    server_logic = AgentServer(tmp_path / "sock", None, 0, engine, config_manager)

    client = TestClient(TestServer(server_logic.app))
    await client.start_server()
    yield client
    await client.close()


async def post_command(client, command, args=None):
    resp = await client.post("/api/v1/command", json={"command": command, "args": args or {}})
    return resp.status, await resp.json()


@pytest.mark.asyncio
class TestAgentServer:
    """Test REST command handling."""

    async def test_status(self, client):
        status, data = await post_command(client, "status")

        assert status == 200
        assert data["success"] is True
        assert data["data"]["agent"] == {
            "running": True,
            "last_reconciliation": None,
            "address_broadcast": "done",
        }
        assert data["data"]["spec"]["deployment"] == "fake-deployment"

    async def test_unknown_command(self, client):
        status, data = await post_command(client, "invalid_cmd")

        assert status == 500
        assert data["success"] is False
        assert "Unknown command" in data["error"]

    async def test_jobs(self, client):
        status, data = await post_command(client, "jobs")

        assert status == 200
        assert data["data"]["jobs"][0]["name"] == "nginx"

    async def test_apply(self, client, mock_dependencies):
        engine, _ = mock_dependencies

        status, data = await post_command(client, "apply", {
            "spec": {"deployment": "fake-deployment", "index": 1},
            "force": True,
        })

        assert status == 200
        assert data["data"] == {"deployment": "fake-deployment", "applied": True}
        spec = engine.apply.await_args.args[0]
        assert isinstance(spec, ApplySpec)
        assert spec.index == 1
        assert engine.apply.await_args.kwargs == {"force": True}

    async def test_apply_requires_spec(self, client):
        status, data = await post_command(client, "apply")

        assert status == 500
        assert "Apply spec required" in data["error"]

    async def test_apply_error_is_reported(self, client, mock_dependencies):
        engine, _ = mock_dependencies
        engine.apply.side_effect = ApplySpecError("Network net1 is not found in settings")

        status, data = await post_command(client, "apply", {"spec": {}})

        assert status == 500
        assert data["error"] == "Network net1 is not found in settings"

    async def test_reconcile(self, client, mock_dependencies):
        engine, _ = mock_dependencies

        status, data = await post_command(client, "reconcile")

        assert data["data"] == {"reconciled": True}
        engine.reconcile.assert_awaited_once()

    async def test_reload(self, client, mock_dependencies):
        _, config_manager = mock_dependencies

        status, data = await post_command(client, "reload")

        assert data["data"] == {"reloaded": True}
        config_manager.load.assert_awaited_once()

    async def test_validate_resolves_desired_spec(self, client, mock_dependencies):
        engine, config_manager = mock_dependencies
        config_manager.desired_spec = ApplySpec()

        status, data = await post_command(client, "validate")

        assert data["data"]["valid"] is True
        engine.spec_service.populate_dhcp_networks.assert_called_once_with(
            config_manager.desired_spec, config_manager.settings
        )

    async def test_validate_failure(self, client, mock_dependencies):
        _, config_manager = mock_dependencies
        config_manager.load.side_effect = FileNotFoundError("Main config not found")

        status, data = await post_command(client, "validate")

        assert status == 500
        assert "Main config not found" in data["error"]
