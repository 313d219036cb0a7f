"""Tests for agent wiring."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from keel.agent.main import KeelAgent
from keel.blobstore import LocalBlobstore


@pytest.fixture
def config_dir(tmp_path):
    config_dir = tmp_path / "configs"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text(f"""
agent:
  socket_path: keel.sock
  state_dir: {tmp_path / 'state'}
  reconciliation_interval: 5
paths:
  spec_path: {tmp_path / 'spec.json'}
  settings_path: {tmp_path / 'settings.json'}
  jobs_dir: {tmp_path / 'data' / 'jobs'}
  enabled_jobs_dir: {tmp_path / 'jobs'}
  monit_job_dir: {tmp_path / 'monit'}
blobstore:
  provider: local
  path: {tmp_path / 'blobs'}
""")
    return config_dir


@pytest.mark.asyncio
class TestKeelAgent:
    """Test agent initialization and loops."""

    async def test_initialize_builds_components(self, config_dir, tmp_path):
        agent = KeelAgent(config_dir=config_dir)

        with patch("keel.agent.main.SystemdDBus") as mock_dbus:
            mock_dbus.return_value.connect = AsyncMock()
            await agent.initialize()

        assert agent.server.socket_path == tmp_path / "state" / "keel.sock"
        assert agent.engine.spec_service.spec_path == tmp_path / "spec.json"
        assert agent.engine.bundles.install_root == tmp_path / "data" / "jobs"
        assert isinstance(agent.engine.job_applier.blobstore, LocalBlobstore)
        assert agent.engine.job_supervisor.job_dir == tmp_path / "monit"
        assert (tmp_path / "state").is_dir()

    async def test_reconciliation_loop_survives_errors(self, config_dir):
        agent = KeelAgent(config_dir=config_dir)
        with patch("keel.agent.main.SystemdDBus") as mock_dbus:
            mock_dbus.return_value.connect = AsyncMock()
            await agent.initialize()

        async def fail_then_stop():
            agent.shutdown()
            raise RuntimeError("fake-reconcile-error")

        agent.engine.reconcile = AsyncMock(side_effect=fail_then_stop)

        await agent._reconciliation_loop()

        agent.engine.reconcile.assert_awaited_once()


def test_default_config_dir():
    assert KeelAgent().config_dir == Path("./configs")
