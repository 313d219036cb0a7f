"""Tests for the convergence engine."""

from unittest.mock import AsyncMock, Mock, call

import pytest
from ruamel.yaml import YAML

from keel.agent.engine import ConvergenceEngine
from keel.applier.applyspec import ApplySpecService
from keel.errors import ApplySpecError, JobApplierError, NetworkError
from keel.models.applyspec import ApplySpec
from keel.models.settings import Settings


def make_desired_spec():
    return ApplySpec.model_validate({
        "deployment": "fake-deployment",
        "index": 1,
        "networks": {"net1": {"type": "dynamic", "ip": "", "netmask": "", "gateway": ""}},
        "job": {"templates": [
            {"name": "nginx", "version": "1"},
            {"name": "haproxy", "version": "2"},
        ]},
        "rendered_templates_archive": {"sha1": "archive-sha1", "blobstore_id": "archive-id"},
    })


def dynamic_settings():
    return Settings.model_validate({"networks": {
        "net1": {"type": "dynamic", "ip": "10.0.0.5", "netmask": "255.255.255.0", "gateway": "10.0.0.1"},
    }})


def make_network_manager():
    manager = Mock()

    async def setup(networks, completion=None):
        if completion is not None:
            completion.set_result(None)

    manager.setup_dhcp = AsyncMock(side_effect=setup)
    manager.setup_manual_networking = AsyncMock(side_effect=setup)
    return manager


@pytest.fixture
def config_manager():
    manager = Mock()
    manager.settings = dynamic_settings()
    manager.desired_spec = make_desired_spec()
    return manager


@pytest.fixture
def spec_service(tmp_path):
    return ApplySpecService(tmp_path / "spec.json")


@pytest.fixture
def job_applier():
    return AsyncMock()


@pytest.fixture
def job_supervisor():
    return AsyncMock()


@pytest.fixture
def engine(config_manager, spec_service, job_applier, job_supervisor):
    return ConvergenceEngine(
        config_manager=config_manager,
        spec_service=spec_service,
        bundles=AsyncMock(),
        job_applier=job_applier,
        job_supervisor=job_supervisor,
        network_manager=make_network_manager(),
    )


@pytest.mark.asyncio
class TestApply:
    """Test a convergence pass."""

    async def test_apply_converges(self, engine, spec_service, job_applier, job_supervisor):
        desired = make_desired_spec()

        assert await engine.apply(desired) is True

        jobs = desired.jobs()
        assert job_applier.apply.await_args_list == [call(jobs[0]), call(jobs[1])]
        job_applier.keep_only.assert_awaited_once_with(jobs)
        assert job_applier.configure.await_args_list == [call(jobs[0], 1), call(jobs[1], 1)]
        job_supervisor.remove_all_jobs.assert_awaited_once()
        job_supervisor.reload.assert_awaited_once()
        engine.network_manager.setup_dhcp.assert_awaited_once()

        persisted = await spec_service.get()
        assert persisted.network_specs["net1"].ip == "10.0.0.5"
        assert persisted.network_specs["net1"].gateway == "10.0.0.1"
        assert engine.last_reconciliation is not None

    async def test_apply_skips_when_converged(self, engine, job_applier):
        await engine.apply(make_desired_spec())
        job_applier.reset_mock()

        assert await engine.apply(make_desired_spec()) is False

        job_applier.apply.assert_not_awaited()

    async def test_force_reapplies(self, engine, job_applier):
        await engine.apply(make_desired_spec())
        job_applier.reset_mock()

        assert await engine.apply(make_desired_spec(), force=True) is True

        assert job_applier.apply.await_count == 2

    async def test_manual_networking(self, engine, config_manager):
        config_manager.settings = Settings.model_validate({"networks": {
            "net1": {"ip": "10.0.0.5", "netmask": "255.255.255.0", "gateway": "10.0.0.1"},
        }})
        desired = ApplySpec.model_validate({"networks": {"net1": {"ip": "10.0.0.5"}}})

        await engine.apply(desired)

        engine.network_manager.setup_manual_networking.assert_awaited_once()
        engine.network_manager.setup_dhcp.assert_not_awaited()

    async def test_no_networks_in_settings(self, engine, config_manager):
        config_manager.settings = Settings()

        await engine.apply(ApplySpec(deployment="fake-deployment"))

        engine.network_manager.setup_dhcp.assert_not_awaited()
        engine.network_manager.setup_manual_networking.assert_not_awaited()

    async def test_unresolvable_network_changes_nothing(self, engine, config_manager, spec_service, job_applier):
        config_manager.settings = Settings()

        with pytest.raises(ApplySpecError, match="Network net1 is not found in settings"):
            await engine.apply(make_desired_spec())

        job_applier.apply.assert_not_awaited()
        engine.network_manager.setup_dhcp.assert_not_awaited()
        assert await spec_service.get() == ApplySpec()

    async def test_job_failure_does_not_persist(self, engine, spec_service, job_applier, job_supervisor):
        job_applier.apply.side_effect = JobApplierError("Getting job bundle", ValueError("fake-error"))

        with pytest.raises(JobApplierError):
            await engine.apply(make_desired_spec())

        job_supervisor.reload.assert_not_awaited()
        assert await spec_service.get() == ApplySpec()


@pytest.mark.asyncio
class TestReconcile:
    """Test reconciliation against the configured spec."""

    async def test_reconcile_applies_desired_spec(self, engine, job_applier):
        await engine.reconcile()

        assert job_applier.apply.await_count == 2

    async def test_reconcile_without_desired_spec(self, engine, config_manager, job_applier):
        config_manager.desired_spec = None

        await engine.reconcile()

        job_applier.apply.assert_not_awaited()


@pytest.mark.asyncio
class TestStatus:
    """Test status reporting."""

    async def test_status_before_apply(self, engine):
        status = await engine.get_status()

        assert status["last_reconciliation"] is None
        assert status["deployment"] == ""
        assert status["jobs"] == []
        assert status["address_broadcast"] is None

    async def test_status_after_apply(self, engine):
        await engine.apply(make_desired_spec())

        status = await engine.get_status()

        assert status["deployment"] == "fake-deployment"
        assert status["index"] == 1
        assert status["jobs"] == ["nginx", "haproxy"]
        assert status["networks"] == ["net1"]
        assert status["address_broadcast"] == "done"

    async def test_list_jobs(self, engine):
        bundle = Mock()
        bundle.name = "nginx"
        bundle.version = "1-archive-sha1"
        bundle.install_path = "/var/lib/keel/data/jobs/nginx/1-archive-sha1"
        bundle.is_enabled = AsyncMock(return_value=True)
        engine.bundles.list = AsyncMock(return_value=[bundle])

        assert await engine.list_jobs() == [{
            "name": "nginx",
            "version": "1-archive-sha1",
            "enabled": True,
            "path": "/var/lib/keel/data/jobs/nginx/1-archive-sha1",
        }]


@pytest.mark.asyncio
async def test_yaml_loaded_spec_converges_once(engine, job_applier):
    """A spec parsed from YAML is not reapplied on the next pass."""
    document = YAML(typ="safe").load("""
deployment: fake-deployment
properties:
  released: 2024-01-01
job:
  templates:
  - name: nginx
    version: 1
""")
    desired = ApplySpec.model_validate(document)

    assert await engine.apply(desired) is True
    assert await engine.apply(desired) is False

    assert job_applier.apply.await_count == 1


@pytest.mark.asyncio
async def test_failed_network_setup_leaves_no_pending_broadcast(engine):
    engine.network_manager.setup_dhcp.side_effect = NetworkError(
        "Writing to /etc/dhcp/dhclient.conf", OSError("fake-write-error")
    )

    with pytest.raises(NetworkError):
        await engine.apply(make_desired_spec())

    assert (await engine.get_status())["address_broadcast"] is None
