"""Tests for settings models."""

from keel.models.settings import Settings


def test_settings_parse_networks():
    """Test settings parsing keeps network order and ignores unknown keys."""
    settings = Settings.model_validate({
        "agent_id": "agent-1",
        "blobstore": {"provider": "dav"},
        "networks": {
            "net1": {
                "type": "dynamic",
                "ip": "10.0.0.5",
                "netmask": "255.255.255.0",
                "gateway": "10.0.0.1",
                "dns": ["8.8.8.8", "8.8.4.4"],
                "default": ["dns", "gateway"],
            },
            "net2": {"ip": "10.1.0.5", "mac": "AA:BB:CC:DD:EE:FF"},
        },
    })

    assert settings.agent_id == "agent-1"
    assert list(settings.networks) == ["net1", "net2"]
    assert settings.networks["net1"].is_dynamic()
    assert not settings.networks["net2"].is_dynamic()
    assert settings.networks["net2"].dns == []
    assert settings.networks["net2"].mac == "AA:BB:CC:DD:EE:FF"


def test_empty_settings():
    settings = Settings()

    assert settings.agent_id == ""
    assert settings.networks == {}
