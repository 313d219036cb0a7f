"""Tests for default network selection."""

from keel.models.settings import Network
from keel.network.resolver import DefaultNetworkResolver


def test_single_network_is_default_for_every_role():
    networks = {"net1": Network(ip="10.0.0.5")}

    resolver = DefaultNetworkResolver()

    assert resolver.default_network_for(networks, "dns") is networks["net1"]
    assert resolver.default_network_for(networks, "gateway") is networks["net1"]


def test_first_network_listing_role_wins():
    networks = {
        "net1": Network(ip="10.0.0.5", default=["gateway"]),
        "net2": Network(ip="10.1.0.5", default=["dns"]),
        "net3": Network(ip="10.2.0.5", default=["dns", "gateway"]),
    }

    resolver = DefaultNetworkResolver()

    assert resolver.default_network_for(networks, "dns") is networks["net2"]
    assert resolver.default_network_for(networks, "gateway") is networks["net1"]


def test_no_default():
    networks = {"net1": Network(ip="10.0.0.5"), "net2": Network(ip="10.1.0.5")}

    assert DefaultNetworkResolver().default_network_for(networks, "dns") is None
    assert DefaultNetworkResolver().default_network_for({}, "dns") is None
