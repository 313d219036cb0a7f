"""Node network configuration."""

from keel.network.arp import ArpingAddressBroadcaster
from keel.network.ip import (
    IPResolver,
    InterfaceAddress,
    ResolvingInterfaceAddress,
    SimpleInterfaceAddress,
    calculate_network_and_broadcast,
)
from keel.network.manager import CustomNetwork, NetworkManager
from keel.network.resolver import DefaultNetworkResolver

__all__ = [
    "ArpingAddressBroadcaster",
    "CustomNetwork",
    "DefaultNetworkResolver",
    "IPResolver",
    "InterfaceAddress",
    "NetworkManager",
    "ResolvingInterfaceAddress",
    "SimpleInterfaceAddress",
    "calculate_network_and_broadcast",
]
