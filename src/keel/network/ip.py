"""IP address helpers and interface address lookups."""

import ipaddress
import logging
import re
import subprocess
from abc import ABC, abstractmethod
from typing import Tuple

from keel.errors import NetworkError
from keel.utils.systemd import run_command


logger = logging.getLogger(__name__)

_INET_RE = re.compile(r"\binet\s+(\d+\.\d+\.\d+\.\d+)/\d+")


def calculate_network_and_broadcast(ip: str, netmask: str) -> Tuple[str, str]:
    """Return the network and broadcast addresses of ``ip``/``netmask``."""
    try:
        ip_int = int(ipaddress.IPv4Address(ip))
        mask_int = int(ipaddress.IPv4Address(netmask))
    except ValueError as e:
        raise NetworkError("Calculating network and broadcast", e) from e

    network = ip_int & mask_int
    broadcast = network | (~mask_int & 0xFFFFFFFF)
    return str(ipaddress.IPv4Address(network)), str(ipaddress.IPv4Address(broadcast))


class IPResolver:
    """Looks up an interface's current IPv4 address."""

    async def get_primary_ipv4(self, interface_name: str) -> str:
        try:
            result = await run_command(["ip", "-4", "-o", "addr", "show", "dev", interface_name])
        except (OSError, subprocess.CalledProcessError) as e:
            raise NetworkError(f"Getting addresses of {interface_name}", e) from e

        match = _INET_RE.search(result.stdout)
        if not match:
            raise NetworkError(f"No IPv4 address found for {interface_name}")
        return match.group(1)


class InterfaceAddress(ABC):
    """An interface name and the address it should be announced with."""

    @abstractmethod
    def get_interface_name(self) -> str:
        pass

    @abstractmethod
    async def get_ip(self) -> str:
        pass


class SimpleInterfaceAddress(InterfaceAddress):
    """Address known up front."""

    def __init__(self, interface_name: str, ip: str):
        self.interface_name = interface_name
        self.ip = ip

    def get_interface_name(self) -> str:
        return self.interface_name

    async def get_ip(self) -> str:
        return self.ip

    def __repr__(self):
        return f"SimpleInterfaceAddress({self.interface_name!r}, {self.ip!r})"


class ResolvingInterfaceAddress(InterfaceAddress):
    """Address looked up from the interface when first asked for."""

    def __init__(self, interface_name: str, ip_resolver: IPResolver):
        self.interface_name = interface_name
        self.ip_resolver = ip_resolver
        self._ip = None

    def get_interface_name(self) -> str:
        return self.interface_name

    async def get_ip(self) -> str:
        if self._ip is None:
            self._ip = await self.ip_resolver.get_primary_ipv4(self.interface_name)
        return self._ip

    def __repr__(self):
        return f"ResolvingInterfaceAddress({self.interface_name!r})"
