"""Renders OS network configuration from settings and applies it."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set

from jinja2 import TemplateError

from keel.errors import NetworkError
from keel.models.config import NetworkConfig
from keel.models.settings import Network
from keel.network.arp import ArpingAddressBroadcaster
from keel.network.ip import (
    InterfaceAddress,
    IPResolver,
    ResolvingInterfaceAddress,
    SimpleInterfaceAddress,
    calculate_network_and_broadcast,
)
from keel.network.resolver import DefaultNetworkResolver
from keel.utils.fs import converge_file_contents, write_file
from keel.utils.systemd import SystemdDBus
from keel.utils.templates import render_template


# DNS servers go on a single prepend line so they keep the order given in
# settings and take precedence over servers handed out by DHCP.
DHCP_CONFIG_TEMPLATE = """# Generated by keel-agent

option rfc3442-classless-static-routes code 121 = array of unsigned integer 8;

send host-name = gethostname();

request subnet-mask, broadcast-address, time-offset, routers,
	domain-name, domain-name-servers, domain-search, host-name,
	netbios-name-servers, netbios-scope, interface-mtu,
	rfc3442-classless-static-routes, ntp-servers;
{% if dns_servers %}
prepend domain-name-servers {{ dns_servers | join(", ") }};
{% endif %}"""

IFCFG_TEMPLATE = """DEVICE={{ net.interface }}
BOOTPROTO=static
IPADDR={{ net.network.ip }}
NETMASK={{ net.network.netmask }}
BROADCAST={{ net.broadcast }}
{% if net.has_default_gateway %}GATEWAY={{ net.network.gateway }}
{% endif %}ONBOOT=yes
"""

RESOLV_CONF_TEMPLATE = """# Generated by keel-agent
{% for server in dns_servers %}nameserver {{ server }}
{% endfor %}"""


@dataclass
class CustomNetwork:
    """A settings network enriched with what is needed to render ifcfg."""
    network: Network
    interface: str
    network_address: str
    broadcast: str
    has_default_gateway: bool


class NetworkManager:
    """Configures DHCP or static networking on the node.

    Both entry points return once the configuration files are written and the
    network service restarted. Announcing the new addresses happens in a
    background task afterwards; pass a future as ``completion`` to learn when
    it has finished.
    """

    def __init__(
        self,
        config: NetworkConfig,
        systemd: SystemdDBus,
        default_network_resolver: DefaultNetworkResolver,
        ip_resolver: IPResolver,
        address_broadcaster: ArpingAddressBroadcaster,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize network manager."""
        self.config = config
        self.systemd = systemd
        self.default_network_resolver = default_network_resolver
        self.ip_resolver = ip_resolver
        self.address_broadcaster = address_broadcaster
        self.logger = logger or logging.getLogger(__name__)
        self._broadcast_tasks: Set[asyncio.Task] = set()

    async def setup_dhcp(
        self,
        networks: Dict[str, Network],
        completion: Optional[asyncio.Future] = None,
    ) -> None:
        """Write the DHCP client config and restart networking if it changed."""
        self.logger.debug("Configuring DHCP networking")

        dns_servers = self._dns_servers(networks)
        try:
            content = render_template(DHCP_CONFIG_TEMPLATE, dns_servers=dns_servers)
        except TemplateError as e:
            raise NetworkError("Generating config from template", e) from e

        dhcp_config_path = Path(self.config.dhcp_config_path)
        try:
            written = await asyncio.to_thread(converge_file_contents, dhcp_config_path, content)
        except OSError as e:
            raise NetworkError(f"Writing to {dhcp_config_path}", e) from e

        if written:
            await self._restart_network()

        addresses = [
            ResolvingInterfaceAddress(self.config.primary_interface, self.ip_resolver),
        ]
        self._broadcast_in_background(addresses, completion)

    async def setup_manual_networking(
        self,
        networks: Dict[str, Network],
        completion: Optional[asyncio.Future] = None,
    ) -> None:
        """Write static interface configs and resolv.conf, then restart networking."""
        self.logger.debug("Configuring manual networking")

        try:
            custom_networks = await self._write_ifcfgs(networks)
        except NetworkError as e:
            raise NetworkError("Writing network interfaces", e) from e

        await self._restart_network()

        try:
            await self._write_resolv_conf(networks)
        except NetworkError as e:
            raise NetworkError("Writing resolv.conf", e) from e

        addresses = [
            SimpleInterfaceAddress(custom.interface, custom.network.ip)
            for custom in custom_networks
        ]
        self._broadcast_in_background(addresses, completion)

    async def wait_for_broadcasts(self) -> None:
        """Wait for outstanding address broadcasts."""
        if self._broadcast_tasks:
            await asyncio.gather(*self._broadcast_tasks, return_exceptions=True)

    def _dns_servers(self, networks: Dict[str, Network]) -> List[str]:
        dns_network = self.default_network_resolver.default_network_for(networks, "dns")
        return list(dns_network.dns) if dns_network else []

    async def _write_ifcfgs(self, networks: Dict[str, Network]) -> List[CustomNetwork]:
        try:
            interfaces_by_mac = await asyncio.to_thread(self._detect_mac_addresses)
        except NetworkError as e:
            raise NetworkError("Detecting mac addresses", e) from e

        gateway_network = self.default_network_resolver.default_network_for(networks, "gateway")
        if gateway_network is None:
            raise NetworkError("Finding network for default gateway")

        custom_networks = []
        ifcfg_dir = Path(self.config.ifcfg_dir)

        for name, network in networks.items():
            network_address, broadcast = calculate_network_and_broadcast(network.ip, network.netmask)

            interface = interfaces_by_mac.get(network.mac.lower())
            if not interface:
                raise NetworkError(f"Finding interface for MAC address {network.mac} of network {name}")

            custom = CustomNetwork(
                network=network,
                interface=interface,
                network_address=network_address,
                broadcast=broadcast,
                has_default_gateway=network.ip == gateway_network.ip,
            )
            custom_networks.append(custom)

            try:
                content = render_template(IFCFG_TEMPLATE, net=custom)
            except TemplateError as e:
                raise NetworkError("Generating config from template", e) from e

            ifcfg_path = ifcfg_dir / f"ifcfg-{interface}"
            try:
                await asyncio.to_thread(write_file, ifcfg_path, content)
            except OSError as e:
                raise NetworkError(f"Writing to {ifcfg_path}", e) from e

        return custom_networks

    async def _write_resolv_conf(self, networks: Dict[str, Network]):
        try:
            content = render_template(RESOLV_CONF_TEMPLATE, dns_servers=self._dns_servers(networks))
        except TemplateError as e:
            raise NetworkError("Generating config from template", e) from e

        resolv_conf_path = Path(self.config.resolv_conf_path)
        try:
            await asyncio.to_thread(write_file, resolv_conf_path, content)
        except OSError as e:
            raise NetworkError(f"Writing to {resolv_conf_path}", e) from e

    def _detect_mac_addresses(self) -> Dict[str, str]:
        sys_class_net = Path(self.config.sys_class_net_dir)
        try:
            interface_dirs = sorted(sys_class_net.iterdir())
        except OSError as e:
            raise NetworkError(f"Getting file list from {sys_class_net}", e) from e

        interfaces_by_mac = {}
        for interface_dir in interface_dirs:
            if not interface_dir.is_dir():
                continue
            try:
                mac = (interface_dir / "address").read_text().strip()
            except OSError as e:
                raise NetworkError("Reading mac address from file", e) from e
            interfaces_by_mac[mac.lower()] = interface_dir.name

        return interfaces_by_mac

    async def _restart_network(self):
        unit = self.config.restart_unit
        self.logger.debug(f"Restarting networking ({unit})")
        try:
            await self.systemd.restart_unit(unit)
        except Exception as e:
            self.logger.error(f"Ignoring network restart failure: {e}")

    def _broadcast_in_background(
        self,
        addresses: List[InterfaceAddress],
        completion: Optional[asyncio.Future],
    ):
        async def broadcast():
            try:
                await self.address_broadcaster.broadcast_mac_addresses(addresses)
            except Exception as e:
                self.logger.error(f"Address broadcast failed: {e}")
                if completion is not None and not completion.done():
                    completion.set_exception(e)
                return

            if completion is not None and not completion.done():
                completion.set_result(None)

        task = asyncio.create_task(broadcast())
        self._broadcast_tasks.add(task)
        task.add_done_callback(self._broadcast_tasks.discard)
