"""Gratuitous ARP announcements after address changes."""

import asyncio
import logging
from typing import List, Optional

from keel.errors import NetworkError
from keel.network.ip import InterfaceAddress
from keel.utils.systemd import run_command


class ArpingAddressBroadcaster:
    """Announces interface addresses with ``arping -U``.

    Peers on the segment update their ARP caches from the announcements.
    Best effort: failures are logged, never raised.
    """

    def __init__(
        self,
        iterations: int = 6,
        interval: float = 0.5,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize broadcaster."""
        self.iterations = iterations
        self.interval = interval
        self.logger = logger or logging.getLogger(__name__)

    async def broadcast_mac_addresses(self, addresses: List[InterfaceAddress]) -> None:
        """Announce every address, interfaces in parallel."""
        await asyncio.gather(*(self._broadcast(address) for address in addresses))

    async def _broadcast(self, address: InterfaceAddress):
        interface_name = address.get_interface_name()
        try:
            ip = await address.get_ip()
        except NetworkError as e:
            self.logger.error(f"Skipping arping for {interface_name}: {e}")
            return

        for i in range(self.iterations):
            try:
                await run_command(
                    ["arping", "-c", "1", "-U", "-I", interface_name, ip],
                    check=False,
                )
            except OSError as e:
                self.logger.error(f"Failed to arping {interface_name} {ip}: {e}")
                return

            if i < self.iterations - 1:
                await asyncio.sleep(self.interval)

        self.logger.debug(f"Broadcast {interface_name} {ip}")
