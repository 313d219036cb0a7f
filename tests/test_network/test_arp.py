"""Tests for address broadcasting."""

from unittest.mock import AsyncMock, call, patch

import pytest

from keel.errors import NetworkError
from keel.network.arp import ArpingAddressBroadcaster
from keel.network.ip import SimpleInterfaceAddress


@pytest.mark.asyncio
class TestArpingAddressBroadcaster:
    """Test gratuitous ARP announcements."""

    async def test_broadcasts_each_address(self):
        broadcaster = ArpingAddressBroadcaster(iterations=2, interval=0)
        addresses = [
            SimpleInterfaceAddress("eth0", "10.0.0.5"),
            SimpleInterfaceAddress("eth1", "10.1.0.5"),
        ]

        with patch("keel.network.arp.run_command", new_callable=AsyncMock) as mock_run:
            await broadcaster.broadcast_mac_addresses(addresses)

        assert mock_run.await_count == 4
        mock_run.assert_has_awaits([
            call(["arping", "-c", "1", "-U", "-I", "eth0", "10.0.0.5"], check=False),
            call(["arping", "-c", "1", "-U", "-I", "eth1", "10.1.0.5"], check=False),
        ], any_order=True)

    async def test_unresolvable_address_is_skipped(self):
        broadcaster = ArpingAddressBroadcaster(iterations=1, interval=0)
        unresolvable = AsyncMock()
        unresolvable.get_interface_name = lambda: "eth0"
        unresolvable.get_ip.side_effect = NetworkError("fake-ip-error")

        with patch("keel.network.arp.run_command", new_callable=AsyncMock) as mock_run:
            await broadcaster.broadcast_mac_addresses([unresolvable])

        mock_run.assert_not_awaited()

    async def test_missing_arping_is_logged(self):
        broadcaster = ArpingAddressBroadcaster(iterations=3, interval=0)

        with patch("keel.network.arp.run_command", new_callable=AsyncMock, side_effect=FileNotFoundError("arping")) as mock_run:
            await broadcaster.broadcast_mac_addresses([SimpleInterfaceAddress("eth0", "10.0.0.5")])

        assert mock_run.await_count == 1
