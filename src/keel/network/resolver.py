"""Selection of the network that plays a role (dns, gateway) on this node."""

from typing import Dict, Optional

from keel.models.settings import Network


class DefaultNetworkResolver:
    """Picks the default network for a role.

    With a single network configured, that network is the default for every
    role. Otherwise the first network listing the role in its ``default``
    list wins, in settings order.
    """

    def default_network_for(self, networks: Dict[str, Network], category: str) -> Optional[Network]:
        if len(networks) == 1:
            return next(iter(networks.values()))

        for network in networks.values():
            if category in network.default:
                return network

        return None
