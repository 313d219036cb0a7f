"""Persistence and resolution of the last-applied apply spec."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from keel.errors import ApplySpecError
from keel.models.applyspec import ApplySpec
from keel.models.settings import Settings
from keel.utils.fs import write_file


class ApplySpecService:
    """Reads and writes the apply spec document at a fixed path.

    The persisted spec is the single source of truth for what should be
    running on this node. A node that has never been converged has no file;
    that is reported as the empty ``ApplySpec()``, not as an error.
    """

    def __init__(self, spec_path: Path, logger: Optional[logging.Logger] = None):
        """Initialize the service."""
        self.spec_path = Path(spec_path)
        self.logger = logger or logging.getLogger(__name__)

    async def get(self) -> ApplySpec:
        """Load the persisted spec."""
        try:
            content = await asyncio.to_thread(self.spec_path.read_text)
        except FileNotFoundError:
            self.logger.debug(f"No spec at {self.spec_path}, using empty spec")
            return ApplySpec()
        except OSError as e:
            raise ApplySpecError(f"Reading spec from {self.spec_path}", e) from e

        try:
            return ApplySpec.model_validate(json.loads(content))
        except ValueError as e:
            raise ApplySpecError(f"Parsing spec from {self.spec_path}", e) from e

    async def set(self, spec: ApplySpec) -> None:
        """Persist ``spec``, replacing any previous document."""
        content = json.dumps(spec.to_document(), sort_keys=True, indent=2)
        try:
            await asyncio.to_thread(write_file, self.spec_path, content)
        except OSError as e:
            raise ApplySpecError(f"Writing to {self.spec_path}", e) from e
        self.logger.debug(f"Saved apply spec to {self.spec_path}")

    def populate_dhcp_networks(self, spec: ApplySpec, settings: Settings) -> ApplySpec:
        """Resolve dynamic networks in ``spec`` against ``settings``.

        Returns a new spec; ``spec`` itself is left untouched. Fails as a
        whole if any dynamic network has no counterpart in settings.
        """
        resolved_specs = dict(spec.network_specs)

        for name, network_spec in spec.network_specs.items():
            if not network_spec.is_dynamic():
                continue

            network = settings.networks.get(name)
            if network is None:
                raise ApplySpecError(f"Network {name} is not found in settings")

            resolved_specs[name] = network_spec.with_resolved_address(
                network.ip, network.netmask, network.gateway
            )
            self.logger.debug(f"Resolved dynamic network {name} to {network.ip}")

        resolved = spec.model_copy(update={"network_specs": resolved_specs})
        # Normalized to the persisted form so it compares equal after a reload
        return ApplySpec.model_validate(resolved.to_document())
