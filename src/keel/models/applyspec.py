"""Apply spec models.

The apply spec is the desired-state document pushed by the orchestrator. Only
the parts the agent acts on are modelled explicitly; everything else is kept
as-is so that a persisted spec round-trips without loss.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, RootModel

from keel.models.job import Job, JobSource


NETWORK_SPEC_TYPE_DYNAMIC = "dynamic"

# The only network spec keys ever rewritten when resolving dynamic networks
RESOLVED_NETWORK_KEYS = ("ip", "netmask", "gateway")


class NetworkSpec(RootModel[Dict[str, Any]]):
    """Open mapping describing one network as rendered by the orchestrator."""
    root: Dict[str, Any] = Field(default_factory=dict)

    @property
    def fields(self) -> Dict[str, Any]:
        return self.root

    @property
    def type(self) -> Optional[str]:
        return self.root.get("type")

    @property
    def ip(self) -> Optional[str]:
        return self.root.get("ip")

    @property
    def netmask(self) -> Optional[str]:
        return self.root.get("netmask")

    @property
    def gateway(self) -> Optional[str]:
        return self.root.get("gateway")

    def is_dynamic(self) -> bool:
        """Check whether the address must be resolved at apply time."""
        return self.type == NETWORK_SPEC_TYPE_DYNAMIC

    def with_resolved_address(self, ip: str, netmask: str, gateway: str) -> "NetworkSpec":
        """Return a copy with ip/netmask/gateway replaced.

        Keys absent from the spec stay absent; all other keys pass through.
        """
        resolved = {"ip": ip, "netmask": netmask, "gateway": gateway}
        fields = dict(self.root)
        for key in RESOLVED_NETWORK_KEYS:
            if key in fields:
                fields[key] = resolved[key]
        return NetworkSpec(fields)


class JobTemplateSpec(BaseModel):
    """One job template referenced by the apply spec."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str = ""
    version: str = ""
    sha1: str = ""
    blobstore_id: str = ""


class JobSpec(BaseModel):
    """Job section of the apply spec."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str = ""
    template: str = ""
    version: str = ""
    sha1: str = ""
    blobstore_id: str = ""
    templates: List[JobTemplateSpec] = Field(default_factory=list)


class PackageSpec(BaseModel):
    """Compiled package reference."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str = ""
    version: str = ""
    sha1: str = ""
    blobstore_id: str = ""


class RenderedTemplatesArchiveSpec(BaseModel):
    """Archive holding every rendered job template for this instance."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    sha1: str = ""
    blobstore_id: str = ""


class ApplySpec(BaseModel):
    """Desired-state document for this node."""
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    deployment: str = ""
    index: int = 0
    job: JobSpec = Field(default_factory=JobSpec)
    packages: Dict[str, PackageSpec] = Field(default_factory=dict)
    network_specs: Dict[str, NetworkSpec] = Field(default_factory=dict, alias="networks")
    configuration_hash: str = ""
    properties: Dict[str, Any] = Field(default_factory=dict)
    resource_pool: Any = None
    persistent_disk: int = 0
    rendered_templates_archive: RenderedTemplatesArchiveSpec = Field(
        default_factory=RenderedTemplatesArchiveSpec
    )

    def jobs(self) -> List[Job]:
        """Jobs to install, one per template in the rendered archive."""
        archive = self.rendered_templates_archive
        return [
            Job(
                name=template.name,
                version=template.version,
                source=JobSource(
                    sha1=archive.sha1,
                    blobstore_id=archive.blobstore_id,
                    path_in_archive=template.name,
                ),
            )
            for template in self.job.templates
        ]

    def to_document(self) -> Dict[str, Any]:
        """Serialize using the wire field names."""
        return self.model_dump(mode="json", by_alias=True)
