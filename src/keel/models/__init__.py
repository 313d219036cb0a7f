"""Pydantic models for configuration, settings and apply specs."""

from keel.models.config import (
    KeelConfig,
    AgentConfig,
    PathsConfig,
    NetworkConfig,
    BlobstoreConfig,
)
from keel.models.applyspec import (
    ApplySpec,
    NetworkSpec,
    JobSpec,
    JobTemplateSpec,
    PackageSpec,
    RenderedTemplatesArchiveSpec,
    NETWORK_SPEC_TYPE_DYNAMIC,
)
from keel.models.job import Job, JobSource
from keel.models.settings import Settings, Network

__all__ = [
    "KeelConfig",
    "AgentConfig",
    "PathsConfig",
    "NetworkConfig",
    "BlobstoreConfig",
    "ApplySpec",
    "NetworkSpec",
    "JobSpec",
    "JobTemplateSpec",
    "PackageSpec",
    "RenderedTemplatesArchiveSpec",
    "NETWORK_SPEC_TYPE_DYNAMIC",
    "Job",
    "JobSource",
    "Settings",
    "Network",
]
