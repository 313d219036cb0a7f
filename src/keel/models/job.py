"""Job models."""

from pydantic import BaseModel, ConfigDict, Field


class JobSource(BaseModel):
    """Where a job's rendered content lives in the blobstore."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    sha1: str = ""
    blobstore_id: str = ""
    path_in_archive: str = ""


class Job(BaseModel):
    """A single installable job."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str = Field(..., description="Job name")
    version: str = Field(..., description="Job template version")
    source: JobSource = Field(default_factory=JobSource)

    def bundle_name(self) -> str:
        return self.name

    def bundle_version(self) -> str:
        # Keyed by content as well, a re-rendered archive installs anew.
        return f"{self.version}-{self.source.sha1}"
