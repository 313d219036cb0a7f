"""Configuration models."""

from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentConfig(BaseModel):
    """Agent configuration."""
    socket_path: str = Field(default="./state/keel-agent.sock")
    host: Optional[str] = None
    port: int = Field(default=6868)
    reconciliation_interval: int = Field(default=30, ge=5)
    log_level: str = Field(default="INFO")
    config_dir: str = Field(default="./configs")
    state_dir: str = Field(default="./state")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


class PathsConfig(BaseModel):
    """Agent-owned filesystem locations."""
    spec_path: str = Field(default="/var/lib/keel/spec.json")
    settings_path: str = Field(default="/var/lib/keel/settings.json")
    jobs_dir: str = Field(default="/var/lib/keel/data/jobs")
    enabled_jobs_dir: str = Field(default="/var/lib/keel/jobs")
    monit_job_dir: str = Field(default="/var/lib/keel/monit/job")
    tmp_dir: Optional[str] = None


class NetworkConfig(BaseModel):
    """OS network configuration paths and commands."""
    dhcp_config_path: str = Field(default="/etc/dhcp/dhclient.conf")
    resolv_conf_path: str = Field(default="/etc/resolv.conf")
    ifcfg_dir: str = Field(default="/etc/sysconfig/network-scripts")
    sys_class_net_dir: str = Field(default="/sys/class/net")
    restart_unit: str = Field(default="network.service")
    primary_interface: str = Field(default="eth0")
    arping_iterations: int = Field(default=6, ge=1)
    arping_interval: float = Field(default=0.5, ge=0)


class BlobstoreConfig(BaseModel):
    """Blobstore configuration."""
    provider: Literal["local", "dav"] = Field(default="local")
    path: str = Field(default="/var/lib/keel/blobs")
    endpoint: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None


class KeelConfig(BaseModel):
    """Main configuration model."""
    model_config = ConfigDict(extra="ignore")

    agent: AgentConfig = Field(default_factory=AgentConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    blobstore: BlobstoreConfig = Field(default_factory=BlobstoreConfig)
