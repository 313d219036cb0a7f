"""Settings models.

Settings are the platform's ground truth about this machine (agent id, actual
network assignments). The agent reads them but never writes them.
"""

from typing import Dict, List
from pydantic import BaseModel, ConfigDict, Field


NETWORK_TYPE_DYNAMIC = "dynamic"
NETWORK_TYPE_MANUAL = "manual"


class Network(BaseModel):
    """Network assignment for one named network."""
    model_config = ConfigDict(extra="ignore")

    type: str = ""
    ip: str = ""
    netmask: str = ""
    gateway: str = ""
    dns: List[str] = Field(default_factory=list)
    default: List[str] = Field(default_factory=list)
    mac: str = ""

    def is_dynamic(self) -> bool:
        return self.type == NETWORK_TYPE_DYNAMIC


class Settings(BaseModel):
    """Platform-provided settings."""
    model_config = ConfigDict(extra="ignore")

    agent_id: str = ""
    networks: Dict[str, Network] = Field(default_factory=dict)
