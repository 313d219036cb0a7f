"""
Keel - node agent that converges a machine to a declarative apply spec.

Installs versioned jobs, registers them with the process supervisor and
configures the node's networking from settings pushed by an orchestrator.
"""

__version__ = "1.0.0"
__author__ = "Keel Development Team"

# Re-export key components for easier access
from keel.models.config import KeelConfig
from keel.models.applyspec import ApplySpec, NetworkSpec
from keel.models.settings import Settings
from keel.models.job import Job

__all__ = [
    "KeelConfig",
    "ApplySpec",
    "NetworkSpec",
    "Settings",
    "Job",
]
