"""Process supervisor integration."""

from keel.jobsupervisor.monit import MonitJobSupervisor

__all__ = ["MonitJobSupervisor"]
