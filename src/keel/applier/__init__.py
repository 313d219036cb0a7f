"""Apply spec persistence, bundles and job application."""

from keel.applier.applyspec import ApplySpecService
from keel.applier.bundles import FileBundle, FileBundleCollection
from keel.applier.jobs import JobApplier

__all__ = [
    "ApplySpecService",
    "FileBundle",
    "FileBundleCollection",
    "JobApplier",
]
