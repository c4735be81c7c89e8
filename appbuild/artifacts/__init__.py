"""Artifact resolution module.

This module handles:
- Interesting file detection (plain and executable archives)
- Artifact pattern resolution from configuration
- Single and multi artifact resolution
"""

from appbuild.artifacts.interest import (
    AlwaysInteresting,
    ExecutableArchiveInteresting,
    get_detector,
)
from appbuild.artifacts.resolver import ArtifactResolver, resolve_arguments

__all__ = [
    "AlwaysInteresting",
    "ArtifactResolver",
    "ExecutableArchiveInteresting",
    "get_detector",
    "resolve_arguments",
]
