"""Build orchestration module.

This module handles:
- Cache fingerprint computation
- Running the build command
- Capturing, verifying and restoring build output
- Source removal, SBOM scanning and provenance
- Run records
"""

from appbuild.builds.models import ProvenanceRecord, RunRecord

__all__ = ["ProvenanceRecord", "RunRecord"]

# Submodules are imported explicitly, e.g. appbuild.builds.application
