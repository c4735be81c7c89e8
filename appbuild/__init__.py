"""appbuild - build, cache and restore application build output.

This package runs an external build command inside an application
workspace, resolves the artifact(s) the build produced, captures them into
a persistent cache directory, removes the source tree and restores the
captured output into the workspace.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
