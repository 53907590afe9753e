"""repo-scm - resolve multi-repository manifests and build change logs between snapshots."""

__version__ = "0.1.0"
