"""Keeps Grafana datasources in sync with Prometheus Operator resources."""
import os

__version__ = "0.1.0"

# Read from the environment when the package is imported.
__commit__ = os.environ.get("TIRESIAS_COMMIT_SHA1", "unknown")
__build_date__ = os.environ.get("TIRESIAS_BUILD_DATE", "unknown")
