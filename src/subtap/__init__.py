#
# src/subtap/__init__.py
#
"""
subtap: runs Python test files in isolated worker processes and renders
their TAP streams as a live, styled terminal report.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("subtap")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

# 🔼⚙️
