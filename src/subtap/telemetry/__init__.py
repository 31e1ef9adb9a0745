#
# src/subtap/telemetry/__init__.py
#
"""
Logging setup for subtap.
"""
from .logger import StructLogger, setup_logging

__all__ = ["StructLogger", "setup_logging"]

# 🔼⚙️
