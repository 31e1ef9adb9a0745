#
# src/subtap/harness/__init__.py
#
"""
The API test files use: test(name, fn) and the Test assertion object.
"""
from .core import BailOut, HarnessOptions, TapWriter, Test
from .registrar import NumberedRegistrar, current_registrar, install_registrar, test

__all__ = [
    "BailOut",
    "HarnessOptions",
    "NumberedRegistrar",
    "TapWriter",
    "Test",
    "current_registrar",
    "install_registrar",
    "test",
]

# 🔼⚙️
