#
# src/subtap/runtime/__init__.py
#
"""
Worker processes and the supervisor that runs them.
"""
