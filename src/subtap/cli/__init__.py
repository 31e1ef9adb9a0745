#
# src/subtap/cli/__init__.py
#
