#
# src/subtap/reports/stacks.py
#
"""
Trimming of the stack traces found in assertion diagnostics.

Stacks are strings of one frame per line, deepest call first, in the form
'function (path:line)'.
"""

import os
import re
from collections.abc import Iterable
from typing import Any

from subtap.protocol.events import Assertion
from subtap.runtime.call_stack import RUNNER_PATH


def drop_runner_trace(holder: dict[str, Any], at_path: str = RUNNER_PATH) -> None:
    """Removes frames of at_path: leading ones, and everything from the first later one."""
    stack = holder.get("stack")
    if not isinstance(stack, str):
        return
    forms = [f"({at_path}{os.sep}"]
    relative = os.path.relpath(at_path)
    if not relative.startswith(".."):
        forms.append(f"({relative}{os.sep}")

    def in_runner(line: str) -> bool:
        return any(form in line for form in forms)

    lines = stack.splitlines()
    while lines and in_runner(lines[0]):
        lines.pop(0)
    for index, line in enumerate(lines):
        if in_runner(line):
            lines = lines[:index]
            break
    _store(holder, lines)


def truncate_trace(holder: dict[str, Any], subpath: str) -> None:
    """Cuts the stack at the first frame below the deepest whose path contains subpath.

    subpath must match whole path components.
    """
    stack = holder.get("stack")
    if not isinstance(stack, str):
        return
    regex = re.compile(r"(^|[ (/])" + re.escape(subpath.strip("/")) + r"([ )/:]|$)")
    lines = stack.splitlines()
    for index, line in enumerate(lines):
        if index > 0 and regex.search(line):
            _store(holder, lines[:index])
            return


def truncate_assertion_stacks(
    assertion: Assertion, unstack_paths: Iterable[str] = (), runner_path: str = RUNNER_PATH
) -> None:
    """Trims the stacks in a failed assertion's diag and in a diag 'found' mapping."""
    if assertion.ok or not assertion.diag:
        return
    holders = [assertion.diag]
    found = assertion.diag.get("found")
    if isinstance(found, dict):
        holders.append(found)
    for holder in holders:
        drop_runner_trace(holder, runner_path)
        for subpath in unstack_paths:
            truncate_trace(holder, subpath)


def _store(holder: dict[str, Any], lines: list[str]) -> None:
    if lines:
        holder["stack"] = "\n".join(lines) + "\n"
    else:
        holder.pop("stack", None)


# 🔼⚙️
