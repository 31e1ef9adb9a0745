#
# tests/unit/test_harness.py
#
"""
Tests for the harness: the TAP a Test writes, and root test registration.
"""

import os
import re

import pytest

from subtap.config import TestSelection
from subtap.harness import BailOut, HarnessOptions, NumberedRegistrar, TapWriter, Test
from subtap.harness.core import to_plain
from subtap.protocol import EventKind, TapDecoder


class Recorder:
    """Collects the chunks a TapWriter sends."""

    def __init__(self):
        self.chunks: list[str] = []

    @property
    def text(self) -> str:
        return "".join(self.chunks)

    def events(self) -> list:
        decoder = TapDecoder()
        return decoder.feed("TAP version 13\n" + self.text) + decoder.end()


def make_root(**options) -> tuple[Test, Recorder]:
    recorder = Recorder()
    root = Test("", TapWriter(recorder.chunks.append), HarnessOptions(cwd=os.getcwd(), **options))
    return root, recorder


def asserts(events: list) -> list:
    return [event.data for event in events if event.kind is EventKind.ASSERT]


class TestAssertions:
    """Result lines and diagnostics of a nested test."""

    def test_passing_subtest(self) -> None:
        root, recorder = make_root()

        def body(t: Test) -> None:
            t.ok(True)
            t.equal(2, 2)

        assert root.run_subtest("adds", body) is True
        lines = recorder.text.splitlines()
        assert lines[0] == "    # Subtest: adds"
        assert lines[1] == "    ok 1 - should be truthy"
        assert lines[2] == "    ok 2 - should be equal"
        assert lines[3] == "    1..2"
        assert re.match(r"^ok 1 - adds # time=\d+\.\d{3}ms$", lines[4])

    def test_failed_equal_carries_found_and_wanted(self) -> None:
        root, recorder = make_root()
        root.run_subtest("compares", lambda t: t.equal(1, 2))

        failed = asserts(recorder.events())[0]
        assert not failed.ok
        assert failed.diag["found"] == 1
        assert failed.diag["wanted"] == 2
        assert failed.diag["compare"] == "==="
        assert failed.diag["at"]["file"].endswith("test_harness.py")
        assert "test_harness.py" in failed.diag["stack"]

    def test_equal_is_strict_about_types(self) -> None:
        root, _ = make_root()
        child = Test("x", root.writer, root.options, depth=1)
        assert child.equal(1, 1.0) is False
        assert child.same(1, 1.0) is True

    def test_not_equal_uses_do_not_want(self) -> None:
        root, recorder = make_root()
        root.run_subtest("differs", lambda t: t.not_equal("a", "a"))
        failed = asserts(recorder.events())[0]
        assert failed.diag["doNotWant"] == "a"

    def test_match_and_raises(self) -> None:
        root, _ = make_root()
        child = Test("x", root.writer, root.options, depth=1)
        assert child.match("hello world", r"wor")
        assert not child.match(42, r"4")
        assert child.raises(lambda: int("x"), ValueError)
        assert not child.raises(lambda: None)

    def test_structures_and_functions_become_plain_values(self) -> None:
        def helper(x):
            return x

        plain = to_plain({"items": (1, {2}), "fn": helper, 3: object})
        assert plain["items"] == [1, [2]]
        assert plain["fn"].startswith("def helper(x):")
        assert plain["3"] == repr(object)

    def test_comments_are_indented(self) -> None:
        root, recorder = make_root()
        root.run_subtest("talks", lambda t: t.comment("one\ntwo"))
        assert "    # one\n    # two\n" in recorder.text

    def test_nested_subtests_summarize_in_parent(self) -> None:
        root, recorder = make_root()

        def outer(t: Test) -> None:
            t.test("inner", lambda inner: inner.fail("nope"))

        assert root.run_subtest("outer", outer) is False
        text = recorder.text
        assert "        # Subtest: inner\n" in text
        assert "        not ok 1 - nope\n" in text
        assert re.search(r"\n    not ok 1 - inner # time=", text)
        events = recorder.events()
        completes = [event.data for event in events if event.kind is EventKind.COMPLETE]
        assert [results.ok for results in completes] == [False, False, False]

    def test_async_bodies_are_awaited(self) -> None:
        root, _ = make_root()

        async def body(t: Test) -> None:
            t.pass_("awaited")

        assert root.run_subtest("async", body) is True

    def test_names_cannot_start_directives(self) -> None:
        root, recorder = make_root()
        root.run_subtest("x", lambda t: t.pass_("issue #12"))
        assert "ok 1 - issue \\#12" in recorder.text


class TestExceptions:
    """Exceptions raised by test bodies."""

    def test_exceptions_propagate_by_default(self) -> None:
        root, _ = make_root()
        with pytest.raises(ValueError):
            root.run_subtest("raises", lambda t: int("x"))

    def test_caught_exceptions_become_failures(self) -> None:
        root, recorder = make_root(catch_exceptions=True)

        def body(t: Test) -> None:
            raise RuntimeError("boom")

        assert root.run_subtest("raises", body) is False
        failed = asserts(recorder.events())[0]
        assert failed.name == "RuntimeError: boom"
        assert "body (" in failed.diag["stack"]

    def test_bail_on_fail(self) -> None:
        root, recorder = make_root(bail_on_fail=True)
        with pytest.raises(BailOut):
            root.run_subtest("fails", lambda t: t.fail("first"))
        assert recorder.chunks[-1] == "Bail out! first\n"


class TestRegistrar:
    """Numbering, selection, locations and the failure budget."""

    def test_numbering_continues_from_prior_files(self) -> None:
        root, recorder = make_root()
        registrar = NumberedRegistrar(root, prior_test_number=2)
        registrar.register("third", lambda t: t.pass_(), location="tests/a.py:1")
        assert registrar.test_number == 3
        assert "    # Subtest: [3] third (tests/a.py:1)\n" in recorder.text

    def test_unselected_tests_do_not_run(self) -> None:
        root, recorder = make_root()
        registrar = NumberedRegistrar(root, selection=TestSelection(((2, 2),)))
        ran = []
        assert registrar.register("one", ran.append, location="") is None
        assert registrar.register("two", ran.append, location="") is True
        assert len(ran) == 1
        assert "[1] one" not in recorder.text
        assert "# Subtest: [2] two\n" in recorder.text

    def test_location_is_relative_to_cwd(self) -> None:
        root, recorder = make_root()
        cwd = os.path.dirname(os.path.abspath(__file__))
        pattern = "^" + re.escape(cwd + os.sep) + "(.+:[0-9]+)$"
        registrar = NumberedRegistrar(root, location_pattern=pattern)
        registrar.register("located", lambda t: t.pass_())
        assert re.search(r"# Subtest: \[1\] located \(test_harness\.py:\d+\)", recorder.text)

    def test_failure_budget_bails_out(self) -> None:
        root, recorder = make_root()
        registrar = NumberedRegistrar(root, failed_tests=1, max_failed_tests=2)
        with pytest.raises(BailOut, match="Aborted after 2 failed root tests"):
            registrar.register("fails", lambda t: t.fail(), location="")
        assert recorder.chunks[-1] == "Bail out! Aborted after 2 failed root tests\n"

    def test_root_plan_is_its_own_chunk(self) -> None:
        root, recorder = make_root()
        NumberedRegistrar(root).register("one", lambda t: t.pass_(), location="")
        root.end()
        root.end()
        assert recorder.chunks[-1] == "1..1\n"
        assert recorder.chunks.count("1..1\n") == 1
