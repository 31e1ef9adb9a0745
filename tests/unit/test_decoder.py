#
# tests/unit/test_decoder.py
#
"""
Tests for TapDecoder: nesting, YAML diagnostics, directives and bail-outs.
"""

import textwrap

from subtap.protocol import EventKind, TapDecoder


def decode(tap: str) -> list:
    decoder = TapDecoder()
    events = decoder.feed(textwrap.dedent(tap).lstrip("\n"))
    return events + decoder.end()


def kinds(events: list) -> list[EventKind]:
    return [event.kind for event in events]


class TestNesting:
    """Indentation becomes child and complete events."""

    def test_child_precedes_announcement_and_complete_precedes_summary(self) -> None:
        events = decode(
            """
            TAP version 13
                # Subtest: outer
                ok 1 - inner
                1..1
            ok 1 - outer # time=3ms
            """
        )
        assert kinds(events) == [
            EventKind.VERSION,
            EventKind.CHILD,
            EventKind.COMMENT,
            EventKind.ASSERT,
            EventKind.PLAN,
            EventKind.COMPLETE,
            EventKind.ASSERT,
            EventKind.COMPLETE,
        ]
        assert events[0].data == 13
        assert events[2].data == "# Subtest: outer"
        assert events[3].data.name == "inner"
        assert events[5].data.ok
        assert events[5].data.plan.count == 1
        assert events[6].data.name == "outer"
        assert events[6].data.time_ms == 3.0

    def test_depth_tracks_indentation(self) -> None:
        decoder = TapDecoder()
        decoder.feed("TAP version 13\n        # Subtest: deep\n")
        assert decoder.depth == 2

    def test_partial_lines_are_buffered(self) -> None:
        decoder = TapDecoder()
        events = decoder.feed("TAP vers")
        assert events == []
        events += decoder.feed("ion 13\nok 1 - a\n")
        events += decoder.end()
        assert kinds(events) == [EventKind.VERSION, EventKind.ASSERT, EventKind.COMPLETE]


class TestAssertions:
    """Assert lines, their diagnostics and level results."""

    def test_yaml_block_attaches_to_assert(self) -> None:
        events = decode(
            """
            TAP version 13
            not ok 1 - eq
              ---
              found: 1
              wanted: 2
              ...
            ok 2 - next
            """
        )
        failed = events[1].data
        assert not failed.ok
        assert failed.diag == {"found": 1, "wanted": 2}
        results = events[-1].data
        assert (results.count, results.passed, results.failed, results.ok) == (2, 1, 1, False)

    def test_unparseable_yaml_is_kept_as_text(self) -> None:
        events = decode(
            """
            TAP version 13
            not ok 1 - eq
              ---
              found: [unclosed
              ...
            """
        )
        assert events[1].data.diag == {"diagnostics": "found: [unclosed"}

    def test_todo_counts_as_passed(self) -> None:
        events = decode(
            """
            TAP version 13
            not ok 1 - later # TODO not written
            """
        )
        assertion = events[1].data
        assert assertion.todo == "not written"
        results = events[-1].data
        assert results.ok
        assert results.todo == 1

    def test_plan_mismatch_fails_level(self) -> None:
        events = decode(
            """
            TAP version 13
            1..2
            ok 1 - only one
            """
        )
        assert not events[-1].data.ok

    def test_missing_number_uses_position(self) -> None:
        events = decode(
            """
            TAP version 13
            ok - first
            ok - second
            """
        )
        assert [event.data.id for event in events if event.kind is EventKind.ASSERT] == [1, 2]


class TestOtherLines:
    """Versions, extras and bail-outs."""

    def test_non_tap_lines_are_extra(self) -> None:
        events = decode(
            """
            TAP version 13
            some printed text
            """
        )
        assert events[1].kind is EventKind.EXTRA
        assert events[1].data == "some printed text"

    def test_only_first_version_is_emitted(self) -> None:
        events = decode(
            """
            TAP version 13
            TAP version 13
            ok 1 - a
            """
        )
        assert kinds(events).count(EventKind.VERSION) == 1

    def test_low_versions_are_reported(self) -> None:
        events = decode("TAP version 12\n")
        assert events[0].kind is EventKind.VERSION
        assert events[0].data == 12

    def test_bail_out_stops_decoding(self) -> None:
        events = decode(
            """
            TAP version 13
                # Subtest: a
                not ok 1 - x
            Bail out! enough
            ok 2 - ignored
            """
        )
        assert kinds(events)[-2:] == [EventKind.ASSERT, EventKind.BAILOUT]
        assert events[-1].data == "enough"


def test_escaped_hash_stays_in_name() -> None:
    events = decode(
        """
        TAP version 13
        ok 1 - issue \\#12 # time=2ms
        """
    )
    assert events[1].data.name == "issue #12"
    assert events[1].data.time_ms == 2.0
