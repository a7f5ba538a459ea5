"""Tests for the selection module."""

import pytest

from codemap.exceptions import NotFoundError
from codemap.selection import MarkRegistry, Selection, complement, resolve_targets

ITEMS = ["a.c", "b.c", "c.c", "d.c"]


class TestResolveTargets:
    """Tests for the region > marks > cursor fallback."""

    def test_region_wins(self):
        """Test that an active region beats marks and cursor."""
        selection = Selection(ITEMS, cursor="a.c", marked=["b.c"], region=["c.c", "d.c"])
        assert resolve_targets(selection) == ["c.c", "d.c"]

    def test_marks_beat_cursor(self):
        """Test that marks are used when there is no region."""
        selection = Selection(ITEMS, cursor="a.c", marked=["d.c", "b.c"])
        assert resolve_targets(selection) == ["b.c", "d.c"]

    def test_cursor_fallback(self):
        """Test that the cursor item is used last."""
        assert resolve_targets(Selection(ITEMS, cursor="c.c")) == ["c.c"]

    def test_nothing_selected(self):
        """Test that no region, marks or cursor selects nothing."""
        assert resolve_targets(Selection(ITEMS)) == []

    def test_empty_region_falls_through(self):
        """Test that an empty region counts as no region."""
        assert resolve_targets(Selection(ITEMS, cursor="a.c", region=[])) == ["a.c"]

    def test_unknown_key(self):
        """Test that a region key outside the list is rejected."""
        with pytest.raises(NotFoundError):
            resolve_targets(Selection(ITEMS, region=["z.c"]))

    def test_complement(self):
        """Test the items left out of a target set."""
        selection = Selection(ITEMS)
        assert complement(selection, ["b.c", "c.c"]) == ["a.c", "d.c"]


class TestMarkRegistry:
    """Tests for transient marks."""

    def test_marks_are_per_list(self):
        """Test that marks of one list don't show in another."""
        marks = MarkRegistry()
        marks.mark("/p", (1, "a.c", None), ["run"])
        assert marks.marked("/p", (1, "a.c", None)) == {"run"}
        assert marks.marked("/p", (1, "b.c", None)) == set()

    def test_unmark_and_clear(self):
        """Test removing marks."""
        marks = MarkRegistry()
        marks.mark("/p", (0, None, None), ["a.c", "b.c"])
        marks.unmark("/p", (0, None, None), ["a.c"])
        assert marks.marked("/p", (0, None, None)) == {"b.c"}
        marks.clear("/p", (0, None, None))
        assert marks.marked("/p", (0, None, None)) == set()

    def test_rename_file_moves_marks(self):
        """Test that marks follow a renamed file."""
        marks = MarkRegistry()
        marks.mark("/p", (0, None, None), ["a.c"])
        marks.mark("/p", (1, "a.c", None), ["run"])
        marks.rename_file("/p", "a.c", "src/a.c")

        assert marks.marked("/p", (0, None, None)) == {"src/a.c"}
        assert marks.marked("/p", (1, "src/a.c", None)) == {"run"}
