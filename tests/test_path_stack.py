"""Tests for the path stack — the navigator's notion of "where am I"."""

import pytest

from bucket_shell.path_stack import PathStack

DEPTH_TWO = 2


class TestPathStack:
    """Verify push, pop, clear, and the read-only view."""

    def test_new_stack_is_root(self) -> None:
        """A fresh stack is positioned at the root."""
        stack = PathStack()
        assert stack.is_root
        assert stack.snapshot() == ()
        assert stack.top is None

    def test_push_appends(self) -> None:
        """Pushing descends one level."""
        stack = PathStack()
        stack.push(b"a")
        stack.push(b"b")
        assert stack.snapshot() == (b"a", b"b")
        assert stack.top == b"b"
        assert len(stack) == DEPTH_TWO

    def test_push_does_not_validate_existence(self) -> None:
        """The stack accepts any non-empty name; existence is checked elsewhere."""
        stack = PathStack()
        stack.push(b"nowhere")
        assert stack.snapshot() == (b"nowhere",)

    def test_push_empty_segment_rejected(self) -> None:
        """Segments may never be empty."""
        stack = PathStack()
        with pytest.raises(ValueError, match="empty"):
            stack.push(b"")

    def test_pop_removes_last(self) -> None:
        """Popping moves up one level."""
        stack = PathStack()
        stack.push(b"a")
        stack.push(b"b")
        stack.pop()
        assert stack.snapshot() == (b"a",)

    def test_pop_at_root_is_noop(self) -> None:
        """Moving up from the root stays at the root."""
        stack = PathStack()
        stack.pop()
        assert stack.is_root

    def test_clear_returns_to_root(self) -> None:
        """Clearing empties the stack."""
        stack = PathStack()
        stack.push(b"a")
        stack.push(b"b")
        stack.clear()
        assert stack.is_root

    def test_snapshot_is_detached(self) -> None:
        """A snapshot does not follow later changes."""
        stack = PathStack()
        stack.push(b"a")
        view = stack.snapshot()
        stack.push(b"b")
        assert view == (b"a",)
        assert isinstance(view, tuple)
