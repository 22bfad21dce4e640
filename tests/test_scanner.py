"""Unit tests for the Scanner cursor."""

import re

from wiktparse.scanner import Scanner


class TestPosition:
    """Test cursor movement and bounds."""

    def test_new_scanner_starts_at_zero(self):
        sc = Scanner("abc")
        assert sc.pos == 0
        assert sc.at_line_start()
        assert not sc.at_end()

    def test_advance_is_clamped(self):
        """Advancing past the end should stop at the end."""
        sc = Scanner("abc")
        sc.advance(10)
        assert sc.pos == 3
        assert sc.at_end()

    def test_line_start_after_newline(self):
        sc = Scanner("a\nb")
        sc.advance(1)
        assert not sc.at_line_start()
        sc.advance(1)
        assert sc.at_line_start()

    def test_bounded_restores_end(self):
        """A bound applies only inside the with block."""
        sc = Scanner("abcdef")
        with sc.bounded(3):
            sc.advance(10)
            assert sc.pos == 3
            assert sc.at_end()
        assert not sc.at_end()
        assert sc.end == 6

    def test_bounded_never_extends(self):
        sc = Scanner("abc")
        with sc.bounded(100):
            assert sc.end == 3


class TestLookahead:
    """Test in-place lookahead."""

    def test_peek(self):
        sc = Scanner("{{x}}")
        assert sc.peek() == "{"
        assert sc.peek(2) == "{{"

    def test_peek_respects_bound(self):
        sc = Scanner("abcdef")
        with sc.bounded(2):
            assert sc.peek(5) == "ab"

    def test_starts_with(self):
        sc = Scanner("[[link]]")
        assert sc.starts_with("[[")
        assert not sc.starts_with("{{")

    def test_starts_with_respects_bound(self):
        sc = Scanner("}}")
        with sc.bounded(1):
            assert not sc.starts_with("}}")

    def test_starts_with_any_returns_first_match(self):
        sc = Scanner("||x")
        assert sc.starts_with_any(("!!", "||")) == "||"
        assert sc.starts_with_any(("!!",)) is None

    def test_match_and_skip(self):
        sc = Scanner("   word")
        pattern = re.compile(r"[ \t]*")
        assert sc.match(pattern).group() == "   "
        assert sc.skip(pattern) == 3
        assert sc.pos == 3
        assert sc.skip(re.compile(r"\d+")) == 0
        assert sc.pos == 3

    def test_find_and_line_end(self):
        sc = Scanner("ab\ncd-->")
        assert sc.find("-->") == 5
        assert sc.find("x") == -1
        assert sc.line_end() == 2
        sc.advance(3)
        assert sc.line_end() == 8

    def test_slice_defaults_to_cursor(self):
        sc = Scanner("hello world")
        sc.advance(5)
        assert sc.slice(0) == "hello"
        assert sc.slice(6, 11) == "world"
