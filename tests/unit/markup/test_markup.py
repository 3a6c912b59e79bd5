"""Tests for style markup wrapping, stripping and ANSI rendering."""

from __future__ import annotations

import unittest

from lazyls.markup import escape, is_valid_style, markup, render, strip_markup, unescape


class MarkupTests(unittest.TestCase):
    def test_markup_wraps_value_with_open_and_close_tags(self) -> None:
        self.assertEqual(markup("bold red", 42), "<bold red>42</bold red>")

    def test_markup_with_empty_style_returns_bare_value(self) -> None:
        self.assertEqual(markup("", "x"), "x")
        self.assertEqual(markup("   ", "x"), "x")

    def test_is_valid_style_rejects_unknown_directives(self) -> None:
        self.assertTrue(is_valid_style("bold bright_green"))
        self.assertTrue(is_valid_style(""))
        self.assertFalse(is_valid_style("bold sparkly"))

    def test_render_emits_sgr_and_reset(self) -> None:
        self.assertEqual(render("<bold red>x</bold red>"), "\033[1;31mx\033[0m")

    def test_render_restores_outer_style_after_nested_tag_closes(self) -> None:
        rendered = render("<bold>a<red>b</red>c</bold>")
        self.assertEqual(rendered, "\033[1ma\033[31mb\033[0m\033[1mc\033[0m")

    def test_render_leaves_unknown_tags_literal(self) -> None:
        self.assertEqual(render("<html>x</html>", color=False), "<html>x</html>")

    def test_render_without_color_strips_known_tags(self) -> None:
        self.assertEqual(render("<green>A</green><red>M</red>", color=False), "AM")

    def test_strip_markup_matches_visible_text(self) -> None:
        self.assertEqual(strip_markup("<dimmed>1.5</dimmed> Ki<dimmed>B</dimmed>"), "1.5 KiB")

    def test_markup_escapes_tag_like_values(self) -> None:
        self.assertEqual(markup("blue", "<bold>x"), "<blue>&lt;bold>x</blue>")
        self.assertEqual(markup("", "a&lt;b"), "a&amp;lt;b")

    def test_render_restores_escaped_values(self) -> None:
        self.assertEqual(render(markup("", "<bold>x</bold>"), color=False), "<bold>x</bold>")
        self.assertEqual(render(markup("red", "a&lt;b"), color=False), "a&lt;b")
        self.assertEqual(render(markup("red", "<red>"), color=True), "\033[31m<red>\033[0m")

    def test_unescape_reverses_escape(self) -> None:
        for text in ("plain", "<", "&", "&lt;", "&amp;lt;", "<b>&</b>"):
            self.assertEqual(unescape(escape(text)), text)
