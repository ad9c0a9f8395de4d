"""Recursive body sanitizer tests."""

from __future__ import annotations

import pytest

from gateway.errors import MalformedInputError
from gateway.utils.sanitize import (
    JsonKind,
    classify,
    sanitize,
    sanitize_string,
    strip_control_chars,
)


class TestSanitizeString:
    def test_plain_text_is_trimmed_only(self):
        assert sanitize_string("  hello world \n") == "hello world"

    def test_text_with_ampersand_and_quotes_untouched(self):
        """No '<' means no markup: entities are not introduced."""
        assert sanitize_string(" Tom & Jerry's \"best\" ") == "Tom & Jerry's \"best\""

    def test_url_with_protocol_preserved(self):
        url = "https://shop.example/search?q=shoes&size=42#top"
        assert sanitize_string(f"  {url}  ") == url

    def test_script_tag_removed(self):
        result = sanitize_string("<script>alert('x')</script>hello")
        assert "<script" not in result.lower()
        assert "hello" in result

    def test_nested_script_trick_removed(self):
        result = sanitize_string("<scr<script>ipt>alert(1)</script>")
        assert "<script" not in result.lower()
        # Leftover text is kept but escaped, so nothing can form a tag
        assert "<" not in result

    def test_event_handler_attribute_removed(self):
        result = sanitize_string("<img src=x onerror=alert(1)>")
        assert "onerror" not in result

    def test_event_handler_on_allowed_tag_removed(self):
        result = sanitize_string('<b onclick="steal()">bold</b>')
        assert result == "<b>bold</b>"

    def test_javascript_uri_removed(self):
        result = sanitize_string('<a href="javascript:alert(1)">click</a>')
        assert "javascript:" not in result
        assert "click" in result

    def test_safe_link_kept(self):
        result = sanitize_string('<a href="https://shop.example">shop</a>')
        assert result == '<a href="https://shop.example">shop</a>'

    def test_html_comment_removed(self):
        assert sanitize_string("a<!-- hidden -->b") == "ab"

    def test_result_is_trimmed_after_purification(self):
        assert sanitize_string("<script></script>  ok  ") == "ok"


class TestClassify:
    @pytest.mark.parametrize(
        "value, kind",
        [
            ("x", JsonKind.STRING),
            ([1], JsonKind.ARRAY),
            ((1, 2), JsonKind.ARRAY),
            ({"a": 1}, JsonKind.OBJECT),
            (1, JsonKind.SCALAR),
            (1.5, JsonKind.SCALAR),
            (True, JsonKind.SCALAR),
            (None, JsonKind.SCALAR),
        ],
    )
    def test_kinds(self, value, kind):
        assert classify(value) is kind


class TestSanitize:
    def test_scalars_pass_through(self):
        for value in (0, 42, -1.5, True, False, None):
            assert sanitize(value) is value

    def test_top_level_string(self):
        assert sanitize("  <script>x</script>y ") == "xy"

    def test_object_keeps_exact_keys(self):
        body = {"name": " <img src=x onerror=alert(1)> ", "qty": 2, "gift": False, "note": None}
        result = sanitize(body)
        assert set(result) == set(body)
        assert "onerror" not in result["name"]
        assert result["qty"] == 2
        assert result["gift"] is False
        assert result["note"] is None

    def test_array_keeps_length_and_order(self):
        body = [" a ", 1, "<script>b</script>", None, " c"]
        assert sanitize(body) == ["a", 1, "b", None, "c"]

    def test_nested_shape_preserved(self):
        body = {
            "items": [{"sku": " A1 ", "tags": ["<b>new</b>", " sale "]}, {"sku": "B2", "tags": []}],
            "address": {"line1": " 1 Main St ", "geo": {"lat": 1.0, "lng": 2.0}},
        }
        result = sanitize(body)
        assert result == {
            "items": [{"sku": "A1", "tags": ["<b>new</b>", "sale"]}, {"sku": "B2", "tags": []}],
            "address": {"line1": "1 Main St", "geo": {"lat": 1.0, "lng": 2.0}},
        }

    def test_input_not_mutated(self):
        body = {"name": "  x  ", "list": [" y "]}
        sanitize(body)
        assert body == {"name": "  x  ", "list": [" y "]}

    def test_keys_are_not_rewritten(self):
        body = {" <b>key</b> ": "v"}
        assert list(sanitize(body)) == [" <b>key</b> "]

    def test_empty_containers(self):
        assert sanitize({}) == {}
        assert sanitize([]) == []

    def test_depth_limit_raises(self):
        value: list = []
        for _ in range(10):
            value = [value]
        with pytest.raises(MalformedInputError):
            sanitize(value, max_depth=5)

    def test_depth_at_limit_allowed(self):
        value = {"a": {"b": {"c": " x "}}}
        assert sanitize(value, max_depth=3) == {"a": {"b": {"c": "x"}}}

    def test_very_deep_input_does_not_overflow_stack(self):
        """Traversal is iterative: a depth far beyond the recursion limit still fails cleanly."""
        value: dict = {}
        for _ in range(50_000):
            value = {"k": value}
        with pytest.raises(MalformedInputError):
            sanitize(value)

    def test_cyclic_input_fails_fast(self):
        value: dict = {}
        value["self"] = value
        with pytest.raises(MalformedInputError):
            sanitize(value, max_depth=10)


class TestStripControlChars:
    def test_strips_newlines_and_bidi(self):
        assert strip_control_chars("evil\r\n.example\u202e") == "evil.example"

    def test_plain_text_unchanged(self):
        assert strip_control_chars("https://shop.example") == "https://shop.example"
