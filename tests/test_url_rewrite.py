"""Tests for entity decoding and image URL rewrite hooks."""

import pytest

from processor.url_rewrite import (
    apply_rewriters,
    decode_html_entities,
    next_image_rewrite,
    repair_image_record,
)


class TestDecodeHtmlEntities:
    """Test cases for decode_html_entities."""

    def test_decodes_supported_entities(self) -> None:
        text = "&amp; &lt; &gt; &quot; &#39; &nbsp;"
        assert decode_html_entities(text) == "& < > \" '  "

    def test_double_encoded_decodes_fully(self) -> None:
        assert decode_html_entities("&amp;lt;") == "<"
        assert decode_html_entities("&amp;amp;amp;") == "&"

    def test_unknown_entities_untouched(self) -> None:
        assert decode_html_entities("&copy; &#169;") == "&copy; &#169;"

    @pytest.mark.parametrize(
        "text",
        ["plain text", "Tom & Jerry", "a=1&b=2", "/img/a.png?x=1&y=2", ""],
    )
    def test_decoded_text_is_unchanged(self, text: str) -> None:
        assert decode_html_entities(text) == text

    @pytest.mark.parametrize(
        "text",
        ["&amp;lt;", "&amp;amp;", "&amp;amp;gt;", "a=1&amp;amp;b=2", "&amp;&lt;&nbsp;"],
    )
    def test_decoding_is_idempotent(self, text: str) -> None:
        once = decode_html_entities(text)
        assert decode_html_entities(once) == once


class TestNextImageRewrite:
    """Test cases for the Next.js image optimizer fix-up."""

    def test_adds_width_and_quality(self) -> None:
        url = "https://example.com/_next/image?url=%2Fa.png"
        assert next_image_rewrite(url) == "https://example.com/_next/image?url=%2Fa.png&w=640&q=75"

    def test_keeps_existing_width(self) -> None:
        url = "https://example.com/_next/image?url=%2Fa.png&w=1080"
        assert next_image_rewrite(url) == url + "&q=75"

    def test_width_alias_counts(self) -> None:
        url = "https://example.com/_next/image?url=%2Fa.png&width=300&q=90"
        assert next_image_rewrite(url) == url

    def test_requires_url_parameter(self) -> None:
        url = "https://example.com/_next/image?src=%2Fa.png"
        assert next_image_rewrite(url) == url

    def test_other_urls_untouched(self) -> None:
        url = "https://example.com/img/a.png?url=x"
        assert next_image_rewrite(url) == url

    def test_apply_rewriters_runs_in_order(self) -> None:
        calls = []

        def first(url: str) -> str:
            calls.append("first")
            return url + "1"

        def second(url: str) -> str:
            calls.append("second")
            return url + "2"

        assert apply_rewriters("x", [first, second]) == "x12"
        assert calls == ["first", "second"]


class TestRepairImageRecord:
    """Test cases for repair_image_record."""

    def test_repairs_url_and_alt(self) -> None:
        changes = repair_image_record(
            "https://example.com/_next/image?url=%2Fa.png&amp;w=640",
            "Tom &amp; Jerry",
        )

        assert changes == {
            "image_url": "https://example.com/_next/image?url=%2Fa.png&w=640&q=75",
            "alt_text": "Tom & Jerry",
        }

    def test_clean_record_returns_none(self) -> None:
        assert repair_image_record("https://example.com/a.png", "A cat") is None

    def test_missing_alt_is_left_alone(self) -> None:
        changes = repair_image_record("https://example.com/a.png?x=1&amp;y=2", None)
        assert changes == {"image_url": "https://example.com/a.png?x=1&y=2"}
