"""Tests for field value sanitization."""

from searchsync.indexer.content_extractor import clean_html


def test_strips_markup_and_decodes_entities():
    """Test that tags disappear and &nbsp; becomes a plain space."""
    assert clean_html("<p>Hello&nbsp;<b>World</b></p>") == "Hello World"


def test_adjacent_blocks_stay_separated():
    """Test that text of neighbouring block elements is not glued together."""
    assert clean_html("<h1>Title</h1><p>Body</p>") == "Title Body"


def test_removes_script_and_style_content():
    """Test that script and style bodies are dropped entirely."""
    html = "<style>p { color: red; }</style><p>Visible</p><script>alert('x')</script>"
    assert clean_html(html) == "Visible"


def test_collapses_whitespace():
    """Test that runs of whitespace and newlines collapse to one space."""
    assert clean_html("  line one\n\n\tline   two  ") == "line one line two"


def test_empty_values():
    """Test that None and empty input give an empty string."""
    assert clean_html(None) == ""
    assert clean_html("") == ""
    assert clean_html("<p> </p>") == ""


def test_non_string_values_are_stringified():
    """Test that numbers pass through as text."""
    assert clean_html(42) == "42"
