"""
Tests for docxflow/extract.py — revision-aware paragraph extraction.

Run: python3 test_extract.py
From: python/
"""

import sys

sys.path.insert(0, '.')

from docxflow.errors import ParseError, UnexpectedEOF
from docxflow.extract import extract_paragraphs
from docxflow.models import ExtractionMode, ProcessingOptions

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"


def _container(body):
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
        f'<w:document xmlns:w="{W_NS}"><w:body>{body}<w:sectPr/></w:body></w:document>'
    ).encode("utf-8")


def _run(text, tag="w:t"):
    return f'<w:r><w:rPr><w:b/></w:rPr><{tag} xml:space="preserve">{text}</{tag}></w:r>'


TRACKED = (
    "<w:p>"
    + _run("Hello ")
    + '<w:del w:id="1" w:author="Reviewer">' + _run("old", "w:delText") + "</w:del>"
    + '<w:ins w:id="2" w:author="Reviewer">' + _run("new") + "</w:ins>"
    + _run(" world")
    + "</w:p>"
)


# ---------------------------------------------------------------------------
# Plain documents
# ---------------------------------------------------------------------------

def test_runs_are_joined_per_paragraph():
    data = _container("<w:p>" + _run("Hello ") + _run("world") + "</w:p>" + "<w:p>" + _run("Second") + "</w:p>")
    assert extract_paragraphs(data) == ["Hello world", "Second"]
    print("PASS: test_runs_are_joined_per_paragraph")


def test_empty_paragraphs_are_kept():
    data = _container("<w:p/><w:p><w:pPr><w:jc w:val=\"center\"/></w:pPr></w:p>" + "<w:p>" + _run("x") + "</w:p>")
    assert extract_paragraphs(data) == ["", "", "x"]
    print("PASS: test_empty_paragraphs_are_kept")


def test_entities_are_decoded():
    data = _container("<w:p>" + _run("Smith &amp; Sons &lt;Ltd&gt;") + "</w:p>")
    assert extract_paragraphs(data) == ["Smith & Sons <Ltd>"]
    print("PASS: test_entities_are_decoded")


def test_comment_inside_text_element():
    """Character data on both sides of a comment belongs to the text element."""
    data = _container("<w:p><w:r><w:t>ab<!--note-->cd<?pi x?>ef</w:t></w:r></w:p>")
    assert extract_paragraphs(data) == ["abcdef"]
    assert extract_paragraphs(data, ExtractionMode.ORIGINAL) == ["abcdef"]
    print("PASS: test_comment_inside_text_element")


def test_text_box_belongs_to_enclosing_paragraph():
    """A paragraph nested in a text box does not split its host paragraph."""
    inner = "<w:p>" + _run("inner") + "</w:p>"
    body = (
        "<w:p>"
        + _run("Outer ")
        + f"<w:r><w:pict><w:txbxContent>{inner}</w:txbxContent></w:pict></w:r>"
        + "</w:p>"
    )
    assert extract_paragraphs(_container(body)) == ["Outer inner"]
    print("PASS: test_text_box_belongs_to_enclosing_paragraph")


# ---------------------------------------------------------------------------
# Tracked changes
# ---------------------------------------------------------------------------

def test_accepted_reading():
    data = _container(TRACKED)
    assert extract_paragraphs(data, ExtractionMode.ACCEPTED) == ["Hello new world"]
    print("PASS: test_accepted_reading")


def test_original_reading():
    data = _container(TRACKED)
    assert extract_paragraphs(data, ExtractionMode.ORIGINAL) == ["Hello old world"]
    print("PASS: test_original_reading")


def test_deletion_nested_in_insertion():
    """Text inserted then deleted by a later revision never shows in either reading."""
    body = (
        "<w:p>"
        + _run("Keep")
        + '<w:ins w:id="3" w:author="A"><w:del w:id="4" w:author="B">'
        + _run(" gone", "w:delText")
        + "</w:del></w:ins>"
        + "</w:p>"
    )
    data = _container(body)
    assert extract_paragraphs(data, ExtractionMode.ACCEPTED) == ["Keep"]
    assert extract_paragraphs(data, ExtractionMode.ORIGINAL) == ["Keep"]
    print("PASS: test_deletion_nested_in_insertion")


def test_run_property_revision_marks_are_not_content():
    """w:ins / w:del inside w:rPr flag formatting changes, the run text stays."""
    body = (
        '<w:p><w:pPr><w:rPr><w:ins w:id="5" w:author="A"/></w:rPr></w:pPr>'
        '<w:r><w:rPr><w:del w:id="6" w:author="A"/></w:rPr><w:t>Marked</w:t></w:r></w:p>'
    )
    data = _container(body)
    opts = ProcessingOptions(verbose=True)
    assert extract_paragraphs(data, ExtractionMode.ACCEPTED, opts) == ["Marked"]
    assert extract_paragraphs(data, ExtractionMode.ORIGINAL, opts) == ["Marked"]
    print("PASS: test_run_property_revision_marks_are_not_content")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

def test_malformed_markup_raises():
    data = _container("<w:p><w:r><w:t>broken</w:r></w:p>")
    try:
        extract_paragraphs(data, container="word/document.xml")
    except ParseError as e:
        assert e.container == "word/document.xml"
        assert str(e).startswith("word/document.xml: ")
    else:
        raise AssertionError("expected ParseError")
    print("PASS: test_malformed_markup_raises")


def test_truncated_inside_paragraph_raises():
    data = _container(TRACKED)
    cut = data[: data.index(b"world") + 2]
    try:
        extract_paragraphs(cut)
    except UnexpectedEOF:
        pass
    else:
        raise AssertionError("expected UnexpectedEOF")
    print("PASS: test_truncated_inside_paragraph_raises")


def test_truncated_between_paragraphs_is_clean():
    data = _container("<w:p>" + _run("First") + "</w:p>" + "<w:p>" + _run("Second") + "</w:p>")
    cut = data[: data.rindex(b"</w:p>") + len(b"</w:p>")]
    assert extract_paragraphs(cut) == ["First", "Second"]
    print("PASS: test_truncated_between_paragraphs_is_clean")


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

if __name__ == '__main__':
    tests = [
        test_runs_are_joined_per_paragraph,
        test_empty_paragraphs_are_kept,
        test_entities_are_decoded,
        test_comment_inside_text_element,
        test_text_box_belongs_to_enclosing_paragraph,
        test_accepted_reading,
        test_original_reading,
        test_deletion_nested_in_insertion,
        test_run_property_revision_marks_are_not_content,
        test_malformed_markup_raises,
        test_truncated_inside_paragraph_raises,
        test_truncated_between_paragraphs_is_clean,
    ]

    passed = 0
    failed = 0
    for t in tests:
        try:
            t()
            passed += 1
        except Exception as e:
            print(f"FAIL: {t.__name__} — {e}")
            failed += 1

    print(f"\n{'=' * 50}")
    print(f"Results: {passed} passed, {failed} failed out of {len(tests)} tests")
    if failed > 0:
        sys.exit(1)
    else:
        print("All tests passed!")
