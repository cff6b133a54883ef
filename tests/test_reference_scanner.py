import pytest

from app.utils.reference_scanner import canonical_book, normalize_reference, scan_references


def test_scan_finds_spans_and_canonical_forms():
    text = "Compare John 3:16 with 1 Cor 13:4–7 and Rom 8:28."
    found = scan_references(text)

    assert [r.reference for r in found] == ["John 3:16", "1 Corinthians 13:4-7", "Romans 8:28"]
    for ref in found:
        assert text[ref.start:ref.end].split()[0] in {"John", "1", "Rom"}
    assert text[found[0].start:found[0].end] == "John 3:16"


def test_chapter_only_needs_full_book_name():
    assert [r.reference for r in scan_references("Read Psalm 23 and Romans 8 tonight")] == ["Psalms 23", "Romans 8"]
    assert scan_references("Rom 8 is short") == []


def test_common_word_books_need_a_verse():
    assert scan_references("Job 3 was hard and Acts 2 too") == []
    assert [r.reference for r in scan_references("see Job 3:1 and Acts 2:38")] == ["Job 3:1", "Acts 2:38"]


@pytest.mark.parametrize("text,expected", [
    ("1John 4:8", "1 John 4:8"),
    ("First John 4:8", "1 John 4:8"),
    ("II Tim 3:16", "2 Timothy 3:16"),
    ("Gen. 1:1", "Genesis 1:1"),
    ("Song of Songs 2:4", "Song of Solomon 2:4"),
    ("Genesis 1-3", "Genesis 1-3"),
    ("Matt 5:3-7:29", "Matthew 5:3-7:29"),
])
def test_book_spellings(text, expected):
    assert normalize_reference(text) == expected


def test_no_match_inside_words_or_chapter_zero():
    assert scan_references("Johnny 3:16") == []
    assert scan_references("John 0:1") == []


def test_normalize_rejects_text_with_extra_words():
    assert normalize_reference("see John 3:16") is None
    assert normalize_reference("") is None


def test_canonical_book():
    assert canonical_book("Rev.") == "Revelation"
    assert canonical_book("1  Sam") == "1 Samuel"
    assert canonical_book("Hezekiah") is None
