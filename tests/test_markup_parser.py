import pytest

from app.utils.document_model import (
    Document,
    Heading,
    ListContainer,
    ListItem,
    Paragraph,
    TextRun,
    VerseReference,
)
from app.utils.markup_parser import (
    annotate_markup,
    link_references,
    normalize_markup,
    parse_markup,
    serialize_document,
)


def _item(*inlines):
    item = ListItem()
    item.extend(list(inlines))
    return item


def _sample_tree():
    document = Document()
    heading = Heading(level=2)
    heading.append(TextRun("Overview & Background"))
    document.append_block(heading)

    paragraph = Paragraph()
    paragraph.extend([
        TextRun("See "),
        VerseReference.create("John 3:16"),
        TextRun(" and "),
        VerseReference.create("Romans 8:28", label="Rom 8:28"),
        TextRun(", where 1 < 2."),
    ])
    document.append_block(paragraph)

    nested = ListContainer(ordered=True)
    nested.append(_item(VerseReference.create("Genesis 1:1")))
    first = _item(TextRun("one"))
    first.append_list(nested)
    outer = ListContainer()
    outer.append(first)
    outer.append(_item(TextRun("two "), VerseReference(reference=None, label="broken")))
    document.append_block(outer)
    return document


def _paragraph(*inlines):
    paragraph = Paragraph()
    paragraph.extend(list(inlines))
    return paragraph


def _nested(item, *sublist_items, ordered=False):
    sublist = ListContainer(ordered=ordered)
    for sub in sublist_items:
        sublist.append(sub)
    item.append_list(sublist)
    return item


def _doc(*blocks):
    document = Document()
    for block in blocks:
        document.append_block(block)
    return document


def _list(*items, ordered=False):
    container = ListContainer(ordered=ordered)
    for item in items:
        container.append(item)
    return container


ROUND_TRIP_TREES = {
    "sample": _sample_tree(),
    "empty_blocks": _doc(Paragraph(), Heading(level=1), _list(), _list(ListItem())),
    "whitespace_only_runs": _doc(_paragraph(TextRun(" ")), _paragraph(TextRun("\n")), _list(_item(TextRun(" ")))),
    "text_after_verse_in_item": _doc(_list(_item(TextRun("see "), VerseReference.create("John 3:16"), TextRun("\n")))),
    "whitespace_between_verses_in_item": _doc(
        _list(_item(VerseReference.create("John 1:1"), TextRun(" "), VerseReference.create("John 1:2"))),
    ),
    "text_with_newline_before_sublist": _doc(_list(_nested(_item(TextRun("a\n")), _item(TextRun("b"))))),
    "whitespace_before_sublist": _doc(
        _list(_nested(_item(VerseReference.create("Acts 2:38"), TextRun(" \n")), _item(TextRun("x")))),
        _list(_nested(_item(TextRun(" ")), _item(TextRun("y")), ordered=True)),
    ),
    "deep_nesting": _doc(
        _list(
            _nested(
                _item(TextRun("level one")),
                _nested(_item(TextRun("level two ")), _item(VerseReference.create("Psalms 23"))),
                _item(),
                ordered=True,
            ),
            _item(TextRun("sibling")),
        ),
    ),
    "invalid_verses": _doc(
        _paragraph(VerseReference(reference=None), TextRun(" "), VerseReference(reference=None, label="Jn 99")),
        _list(_item(VerseReference(reference=None, label="Invalid Verse"))),
    ),
    "degraded_runs": _doc(
        _paragraph(TextRun("Unclosed "), TextRun('<verse reference="Gen 1:1">Gen 1:1', degraded=True)),
        _list(_item(TextRun("<bible-verse", degraded=True), TextRun(" tail"))),
    ),
    "escaped_text": _doc(Heading(level=6), _paragraph(TextRun("a < b & c > d \"quoted\"")), _paragraph(TextRun("  padded  "))),
}


@pytest.mark.parametrize("tree", list(ROUND_TRIP_TREES.values()), ids=list(ROUND_TRIP_TREES))
def test_round_trip_is_structurally_equal(tree):
    markup = serialize_document(tree)

    assert parse_markup(markup) == tree
    assert serialize_document(parse_markup(markup)) == markup


def test_serialized_form():
    markup = serialize_document(_sample_tree())
    assert markup.startswith("<h2>Overview &amp; Background</h2><p>See ")
    assert '<bible-verse reference="John 3:16">John 3:16</bible-verse>' in markup
    assert '<bible-verse reference="Romans 8:28">Rom 8:28</bible-verse>' in markup
    assert "<ul><li>one<ol><li>" in markup
    assert '<span class="verse-error">broken</span>' in markup


def test_verse_is_one_atomic_inline():
    document = parse_markup('<p>See <verse reference="John 3:16">John 3:16</verse> today</p>')

    assert len(document.blocks) == 1
    assert document.blocks[0].inlines == [
        TextRun("See "),
        VerseReference("John 3:16"),
        TextRun(" today"),
    ]


def test_label_and_reference_kept_independently():
    document = parse_markup('<p><bible-verse reference="Romans 8:28">Rom. 8:28</bible-verse></p>')
    verse = document.verse_references()[0]
    assert verse.reference == "Romans 8:28"
    assert verse.label == "Rom. 8:28"


def test_unclosed_verse_degrades_to_text():
    document = parse_markup('<p>Unclosed <verse reference="Gen 1:1">Gen 1:1</p>')

    assert not document.is_empty()
    inlines = document.blocks[0].inlines
    assert inlines[0] == TextRun("Unclosed ")
    assert inlines[1].degraded
    assert inlines[1].text == '<verse reference="Gen 1:1">Gen 1:1'
    assert document.verse_references() == []


def test_unclosed_verse_does_not_swallow_following_blocks():
    document = parse_markup('<p><bible-verse reference="John 1:1">John 1:1</p><p>Next</p>')
    assert len(document.blocks) == 2
    assert document.blocks[1].plain_text() == "Next"


def test_degraded_markup_is_stable_after_one_pass():
    once = normalize_markup('<p>Unclosed <verse reference="Gen 1:1">Gen 1:1</p>')
    assert once == '<p>Unclosed <span class="verse-unparsed">&lt;verse reference="Gen 1:1"&gt;Gen 1:1</span></p>'
    assert parse_markup(once).blocks[0].inlines[1].degraded
    assert normalize_markup(once) == once


def test_missing_attribute_renders_error_marker():
    markup = normalize_markup("<p>Read <bible-verse>John 1:1</bible-verse> and <verse reference=''>x</verse></p>")
    assert markup == (
        '<p>Read <span class="verse-error">John 1:1</span>'
        ' and <span class="verse-error">x</span></p>'
    )
    assert normalize_markup(markup) == markup


def test_unknown_tags_are_transparent():
    document = parse_markup("<div><p>Hello <strong>bold</strong> <em>world</em></p></div>")
    assert len(document.blocks) == 1
    assert document.blocks[0].inlines == [TextRun("Hello bold world")]


def test_loose_text_becomes_paragraph_and_block_whitespace_is_dropped():
    markup = 'Intro with <bible-verse reference="John 3:16">John 3:16</bible-verse>\n<h3>Next</h3>\n<ul>\n  <li>a</li>\n  <li>b</li>\n</ul>\n'
    assert normalize_markup(markup) == (
        '<p>Intro with <bible-verse reference="John 3:16">John 3:16</bible-verse></p>'
        "<h3>Next</h3><ul><li>a</li><li>b</li></ul>"
    )


def test_paragraphs_inside_list_items_are_flattened():
    assert normalize_markup("<ul><li><p>first</p><p>second</p></li></ul>") == "<ul><li>first second</li></ul>"


def test_empty_input_gives_empty_document():
    assert parse_markup("").is_empty()
    assert parse_markup(None).is_empty()
    assert serialize_document(Document()) == ""


def test_link_references_wraps_plain_citations():
    document = parse_markup('<p>Compare John 3:16 with <bible-verse reference="Romans 8:1">Rom 8:1</bible-verse> and Eph 2:8-9.</p>')

    created = link_references(document)

    assert created == 2
    assert [v.reference for v in document.verse_references()] == ["John 3:16", "Romans 8:1", "Ephesians 2:8-9"]
    assert document.verse_references()[2].label == "Eph 2:8-9"


def test_annotate_markup():
    assert annotate_markup("<p>As in Psalm 23.</p>") == (
        '<p>As in <bible-verse reference="Psalms 23">Psalm 23</bible-verse>.</p>'
    )


def test_layout_whitespace_around_nested_blocks_in_items_is_dropped():
    markup = "<ul>\n<li>\n<p>text</p>\n</li>\n<li>a<ul>\n<li>b</li>\n</ul>\n</li>\n</ul>"
    assert normalize_markup(markup) == "<ul><li>text</li><li>a<ul><li>b</li></ul></li></ul>"
