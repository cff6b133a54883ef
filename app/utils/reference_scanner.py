"""
Scripture reference scanner.

Deterministic fallback for references the model did not wrap in a verse tag.
Finds "<book> <chapter>[:<verse>[-<verse>]]" spans in plain text and returns
each span together with its canonical form ("1 Cor 13:4–7" -> "1 Corinthians 13:4-7").
"""

import re
from typing import Dict, List, NamedTuple, Optional, Tuple

# Canonical name -> accepted abbreviations / variants (without trailing dots)
BOOKS: Dict[str, List[str]] = {
    # Old Testament
    "Genesis": ["Gen", "Ge", "Gn"],
    "Exodus": ["Exod", "Exo", "Ex"],
    "Leviticus": ["Lev", "Lv"],
    "Numbers": ["Num", "Nm"],
    "Deuteronomy": ["Deut", "Dt"],
    "Joshua": ["Josh", "Jos"],
    "Judges": ["Judg", "Jdg"],
    "Ruth": ["Rth"],
    "1 Samuel": ["Sam", "Sa"],
    "2 Samuel": ["Sam", "Sa"],
    "1 Kings": ["Kgs", "Ki"],
    "2 Kings": ["Kgs", "Ki"],
    "1 Chronicles": ["Chron", "Chr"],
    "2 Chronicles": ["Chron", "Chr"],
    "Ezra": ["Ezr"],
    "Nehemiah": ["Neh"],
    "Esther": ["Esth", "Est"],
    "Job": [],
    "Psalms": ["Psalm", "Ps", "Psa"],
    "Proverbs": ["Prov", "Pr"],
    "Ecclesiastes": ["Eccl", "Ecc", "Qoh"],
    "Song of Solomon": ["Song of Songs", "Song", "Sos"],
    "Isaiah": ["Isa", "Is"],
    "Jeremiah": ["Jer"],
    "Lamentations": ["Lam"],
    "Ezekiel": ["Ezek", "Eze"],
    "Daniel": ["Dan", "Dn"],
    "Hosea": ["Hos"],
    "Joel": [],
    "Amos": [],
    "Obadiah": ["Obad", "Ob"],
    "Jonah": ["Jon"],
    "Micah": ["Mic"],
    "Nahum": ["Nah"],
    "Habakkuk": ["Hab"],
    "Zephaniah": ["Zeph", "Zep"],
    "Haggai": ["Hag"],
    "Zechariah": ["Zech", "Zec"],
    "Malachi": ["Mal"],
    # New Testament
    "Matthew": ["Matt", "Mt"],
    "Mark": ["Mk", "Mrk"],
    "Luke": ["Lk"],
    "John": ["Jn", "Jhn"],
    "Acts": [],
    "Romans": ["Rom", "Rm"],
    "1 Corinthians": ["Cor", "Co"],
    "2 Corinthians": ["Cor", "Co"],
    "Galatians": ["Gal"],
    "Ephesians": ["Eph"],
    "Philippians": ["Phil", "Php"],
    "Colossians": ["Col"],
    "1 Thessalonians": ["Thess", "Th"],
    "2 Thessalonians": ["Thess", "Th"],
    "1 Timothy": ["Tim", "Ti"],
    "2 Timothy": ["Tim", "Ti"],
    "Titus": ["Tit"],
    "Philemon": ["Phlm", "Phm"],
    "Hebrews": ["Heb"],
    "James": ["Jas"],
    "1 Peter": ["Pet", "Pt"],
    "2 Peter": ["Pet", "Pt"],
    "1 John": ["Jn", "Jhn"],
    "2 John": ["Jn", "Jhn"],
    "3 John": ["Jn", "Jhn"],
    "Jude": [],
    "Revelation": ["Rev", "Rv"],
}

# Book names that are also ordinary English words; only accepted with a verse
_VERSE_REQUIRED = {"Job", "Numbers", "Acts", "Mark", "Judges", "Amos", "Joel", "Ruth", "James", "Jude", "Song"}

_ROMAN = {"1": "I", "2": "II", "3": "III"}
_ORDINAL = {"1": "First", "2": "Second", "3": "Third"}

_DASHES = "-‐‑‒–—"


class ScannedReference(NamedTuple):
    start: int
    end: int
    reference: str


def _name_variants() -> Dict[str, Tuple[str, bool]]:
    """Map every accepted spelling to (canonical name, is_full_name)."""
    variants: Dict[str, Tuple[str, bool]] = {}
    for canonical, abbrevs in BOOKS.items():
        number, _, base = canonical.partition(" ")
        if number in _ROMAN:
            prefixes = [f"{number} ", number, f"{_ROMAN[number]} ", f"{_ORDINAL[number]} "]
            full_names = [base]
            # "1 John" / "1 Jn" style only; a bare "Sam" is not a reference
            short_names = abbrevs
        else:
            prefixes = [""]
            full_names = [canonical]
            short_names = abbrevs
            if canonical == "Psalms":
                full_names.append("Psalm")
            if canonical == "Song of Solomon":
                full_names.append("Song of Songs")
        for prefix in prefixes:
            for name in full_names:
                variants.setdefault(prefix + name, (canonical, True))
            for name in short_names:
                variants.setdefault(prefix + name, (canonical, False))
    return variants


_VARIANTS = _name_variants()
_BY_LOWER = {k.lower(): v for k, v in _VARIANTS.items()}

# Longest first so "1 Corinthians" wins over "1 Cor" and "Song of Songs" over "Song"
_BOOK_ALTERNATION = "|".join(
    re.escape(name).replace(r"\ ", r"\s+") for name in sorted(_VARIANTS, key=len, reverse=True)
)

REFERENCE_PATTERN = re.compile(
    rf"(?<![\w])(?P<book>{_BOOK_ALTERNATION})\.?\s*"
    rf"(?P<chapter>\d{{1,3}})"
    rf"(?::(?P<verse>\d{{1,3}})[a-c]?)?"
    rf"(?:\s*[{_DASHES}]\s*(?P<end>\d{{1,3}})(?::(?P<end_verse>\d{{1,3}}))?)?"
    rf"(?!\w)"
)


def canonical_book(name: str) -> Optional[str]:
    """Return the canonical book name for any accepted spelling, or None."""
    key = re.sub(r"\s+", " ", name.strip().rstrip(".")).lower()
    found = _BY_LOWER.get(key)
    return found[0] if found else None


def _canonical_form(book: str, chapter: str, verse: Optional[str], end: Optional[str], end_verse: Optional[str]) -> str:
    reference = f"{book} {int(chapter)}"
    if verse:
        reference += f":{int(verse)}"
    if end:
        reference += f"-{int(end)}"
        if end_verse:
            reference += f":{int(end_verse)}"
    return reference


def scan_references(text: str) -> List[ScannedReference]:
    """Find every scripture reference in ``text``.

    Returns (start, end, canonical reference) tuples in order of appearance.
    Chapter-only matches ("Psalm 23") are accepted for full book names only,
    and never for books whose names double as common words ("Job 3").
    """
    if not text:
        return []

    found: List[ScannedReference] = []
    for match in REFERENCE_PATTERN.finditer(text):
        token = re.sub(r"\s+", " ", match.group("book"))
        canonical, is_full_name = _VARIANTS[token]
        verse = match.group("verse")
        if not verse:
            if not is_full_name or token.split(" ")[-1] in _VERSE_REQUIRED or canonical in _VERSE_REQUIRED:
                continue
            # a chapter range needs no end verse ("Job 1-3" is still rejected above)
            if match.group("end_verse"):
                continue
        if int(match.group("chapter")) == 0:
            continue
        reference = _canonical_form(
            canonical, match.group("chapter"), verse, match.group("end"), match.group("end_verse")
        )
        found.append(ScannedReference(match.start(), match.end(), reference))
    return found


def normalize_reference(reference: str) -> Optional[str]:
    """Canonicalise a single reference string; None when it is not one."""
    candidate = (reference or "").strip()
    matches = scan_references(candidate)
    if len(matches) == 1 and matches[0].start == 0 and matches[0].end == len(candidate):
        return matches[0].reference
    return None
