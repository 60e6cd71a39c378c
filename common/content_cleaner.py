# common/content_cleaner.py
"""
Repair of double-encoded ("mojibake") text stored in room content.

Most of the damage comes from UTF-8 punctuation that was decoded as
Windows-1252 once or twice before being written back, e.g. a right
single quote ending up as ``â€™`` or ``Ã¢â‚¬â„¢``.
"""
import re
from typing import List, Pattern, Tuple

# Anything that can legitimately follow a stray lead byte in readable text.
_SAFE_FOLLOWER = r"[^a-zA-Z0-9\s.,!?;:()\-]"


def _literal(text: str) -> Pattern:
    return re.compile(re.escape(text))


# Order matters: longer sequences that share a prefix must come first.
_FIXES: List[Tuple[Pattern, str]] = [
    # Quoted escape room terms
    (re.compile(r"Ã¢â‚¬Å[“\"](Escape Room|Adventure|Puzzle|Mystery)Ã¢â‚¬Â\x9d?"), r'"\1"'),
    (re.compile(r"Ã¢â‚¬Å[“\"]([^\"]*?)Ã¢â‚¬Â\x9d?"), r'"\1"'),
    # Contractions and possessives (double encoded)
    (re.compile(r"(don|won|can|isn|aren|wasn|weren|hasn|haven|hadn|doesn|didn|wouldn|couldn|shouldn)Ã¢â‚¬â„¢t"), r"\1't"),
    (re.compile(r"([a-zA-Z])Ã¢â‚¬â„¢s"), r"\1's"),
    (re.compile(r"Ã¢â‚¬â„¢(t|s|re|ve|ll|d|m)\b"), r"'\1"),
    # Punctuation (double encoded)
    (_literal("Ã¢â‚¬â„¢"), "'"),
    (_literal("Ã¢â‚¬Ëœ"), "'"),
    (_literal("Ã¢â‚¬â€°"), "'"),
    (_literal("Ã¢â‚¬Å“"), '"'),
    (_literal('Ã¢â‚¬Å"'), '"'),
    (_literal("Ã¢â‚¬â€œ"), "–"),
    (_literal("Ã¢â‚¬â€\x9d"), "—"),
    (_literal("Ã¢â‚¬â€"), "—"),
    (_literal("Ã¢â‚¬Â¦"), "…"),
    (_literal("Ã¢â‚¬Â¢"), "•"),
    (_literal("Ã¢â‚¬Â\x9d"), '"'),
    (_literal("Ã¢â‚¬Â"), '"'),
    # Punctuation (single encoded)
    (_literal("â€™"), "'"),
    (_literal("â€˜"), "'"),
    (_literal("â€œ"), '"'),
    (_literal("â€\x9d"), '"'),
    (_literal("â€“"), "–"),
    (_literal("â€”"), "—"),
    (_literal("â€¦"), "…"),
    (_literal("â€¢"), "•"),
    # right double quote whose final byte was lost
    (_literal("â€"), '"'),
    (_literal("Â\xa0"), " "),
    # Accented letters (single encoded)
    (_literal("Ã©"), "é"),
    (_literal("Ã¨"), "è"),
    (_literal("Ã¡"), "á"),
    (_literal("Ã±"), "ñ"),
    (_literal("Ã³"), "ó"),
    (_literal("Ãº"), "ú"),
    (_literal("Ã¶"), "ö"),
    (_literal("Ã¼"), "ü"),
    # Known corrupted venue words
    (re.compile(r"Ã ?Â[¢¿]ÃÃÃÃO"), "Great Escape"),
    (re.compile(r"Ã ?Â[¢¿]ÃÃÃÃ"), "Great"),
    (_literal("Ã ÂÇÃOÂ Ã ÂOs"), "Butch Cassidy"),
    # Operating hours dash artifacts
    (_literal("ÂÂÂ"), "–"),
    (_literal("Â¢Â Â"), "–"),
    # Residual lead bytes
    (re.compile("Â¢" + _SAFE_FOLLOWER), ""),
    (re.compile("Â" + _SAFE_FOLLOWER), ""),
    (re.compile("ÃÂ" + _SAFE_FOLLOWER), ""),
    (re.compile("Ã " + _SAFE_FOLLOWER), ""),
    (re.compile("Ã" + _SAFE_FOLLOWER), ""),
    (re.compile("â‚¬" + _SAFE_FOLLOWER), ""),
]

_FINAL_CLEANUP: List[Pattern] = [
    re.compile("Ã" + _SAFE_FOLLOWER),
    re.compile("â‚¬" + _SAFE_FOLLOWER),
    re.compile("ÃÂ" + _SAFE_FOLLOWER),
    re.compile("Ã " + _SAFE_FOLLOWER),
    re.compile("Â" + _SAFE_FOLLOWER),
    re.compile("Â¢" + _SAFE_FOLLOWER),
]

_DETECTION: List[Pattern] = [
    re.compile("Ã" + _SAFE_FOLLOWER),
    re.compile("â‚¬" + _SAFE_FOLLOWER),
    re.compile("Ã¢â‚¬"),
    re.compile("â€"),
    re.compile("ÃÂ"),
    re.compile("Ã "),
    re.compile("Â" + _SAFE_FOLLOWER),
    re.compile("Â¢" + _SAFE_FOLLOWER),
]


def clean_content(text):
    """
    Replace known mojibake sequences and strip leftover encoding debris.

    Non-string or empty input is returned unchanged.
    """
    if not text or not isinstance(text, str):
        return text

    fixed = text
    for pattern, replacement in _FIXES:
        fixed = pattern.sub(replacement, fixed)

    for pattern in _FINAL_CLEANUP:
        fixed = pattern.sub("", fixed)

    return fixed.strip()


def has_mojibake(text) -> bool:
    """Return True if the text contains any recognisable mojibake."""
    if not text or not isinstance(text, str):
        return False
    return any(pattern.search(text) for pattern in _DETECTION)
