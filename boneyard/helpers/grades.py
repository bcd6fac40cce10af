from typing import Optional

# Tag labels in display order (easiest first)
GRADE_TAGS = [
    "Blue Tag (VB–V0)",
    "Red Tag (V0–V2)",
    "Yellow Tag (V2–4)",
    "Green Tag (V4–6)",
    "Purple Tag (V6–8)",
    "Pink Tag (V8+)",
    "White Tag (Ungraded)",
]

COLOR_OPTIONS = [
    "red", "orange", "pink", "blue", "green", "lime",
    "purple", "yellow", "black", "white", "gray",
]

# (markers to look for in the tag, allowed votes)
# Both en-dash and hyphen spellings show up in older climb docs.
_TAG_VOTE_OPTIONS = [
    (("Pink Tag (V8+)",), ["V8", "V9", "V10+"]),
    (("Purple Tag (V6–8)", "Purple Tag (V6-8)"), ["V6", "V7", "V8"]),
    (("Green Tag (V4–6)", "Green Tag (V4-6)"), ["V4", "V5", "V6"]),
    (("Yellow Tag (V2–4)", "Yellow Tag (V2-4)"), ["V2", "V3", "V4"]),
    (("Red Tag (V0–V2)", "Red Tag (V0-2)"), ["V0", "V1", "V2"]),
    (("Blue Tag (VB–V0)", "Blue Tag (VB-V0)"), ["VB", "V0"]),
    (("White Tag (Ungraded)",), ["VB-0", "V0-V2", "V2-4", "V4-6", "V6-8", "V8+"]),
]


def normalize_grade_tag(raw: Optional[str]) -> Optional[str]:
    """
    Map a submitted tag label onto the canonical (en-dash) label.
    Returns None for anything unknown.
    """
    clean = (raw or "").strip()
    if not clean:
        return None

    if clean in GRADE_TAGS:
        return clean

    hyphenated = {tag.replace("–", "-"): tag for tag in GRADE_TAGS}
    if clean in hyphenated:
        return hyphenated[clean]

    # legacy "Red Tag (V0-2)" spelling
    if clean == "Red Tag (V0-2)":
        return "Red Tag (V0–V2)"

    return None


def grade_options_for_tag(tag: Optional[str]) -> list:
    tag = tag or ""
    for markers, options in _TAG_VOTE_OPTIONS:
        if any(m in tag for m in markers):
            return list(options)
    return ["Ungraded"]


def tally_grade_votes(tag: Optional[str], votes) -> dict:
    """
    Count votes for a climb, in the tag's option order.

    Votes for options the tag doesn't allow (e.g. left over from before the
    climb was re-tagged) are ignored. Consensus is the most-voted option;
    ties go to the easier (earlier) option. None when nobody has voted.
    """
    options = grade_options_for_tag(tag)
    counts = {opt: 0 for opt in options}

    for v in votes:
        if v in counts:
            counts[v] += 1

    total = sum(counts.values())

    consensus = None
    best = 0
    for opt in options:
        if counts[opt] > best:
            best = counts[opt]
            consensus = opt

    return {
        "options": options,
        "counts": [{"grade": opt, "votes": counts[opt]} for opt in options],
        "total": total,
        "consensus": consensus,
    }


def sort_grade_tags(tags) -> list:
    """Known tags in display order; unknown labels (e.g. "Ungraded") last, alphabetically."""
    tags = set(tags)
    known = [t for t in GRADE_TAGS if t in tags]
    unknown = sorted(t for t in tags if t not in GRADE_TAGS)
    return known + unknown
