"""Per-category extraction rules over compiled catalog tables."""

import re

from narrative_tracker.models import CandidateFact

PatternTable = dict[str, list[re.Pattern]]

_TAG_RE = re.compile(r"\[(.+?)\]")


def last_match(text: str, table: PatternTable) -> tuple[str, re.Match] | None:
    """Return the (key, match) that starts latest in the text.

    Ties on start offset keep the earlier catalog entry.
    """
    best: tuple[str, re.Match] | None = None
    for key, patterns in table.items():
        for pattern in patterns:
            for match in pattern.finditer(text):
                if best is None or match.start() > best[1].start():
                    best = (key, match)
    return best


def mask_directives(text: str, bracket_re: re.Pattern, directives: list[re.Pattern]) -> str:
    """Blank out bracketed system directives, keeping character offsets."""
    chars = list(text)
    for span in bracket_re.finditer(text):
        if any(d.search(span.group(0)) for d in directives):
            chars[span.start():span.end()] = " " * (span.end() - span.start())
    return "".join(chars)


def clean_person_name(raw: str, stop_words: frozenset[str]) -> str | None:
    """Drop leading stop words ("Then Elena" → "Elena"); None if nothing usable is left."""
    words = raw.split()
    while words and words[0].lower() in stop_words:
        words.pop(0)
    name = " ".join(words)
    if not (2 < len(name) < 30) or name.lower() in stop_words or not name[0].isupper():
        return None
    return name


def extract_people(
    text: str, patterns: list[re.Pattern], stop_words: frozenset[str]
) -> list[CandidateFact]:
    found: list[tuple[int, int, CandidateFact]] = []
    for order, pattern in enumerate(patterns):
        for match in pattern.finditer(text):
            name = clean_person_name(match.group(1), stop_words)
            if name is None:
                continue
            found.append((match.start(1), order, CandidateFact(
                category="person", name=name, raw_span=match.group(0).strip(),
            )))
    found.sort(key=lambda f: (f[0], f[1]))
    return [fact for _, _, fact in found]


def extract_items(
    text: str, patterns: list[tuple[re.Pattern, str]], skip_words: frozenset[str]
) -> list[CandidateFact]:
    found: list[tuple[int, int, CandidateFact]] = []
    for order, (pattern, direction) in enumerate(patterns):
        for match in pattern.finditer(text):
            groups = [g for g in match.groups() if g is not None]
            if not groups:
                continue
            name = " ".join(groups[-1].split())
            if not (2 < len(name) < 40) or name.lower() in skip_words:
                continue
            quantity = groups[0].strip() if len(groups) > 1 else "1"
            found.append((match.start(), order, CandidateFact(
                category="item",
                name=name,
                attributes={"direction": direction, "quantity": quantity},
                raw_span=match.group(0).strip(),
            )))
    found.sort(key=lambda f: (f[0], f[1]))
    return [fact for _, _, fact in found]


def combat_signals(
    text: str, signals: list[re.Pattern], exclusions: list[re.Pattern]
) -> tuple[int, str]:
    """Count independent combat signal groups in the text.

    Returns (count, first matching span). Any exclusion zeroes the count.
    """
    if any(p.search(text) for p in exclusions):
        return 0, ""
    count = 0
    first: re.Match | None = None
    for pattern in signals:
        match = pattern.search(text)
        if match:
            count += 1
            if first is None or match.start() < first.start():
                first = match
    return count, first.group(0) if first else ""


def mechanics_tags(text: str, block_re: re.Pattern) -> list[str]:
    """Bracketed tags from the MECHANICS block, or from the whole text if absent."""
    block = block_re.search(text)
    source = block.group(1).strip() if block else text
    return [m.group(1).strip() for m in _TAG_RE.finditer(source)]


def parse_mechanics_tag(tag: str, table: dict[str, re.Pattern]) -> CandidateFact | None:
    raw = f"[{tag}]"

    m = table["resource"].match(tag)
    if m:
        return CandidateFact(
            category="mechanics", name=m.group(1).upper(),
            attributes={"kind": "resource", "delta": _signed(m.group(2), m.group(3))},
            raw_span=raw,
        )

    m = table["currency"].match(tag)
    if m:
        return CandidateFact(
            category="mechanics", name=m.group(1).capitalize(),
            attributes={"kind": "currency", "delta": _signed(m.group(2), m.group(3))},
            raw_span=raw,
        )

    m = table["quest"].match(tag)
    if m:
        status = m.group(2) or "Active"
        return CandidateFact(
            category="mechanics", name=m.group(1).strip(),
            attributes={"kind": "quest", "status": status.capitalize()},
            raw_span=raw,
        )

    m = table["status"].match(tag)
    if m:
        return CandidateFact(
            category="mechanics", name=m.group(2).strip(),
            attributes={"kind": "status", "op": m.group(1)},
            raw_span=raw,
        )

    return None


def _signed(sign: str, amount: str) -> str:
    value = int(amount.replace(",", ""))
    return str(-value if sign == "-" else value)
