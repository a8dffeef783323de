"""
Signature extraction.

Finds user signatures (author link followed by a timestamp on the same line)
and unsigned templates in wikitext, and derives the span of the comment each
one ends.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import structlog

from talksource.config import LocatorConfig, SitePatterns, default_config
from talksource.errors import SourceNotLoadedError
from talksource.models import UNDATED_AUTHOR, Signature
from talksource.timestamp import find_first_timestamp as _find_first_timestamp
from talksource.timestamp import generate_comment_anchor, parse_timestamp
from talksource.wikitext import mask_distracting_code, normalize_user_name

logger = structlog.get_logger(__name__)

# 255 is the maximum signature length; len("[[u:a") is the shortest possible
# user link; 1 accounts for the space before the timestamp.
SIGNATURE_SCAN_LIMIT = 255 - len("[[u:a") + 1


@dataclass
class _RawSignature:
    author: Optional[str]
    timestamp: Optional[str]
    start_index: int
    end_index: int
    next_comment_start_index: int
    is_unsigned: bool = False


def _line_boundary(text: str, pos: int) -> int:
    """End of the line containing `pos`, including the line breaks after it."""
    end = text.find("\n", pos)
    if end == -1:
        return len(text)
    while end < len(text) and text[end] == "\n":
        end += 1
    return end


def _author_from_link(name: str) -> str:
    return normalize_user_name(name.split("#")[0])


def _extract_regular_signatures(adjusted: str, patterns: SitePatterns) -> List[_RawSignature]:
    results = []
    for match in patterns.timestamp_line.finditer(adjusted):
        line = match.group(1)
        timestamp = match.group(3)
        timestamp_start = len(match.group(2))
        line_start = match.start()

        links = [
            link
            for link in patterns.author_link.finditer(line, 0, timestamp_start)
            if 1 <= timestamp_start - link.end() <= SIGNATURE_SCAN_LIMIT
        ]

        author = None
        start = timestamp_start
        if links:
            # The last link before the timestamp names the author; subpage links only as a last resort.
            main_links = [link for link in links if not link.group("slash")]
            chosen = (main_links or links)[-1]
            author = _author_from_link(chosen.group("author")) or None
            start = chosen.start()
            # The signature starts at the first link to the same user within the window.
            for link in main_links:
                if _author_from_link(link.group("author")) == author:
                    start = link.start()
                    break

        results.append(
            _RawSignature(
                author=author,
                timestamp=timestamp,
                start_index=line_start + start,
                end_index=line_start + len(line),
                next_comment_start_index=match.end(),
            )
        )
    return results


def _extract_unsigned_signatures(adjusted: str, patterns: SitePatterns, utc_label: str) -> List[_RawSignature]:
    if not patterns.unsigned_template:
        return []

    no_timezone = patterns.timestamp.no_timezone
    results = []
    for match in patterns.unsigned_template.finditer(adjusted):
        first, second = match.group(1), match.group(2)

        # Either parameter order is in use
        if no_timezone.search(first):
            timestamp, author = first, second
        elif second and no_timezone.search(second):
            timestamp, author = second, first
        else:
            timestamp, author = None, first

        if timestamp and not patterns.timestamp.detect.search(timestamp):
            timestamp = f"{timestamp} ({utc_label})"

        results.append(
            _RawSignature(
                author=(author and normalize_user_name(author)) or UNDATED_AUTHOR,
                timestamp=timestamp,
                start_index=match.start(),
                end_index=match.end(),
                next_comment_start_index=_line_boundary(adjusted, match.end()),
                is_unsigned=True,
            )
        )
    return results


def _deduplicate(records: List[_RawSignature]) -> List[_RawSignature]:
    """
    Keeps one record per comment boundary. Unsigned templates win over regular
    signatures; otherwise the later record on the line wins.
    """
    by_boundary: Dict[int, _RawSignature] = {}
    for record in sorted(records, key=lambda r: r.start_index):
        existing = by_boundary.get(record.next_comment_start_index)
        if existing is not None and existing.is_unsigned and not record.is_unsigned:
            continue
        by_boundary[record.next_comment_start_index] = record
    return sorted(by_boundary.values(), key=lambda r: r.start_index)


def extract_signatures(
    code: str,
    config: Optional[LocatorConfig] = None,
    generate_anchors: bool = False,
) -> List[Signature]:
    """
    Extracts signatures from wikitext.

    Args:
        code: Page or section code.
        config: Site configuration; English Wikipedia defaults when omitted.
        generate_anchors: Also generate comment anchors, unique within this call.

    Returns:
        Signatures ordered by position. Each record's comment_start_index equals the
        previous record's next_comment_start_index (0 for the first).
    """
    if code is None:
        raise SourceNotLoadedError("Cannot extract signatures: no code loaded")

    config = config or default_config()
    patterns = config.patterns
    adjusted = mask_distracting_code(code, patterns)

    regular = _extract_regular_signatures(adjusted, patterns)
    unsigned = _extract_unsigned_signatures(adjusted, patterns, config.utc_label)
    records = [r for r in _deduplicate(regular + unsigned) if r.author]

    signatures = []
    anchors = set()
    comment_start = 0
    for index, record in enumerate(records):
        date = parse_timestamp(record.timestamp, patterns.timestamp) if record.timestamp else None
        anchor = None
        if generate_anchors and date and record.author != UNDATED_AUTHOR:
            anchor = generate_comment_anchor(date, record.author, anchors)

        signatures.append(
            Signature(
                author=record.author,
                timestamp=record.timestamp,
                date=date,
                start_index=record.start_index,
                end_index=record.end_index,
                dirty_code=code[record.start_index : record.end_index],
                comment_start_index=comment_start,
                next_comment_start_index=record.next_comment_start_index,
                index=index,
                is_unsigned=record.is_unsigned,
                anchor=anchor,
            )
        )
        comment_start = record.next_comment_start_index

    logger.debug("Extracted signatures", count=len(signatures), dropped=len(regular) + len(unsigned) - len(signatures))
    return signatures


def find_first_timestamp(code: str, config: Optional[LocatorConfig] = None) -> Optional[str]:
    if code is None:
        raise SourceNotLoadedError("Cannot search for a timestamp: no code loaded")
    config = config or default_config()
    return _find_first_timestamp(mask_distracting_code(code, config.patterns), config.patterns.timestamp)
