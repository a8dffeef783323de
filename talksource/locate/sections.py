"""
Finds the code of a section seen on the rendered page.

Headings are found with a line regex over the code with distracting parts
blanked out; each heading becomes a candidate which is scored against what is
known about the target section: its headline, its position, the headlines
before it and its oldest comment.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

import structlog

from talksource.config import LocatorConfig, default_config
from talksource.errors import SourceNotLoadedError
from talksource.models import SECTION_SCORE_WEIGHTS, SectionScore, SectionSource, SectionTarget
from talksource.signatures import extract_signatures
from talksource.utils.matching import calculate_word_overlap, get_oldest_or_newest
from talksource.wikitext import mask_distracting_code, normalize_code, normalize_user_name, remove_wiki_markup

logger = structlog.get_logger(__name__)

HEADING_REGEXP = re.compile(r"^((=+)(.*)\2[ \t\x01\x02]*)\n", re.MULTILINE)
# An empty list item left as a placeholder at the end of the first chunk
PLACEHOLDER_REGEXP = re.compile(r"\n([#*] *\n+)\Z")

PREVIOUS_HEADLINES_TO_CHECK = 3
SCORE_THRESHOLD = 1
# Every component is between 0 and 1
MAX_SECTION_SCORE = sum(SECTION_SCORE_WEIGHTS.values())


@dataclass
class _Heading:
    start: int
    end: int
    level: int
    code: str
    headline: str


def _find_headings(code: str, adjusted: str) -> List[_Heading]:
    headings = []
    for match in HEADING_REGEXP.finditer(adjusted):
        headline_code = code[match.start(3) : match.end(3)]
        headings.append(
            _Heading(
                start=match.start(),
                end=match.end(),
                level=len(match.group(2)),
                code=code[match.start(1) : match.end(1)],
                headline=normalize_code(remove_wiki_markup(headline_code)),
            )
        )
    return headings


def _build_source(
    code: str,
    headings: List[_Heading],
    index: int,
    config: LocatorConfig,
    is_in_section_context: bool,
) -> Optional[SectionSource]:
    heading = headings[index]
    following = headings[index + 1 :]

    # The section runs up to the next heading of the same or a higher level
    end = next((h.start for h in following if h.level <= heading.level), len(code))
    section_code = code[heading.start : end]

    # The first chunk runs up to the next heading of any level, minus the blank lines before it
    if following:
        first_chunk_code = code[heading.start : following[0].start].rstrip("\n") + "\n"
    else:
        first_chunk_code = code[heading.start :]

    if not section_code or not first_chunk_code:
        logger.warning(f"Skipping section {index}: could not extract its code", headline=heading.headline)
        return None

    content_start = heading.end
    content_end = end
    first_chunk_content_end = heading.start + len(first_chunk_code)

    # Trailing code that new content must go before. One line break stays with the content.
    for regexp in config.patterns.keep_in_section_ending:
        match = regexp.search(first_chunk_code)
        if match:
            first_chunk_content_end -= len(match.group(0)) - 1
        match = regexp.search(section_code)
        if match:
            content_end -= len(match.group(0)) - 1

    match = PLACEHOLDER_REGEXP.search(first_chunk_code)
    if match:
        first_chunk_content_end -= len(match.group(1))

    return SectionSource(
        headline=heading.headline,
        index=index,
        level=heading.level,
        heading_code=heading.code,
        start_index=heading.start,
        end_index=end,
        code=section_code,
        first_chunk_code=first_chunk_code,
        first_chunk_end_index=heading.start + len(first_chunk_code),
        content_start_index=content_start,
        content_end_index=max(content_end, content_start),
        first_chunk_content_end_index=max(first_chunk_content_end, content_start),
        relative_content_start_index=content_start - heading.start,
        is_in_section_context=is_in_section_context,
    )


def collect_section_sources(
    code: str,
    config: Optional[LocatorConfig] = None,
    is_in_section_context: bool = False,
) -> List[SectionSource]:
    """Returns every section found in `code`, unscored, in source order."""
    if code is None:
        raise SourceNotLoadedError("Cannot collect sections: no code loaded")
    config = config or default_config()
    headings = _find_headings(code, mask_distracting_code(code, config.patterns))
    sources = []
    for i in range(len(headings)):
        source = _build_source(code, headings, i, config, is_in_section_context)
        if source is not None:
            sources.append(source)
    return sources


def score_section_source(
    source: SectionSource,
    target: SectionTarget,
    previous_headlines_in_code: List[str],
    config: Optional[LocatorConfig] = None,
) -> SectionScore:
    """
    Scores one candidate against the target.

    Args:
        previous_headlines_in_code: Headlines of the headings before the candidate, in source order.
    """
    config = config or default_config()
    target_headline = normalize_code(target.headline)

    # 1. Headline. Templates in a headline render unpredictably, so they only half count.
    if "{{" in target_headline:
        headline = 0.5
    else:
        headline = float(source.headline == target_headline)

    # 2. Position. Meaningless when only one section's code is loaded.
    if source.is_in_section_context:
        index = 0.0
        previous_headlines = 0.0
    else:
        index = float(source.index == target.index)
        in_code = previous_headlines_in_code[-PREVIOUS_HEADLINES_TO_CHECK:][::-1]
        expected = [normalize_code(h) for h in target.previous_headlines[:PREVIOUS_HEADLINES_TO_CHECK]]
        previous_headlines = float(all(i < len(in_code) and h == in_code[i] for i, h in enumerate(expected)))

    # 3. Oldest comment
    signatures = extract_signatures(source.code, config)
    oldest_signature = get_oldest_or_newest(signatures, "oldest", allow_dateless=True)
    fingerprint = target.oldest_comment

    if fingerprint is None and oldest_signature is None:
        oldest_comment = 1.0
        word_overlap = 0.5
    elif fingerprint is not None and oldest_signature is not None:
        timestamps_match = fingerprint.timestamp is not None and oldest_signature.timestamp == fingerprint.timestamp
        authors_match = oldest_signature.author == normalize_user_name(fingerprint.author)
        oldest_comment = float(timestamps_match or authors_match)
        comment_code = source.code[oldest_signature.comment_start_index : oldest_signature.start_index]
        word_overlap = calculate_word_overlap(fingerprint.text or "", remove_wiki_markup(comment_code))
    else:
        oldest_comment = 0.0
        word_overlap = 0.0

    return SectionScore(
        oldest_comment=oldest_comment,
        word_overlap=word_overlap,
        headline=headline,
        index=index,
        previous_headlines=previous_headlines,
    )


def locate_section(
    code: str,
    target: SectionTarget,
    config: Optional[LocatorConfig] = None,
    is_in_section_context: bool = False,
) -> Optional[SectionSource]:
    """
    Finds the code of the target section.

    Args:
        code: Page code, or a single section's code if `is_in_section_context`.
        target: What is known about the section from the rendered page.
        config: Site configuration.
        is_in_section_context: Only one section's code was loaded; positions are not compared.

    Returns:
        The best scoring candidate with its score, or None if no candidate scores above 1.
    """
    if code is None:
        raise SourceNotLoadedError("Cannot locate a section: no code loaded")

    config = config or default_config()
    headings = _find_headings(code, mask_distracting_code(code, config.patterns))

    best: Optional[SectionSource] = None
    seen_headlines: List[str] = []
    for i, heading in enumerate(headings):
        source = _build_source(code, headings, i, config, is_in_section_context)
        if source is None:
            seen_headlines.append(heading.headline)
            continue

        breakdown = score_section_source(source, target, seen_headlines, config)
        seen_headlines.append(heading.headline)
        score = breakdown.total
        logger.debug("Scored section candidate", index=i, headline=source.headline, score=score)

        if score <= SCORE_THRESHOLD:
            continue
        if best is None or score > best.score:
            best = source.model_copy(update={"score": score, "breakdown": breakdown})
        if score >= MAX_SECTION_SCORE:
            break

    if best is None:
        logger.info("Section not found", headline=target.headline, candidates=len(headings))
    else:
        logger.info("Section located", headline=best.headline, index=best.index, score=best.score)
    return best
