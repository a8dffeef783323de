"""
Finds the code of a comment seen on the rendered page.

Candidates are the signatures with the comment's author and timestamp. When a
user posts several comments in the same minute, the neighbouring signatures
and the comment text decide.
"""

import re
from typing import List, Optional

import structlog

from talksource.config import LocatorConfig, default_config
from talksource.errors import SourceNotLoadedError
from talksource.masking import TextMasker
from talksource.models import UNDATED_AUTHOR, CommentScore, CommentSource, CommentTarget, Signature
from talksource.signatures import extract_signatures
from talksource.utils.matching import calculate_word_overlap
from talksource.wikitext import normalize_code, normalize_user_name, remove_wiki_markup

logger = structlog.get_logger(__name__)

# The last heading in the comment code, i.e. the heading of the section the comment opens
HEADING_IN_COMMENT_REGEXP = re.compile(r"(^[\s\S]*(?:^|\n))((=+)(.*)\3[ \t\x01\x02]*\n)")
INDENTATION_REGEXP = re.compile(r"(\n*)([:*#]*)( *)")

SCORE_THRESHOLD = 2.5
# Doesn't count as a headline match, but is close to one when nothing else is known
MISSING_HEADLINE_SCORE = -0.4999


def _matches_target(signature: Signature, target: CommentTarget) -> bool:
    if signature.author != normalize_user_name(target.author) and signature.author != UNDATED_AUTHOR:
        return False
    if signature.timestamp == target.timestamp:
        return True
    return bool(target.timestamp and signature.timestamp and target.timestamp.startswith(signature.timestamp))


def _build_source(
    code: str,
    signature: Signature,
    config: LocatorConfig,
    is_in_section_context: bool,
) -> CommentSource:
    start = signature.comment_start_index
    comment_code = code[start : signature.start_index]

    heading = {}
    masker = TextMasker(comment_code).mask_sensitive_code()
    match = HEADING_IN_COMMENT_REGEXP.match(masker.text)
    if match:
        before = masker.unmask_text(match.group(1))
        consumed = len(masker.unmask_text(match.group(0)))
        heading = dict(
            heading_code=masker.unmask_text(match.group(2)),
            heading_level=len(match.group(3)),
            headline_code=masker.unmask_text(match.group(4)).strip(),
            heading_start_index=start + len(before),
        )
        start += consumed
        comment_code = comment_code[consumed:]

    for regexp in config.patterns.bad_comment_beginnings:
        match = regexp.match(comment_code)
        if match:
            start += len(match.group(0))
            comment_code = comment_code[len(match.group(0)) :]

    match = INDENTATION_REGEXP.match(comment_code)
    line_start = start + len(match.group(1))
    indentation = match.group(2)
    start += len(match.group(0))
    comment_code = comment_code[len(match.group(0)) :]

    return CommentSource(
        index=signature.index,
        author=signature.author,
        timestamp=signature.timestamp,
        date=signature.date,
        start_index=start,
        end_index=signature.start_index,
        signature_end_index=signature.end_index,
        line_start_index=line_start,
        code=comment_code,
        signature_dirty_code=signature.dirty_code,
        indentation=indentation,
        reply_indentation=indentation + ":",
        is_in_section_context=is_in_section_context,
        **heading,
    )


def score_comment_source(
    source: CommentSource,
    target: CommentTarget,
    sources: List[CommentSource],
    signatures: List[Signature],
) -> CommentScore:
    """
    Scores one candidate against the target.

    Args:
        sources: All candidates; a lone candidate always passes the mandatory check.
        signatures: All signatures of the code, to compare the comments before the candidate.
    """
    previous_match = False
    previous_all_equal = None
    if target.previous_comments:
        for i, previous in enumerate(target.previous_comments):
            position = source.index - 1 - i
            if position < 0:
                break
            signature = signatures[position]
            # One matching previous comment is enough when the one before it is unavailable
            previous_match = (
                signature.timestamp == previous.timestamp
                and signature.author == normalize_user_name(previous.author)
            )
            # Many consecutive comments with the same author and timestamp prove nothing
            if previous_all_equal is not False:
                previous_all_equal = source.timestamp == signature.timestamp and source.author == signature.author
            if not previous_match:
                break
    else:
        previous_match = source.index == 0
    previous_all_equal = bool(previous_all_equal)

    if target.section_headline is not None:
        if source.headline_code is not None:
            headline = float(
                normalize_code(remove_wiki_markup(source.headline_code)) == normalize_code(target.section_headline)
            )
        else:
            headline = MISSING_HEADLINE_SCORE
    else:
        headline = float(source.heading_code is None)

    word_overlap = calculate_word_overlap(target.text, remove_wiki_markup(source.code))

    mandatory = (
        len(sources) == 1
        or word_overlap > 0.5
        # First comments have no previous comments to compare, so rely on headline and signature.
        or (target.index == 0 and previous_match and bool(headline))
        or (target.index != 0 and previous_match and not previous_all_equal)
    )

    return CommentScore(
        mandatory=mandatory,
        word_overlap=word_overlap,
        headline=headline,
        previous_comments=previous_match,
        index=source.index == target.index,
    )


def collect_comment_sources(
    code: str,
    target: CommentTarget,
    config: Optional[LocatorConfig] = None,
    is_in_section_context: bool = False,
    signatures: Optional[List[Signature]] = None,
) -> List[CommentSource]:
    """Returns the comments in `code` whose signature fits the target, unscored."""
    if code is None:
        raise SourceNotLoadedError("Cannot collect comments: no code loaded")
    config = config or default_config()
    if signatures is None:
        signatures = extract_signatures(code, config)
    return [
        _build_source(code, signature, config, is_in_section_context)
        for signature in signatures
        if _matches_target(signature, target)
    ]


def locate_comment(
    code: str,
    target: CommentTarget,
    config: Optional[LocatorConfig] = None,
    is_in_section_context: bool = False,
) -> Optional[CommentSource]:
    """
    Finds the code of the target comment.

    Returns:
        The best scoring candidate with its score, or None if no candidate scores above 2.5.
    """
    if code is None:
        raise SourceNotLoadedError("Cannot locate a comment: no code loaded")

    config = config or default_config()
    signatures = extract_signatures(code, config)
    sources = collect_comment_sources(code, target, config, is_in_section_context, signatures)

    best: Optional[CommentSource] = None
    for source in sources:
        breakdown = score_comment_source(source, target, sources, signatures)
        score = breakdown.total
        logger.debug("Scored comment candidate", index=source.index, author=source.author, score=score)
        if score <= SCORE_THRESHOLD:
            continue
        if best is None or score > best.score:
            best = source.model_copy(update={"score": score, "breakdown": breakdown})

    if best is None:
        logger.info("Comment not found", author=target.author, timestamp=target.timestamp, candidates=len(sources))
    else:
        logger.info("Comment located", index=best.index, author=best.author, score=best.score)
    return best
