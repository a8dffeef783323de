"""
Applies insertions to the code around a located section.
"""

from typing import Optional

import structlog

from talksource.errors import SourceNotLoadedError
from talksource.models import SectionAction, SectionSource
from talksource.wikitext import end_with_two_newlines

logger = structlog.get_logger(__name__)


def modify_section_context(
    source: SectionSource,
    context_code: Optional[str],
    action: SectionAction,
    comment_code: str,
) -> str:
    """
    Inserts `comment_code` into the code the section was located in.

    Args:
        source: Result of locate_section() on `context_code`.
        context_code: The same code that was passed to locate_section().
        action: REPLY_IN_SECTION inserts at the end of the section's first chunk
                (before any subsection); ADD_SUBSECTION inserts at the end of the
                whole section, separated by a blank line.
        comment_code: Code to insert, normally ending with a line break.

    Returns:
        The modified context code.
    """
    if context_code is None:
        raise SourceNotLoadedError("Cannot modify section context: no context code")

    if action == SectionAction.REPLY_IN_SECTION:
        position = source.first_chunk_content_end_index
        return context_code[:position] + comment_code + context_code[position:]

    if action == SectionAction.ADD_SUBSECTION:
        position = source.content_end_index
        before = end_with_two_newlines(context_code[:position])
        after = context_code[position:].strip()
        logger.debug("Adding subsection", headline=source.headline, position=position)
        return before + comment_code + after

    raise ValueError(f"Unsupported section action: {action}")
