from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

UNDATED_AUTHOR = "<undated>"


class Signature(BaseModel):
    """
    A signature (or unsigned template) found in wikitext, with the span of the
    comment it ends. Offsets are into the code that was scanned.
    """

    model_config = ConfigDict(frozen=True)

    author: str = Field(..., description=f"Normalized user name, or '{UNDATED_AUTHOR}' for unsigned templates without one.")
    timestamp: Optional[str] = Field(None, description="Timestamp as written in code.")
    date: Optional[datetime] = Field(None, description="Parsed timestamp in UTC, if it could be parsed.")
    start_index: int = Field(..., description="Start of the signature code.")
    end_index: int = Field(..., description="End of the signature code (after the timestamp).")
    dirty_code: str = Field(..., description="Raw signature code, from the author link to the timestamp.")
    comment_start_index: int = Field(0, description="Start of the comment this signature ends.")
    next_comment_start_index: int = Field(..., description="End of the signature line, including line breaks.")
    index: int = Field(0, description="Position among the signatures of the scanned code.")
    is_unsigned: bool = Field(False, description="True if the record comes from an unsigned template.")
    anchor: Optional[str] = Field(None, description="Comment anchor, when requested.")


class CommentFingerprint(BaseModel):
    """Identifies a comment by its signature, optionally with its rendered text."""

    model_config = ConfigDict(frozen=True)

    author: str
    timestamp: Optional[str] = None
    text: Optional[str] = Field(None, description="Rendered text of the comment, for word overlap.")


class SectionTarget(BaseModel):
    """What is known about a section from the rendered page."""

    headline: str = Field(..., description="Rendered headline.")
    index: int = Field(0, description="Ordinal of the section among all headings of the page.")
    previous_headlines: List[str] = Field(
        default_factory=list,
        description="Headlines of the sections before this one, nearest first.",
    )
    oldest_comment: Optional[CommentFingerprint] = Field(
        None,
        description="The oldest comment of the section, if it has any.",
    )


SECTION_SCORE_WEIGHTS = {
    "oldest_comment": 1,
    "word_overlap": 1,
    "headline": 1,
    "index": 0.5,
    "previous_headlines": 0.25,
}


class SectionScore(BaseModel):
    """Components of a section match score, each between 0 and 1."""

    model_config = ConfigDict(frozen=True)

    oldest_comment: float = 0
    word_overlap: float = 0
    headline: float = 0
    index: float = 0
    previous_headlines: float = 0

    @computed_field
    @property
    def total(self) -> float:
        return sum(getattr(self, name) * weight for name, weight in SECTION_SCORE_WEIGHTS.items())


class SectionSource(BaseModel):
    """
    A section as found in code. Offsets are into the scanned code.
    `first_chunk_*` refer to the part before the first subsection.
    """

    model_config = ConfigDict(frozen=True)

    headline: str
    index: int
    level: int
    heading_code: str
    start_index: int
    end_index: int
    code: str
    first_chunk_code: str
    first_chunk_end_index: int
    content_start_index: int
    content_end_index: int
    first_chunk_content_end_index: int
    relative_content_start_index: int
    is_in_section_context: bool = False
    score: Optional[float] = None
    breakdown: Optional[SectionScore] = None


class CommentTarget(BaseModel):
    """What is known about a comment from the rendered page."""

    index: int = Field(0, description="Ordinal of the comment among the comments of the page (or section).")
    author: str
    timestamp: Optional[str] = None
    text: str = ""
    previous_comments: List[CommentFingerprint] = Field(
        default_factory=list,
        description="Comments right before this one, nearest first.",
    )
    section_headline: Optional[str] = Field(None, description="Headline of the section the comment is in.")


class CommentScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    mandatory: bool = False
    word_overlap: float = 0
    headline: float = 0
    previous_comments: bool = False
    index: bool = False

    @computed_field
    @property
    def total(self) -> float:
        return (
            int(self.mandatory) * 2
            + self.word_overlap
            + self.headline * 1
            + int(self.previous_comments) * 0.5
            + int(self.index) * 0.0001
        )


class CommentSource(BaseModel):
    """A comment as found in code, with its heading (if it opens a section) split off."""

    model_config = ConfigDict(frozen=True)

    index: int
    author: str
    timestamp: Optional[str]
    date: Optional[datetime] = None
    start_index: int
    end_index: int
    signature_end_index: int
    line_start_index: int
    code: str
    signature_dirty_code: str
    heading_code: Optional[str] = None
    headline_code: Optional[str] = None
    heading_level: Optional[int] = None
    heading_start_index: Optional[int] = None
    indentation: str = ""
    reply_indentation: str = ":"
    is_in_section_context: bool = False
    score: Optional[float] = None
    breakdown: Optional[CommentScore] = None


class SectionAction(str, Enum):
    REPLY_IN_SECTION = "REPLY_IN_SECTION"
    ADD_SUBSECTION = "ADD_SUBSECTION"
