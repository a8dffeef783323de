"""
Site configuration.

Talk page conventions differ between wikis: namespace names, unsigned
templates, the date format of signatures. LocatorConfig holds these tables
(defaults follow English Wikipedia) and compiles them into SitePatterns once,
so the extractor and the locators never rebuild regexes per call.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple, Union

import structlog
from pydantic import BaseModel, Field, PrivateAttr

from talksource.timestamp import TimestampPatterns, build_timestamp_patterns
from talksource.wikitext import generate_any_space_pattern, generate_page_name_pattern, generate_tags_regexp

logger = structlog.get_logger(__name__)

MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
MONTHS_SHORT = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
WEEKDAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
WEEKDAYS_SHORT = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

DEFAULT_KEEP_IN_SECTION_ENDING = [
    # Trailing comments separated by a blank line
    r"\n{2,}(?:<!--[\s\S]*?-->\s*)+\Z",
    # Transclusion markers
    r"(?i)\n+(?:<!--[\s\S]*?-->\s*)*</?(?:section|onlyinclude)(?: [\w ]+(?:=[^<>]+?)?)? */?>\s*(?:<!--[\s\S]*?-->\s*)*\Z",
    r"(?i)\n+<noinclude>([\s\S]*?)</noinclude>\s*\Z",
]


@dataclass
class SitePatterns:
    """Regexes compiled from a LocatorConfig."""

    timestamp: TimestampPatterns
    author_link: re.Pattern
    timestamp_line: re.Pattern
    unsigned_template: Optional[re.Pattern]
    keep_in_section_ending: List[re.Pattern]
    quote: Optional[re.Pattern]
    comment_antipatterns: Optional[re.Pattern]
    distracting_tags: re.Pattern
    bad_comment_beginnings: List[re.Pattern]


class LocatorConfig(BaseModel):
    """
    Site-specific tables used to find signatures and sections in wikitext.
    Regex-valued entries are Python regex sources.
    """

    user_namespaces: List[str] = Field(
        default_factory=lambda: ["User", "User talk"],
        description="Local names of the User and User talk namespaces.",
    )
    user_namespace_aliases: List[str] = Field(
        default_factory=list,
        description="Additional names or aliases of the user namespaces (e.g. gendered forms).",
    )
    special_namespace: str = Field("Special", description="Local name of the Special namespace.")
    contributions_page: str = Field("Contributions", description="Canonical name of Special:Contributions.")
    contributions_aliases: List[str] = Field(
        default_factory=lambda: ["Contribs"],
        description="Aliases of the contributions special page.",
    )
    unsigned_templates: List[str] = Field(
        default_factory=lambda: [
            "Unsigned",
            "Unsigned2",
            "UnsignedIP",
            "UnsignedIP2",
            "Unsigned IP",
            "Unsigned IP2",
            "Unsigned-ip",
            "Unsig",
            "Uns",
        ],
        description="Templates that mark a comment left without a signature.",
    )
    clear_templates: List[str] = Field(
        default_factory=lambda: ["Clear", "Clr", "-", "Clear all", "Clearall"],
        description="Templates kept at the end of a section when inserting after its content.",
    )
    reflist_templates: List[str] = Field(
        default_factory=lambda: ["Reflist-talk", "Reflist talk", "Talk reflist", "Talkref", "Ref-talk"],
        description="Reference list templates kept at the end of a section.",
    )
    keep_in_section_ending: List[str] = Field(
        default_factory=lambda: list(DEFAULT_KEEP_IN_SECTION_ENDING),
        description="Patterns for trailing code that new content must be inserted before. Should end with \\Z.",
    )
    pair_quote_templates: List[Tuple[str, str]] = Field(
        default_factory=lambda: [("Quote top", "Quote bottom")],
        description="Opening and closing templates that wrap quoted text.",
    )
    no_signature_classes: List[str] = Field(
        default_factory=lambda: ["mw-notalk"],
        description="CSS classes of elements whose lines never contain comments.",
    )
    comment_antipatterns: List[str] = Field(
        default_factory=list,
        description="Patterns for lines that look like comments but must be ignored.",
    )
    bad_comment_beginnings: List[str] = Field(
        default_factory=lambda: [r"^<!--[\s\S]*?--> *\n+", r"^(?:----+|<hr>) *\n+"],
        description="Code at the start of a comment that does not belong to it.",
    )
    distracting_tags: List[str] = Field(
        default_factory=lambda: ["nowiki", "pre", "source", "syntaxhighlight"],
        description="Tags whose content is blanked before looking for headings and signatures.",
    )
    date_format: str = Field("H:i, j F Y", description="MediaWiki date format of signature timestamps.")
    months: List[str] = Field(default_factory=lambda: list(MONTHS))
    months_genitive: List[str] = Field(default_factory=lambda: list(MONTHS))
    months_short: List[str] = Field(default_factory=lambda: list(MONTHS_SHORT))
    weekdays: List[str] = Field(default_factory=lambda: list(WEEKDAYS))
    weekdays_short: List[str] = Field(default_factory=lambda: list(WEEKDAYS_SHORT))
    digits: Optional[str] = Field(None, description="Ten local digit characters, if the wiki does not use 0-9.")
    timezone: Union[str, int] = Field(
        "UTC",
        description="Content timezone: an IANA name, or an offset from UTC in minutes.",
    )
    utc_label: str = Field("UTC", description="Timezone abbreviation appended to unsigned template timestamps.")

    _patterns: Optional[SitePatterns] = PrivateAttr(default=None)

    def model_post_init(self, __context) -> None:
        try:
            self._patterns = self._compile()
        except re.error as e:
            raise ValueError(f"Invalid pattern in locator config: {e}") from e

    @property
    def patterns(self) -> SitePatterns:
        return self._patterns

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "LocatorConfig":
        """Loads a config from a JSON file. Missing keys keep their defaults."""
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        config = cls.model_validate_json(p.read_text(encoding="utf-8"))
        logger.debug("Loaded locator config", path=str(p))
        return config

    def capture_user_name_pattern(self) -> str:
        """
        Regex source capturing the user name of a link to a user page, user talk
        page or contributions page. Named groups: "author" and "slash" (set when the
        link points to a subpage).
        """
        namespaces = "|".join(
            generate_any_space_pattern(ns) for ns in self.user_namespaces + self.user_namespace_aliases
        )
        contributions = generate_any_space_pattern(self.special_namespace) + "[ _]*:[ _]*" + "(?:" + "|".join(
            generate_any_space_pattern(name) for name in [self.contributions_page] + self.contributions_aliases
        ) + ")"
        return (
            r"\[\[[ _]*:?(?:\w*:){0,2}"
            rf"(?:(?:{namespaces})[ _]*:[ _]*|{contributions}/[ _]*)"
            r"(?P<author>[^|\]/]+)(?P<slash>/)?"
        )

    def _template_names_pattern(self, names: List[str]) -> str:
        return "|".join(generate_page_name_pattern(name) for name in names)

    def _compile(self) -> SitePatterns:
        timestamp = build_timestamp_patterns(
            self.date_format,
            months=self.months,
            months_genitive=self.months_genitive,
            months_short=self.months_short,
            weekdays=self.weekdays,
            weekdays_short=self.weekdays_short,
            digits=self.digits,
            content_timezone=self.timezone,
            utc_label=self.utc_label,
        )

        unsigned = None
        if self.unsigned_templates:
            names = self._template_names_pattern(self.unsigned_templates)
            unsigned = re.compile(rf"\{{\{{ *(?:{names}) *\| *([^}}|]+?) *(?:\| *([^}}]+?) *)?\}}\}}")

        keep = [re.compile(pattern) for pattern in self.keep_in_section_ending]
        if self.clear_templates:
            names = self._template_names_pattern(self.clear_templates)
            keep.append(re.compile(rf"\n+\{{\{{ *(?:{names}) *\}}\}}\s*\Z"))
        if self.reflist_templates:
            names = self._template_names_pattern(self.reflist_templates)
            keep.append(re.compile(rf"\n+\{{\{{ *(?:{names}) *\}}\}}.*\s*\Z"))

        openings = [r"<blockquote(?:\s[^<>]*)?>", r"<q(?:\s[^<>]*)?>"]
        closings = [r"</blockquote>", r"</q>"]
        for begin, end in self.pair_quote_templates:
            openings.append(rf"\{{\{{ *{generate_page_name_pattern(begin)} *(?:\|[^{{}}]*)?\}}\}}")
            closings.append(rf"\{{\{{ *{generate_page_name_pattern(end)} *\}}\}}")
        quote = re.compile(
            "(" + "|".join(openings) + r")([\s\S]*?)(" + "|".join(closings) + ")",
            re.IGNORECASE,
        )

        antipatterns = list(self.comment_antipatterns)
        if self.no_signature_classes:
            classes = "|".join(re.escape(name) for name in self.no_signature_classes)
            antipatterns.insert(0, rf"class=(?:\"[^\"\n]*|'[^'\n]*|)\b(?:{classes})\b")
        comment_antipatterns = None
        if antipatterns:
            comment_antipatterns = re.compile("^.*(?:" + "|".join(antipatterns) + ").*$", re.MULTILINE)

        ts = timestamp.timestamp
        return SitePatterns(
            timestamp=timestamp,
            author_link=re.compile(self.capture_user_name_pattern(), re.IGNORECASE),
            timestamp_line=re.compile(rf"^((.*)({ts})(?:\}}\}}|</small>)?).*(?:\n*|$)", re.IGNORECASE | re.MULTILINE),
            unsigned_template=unsigned,
            keep_in_section_ending=keep,
            quote=quote,
            comment_antipatterns=comment_antipatterns,
            distracting_tags=generate_tags_regexp(self.distracting_tags),
            bad_comment_beginnings=[re.compile(pattern) for pattern in self.bad_comment_beginnings],
        )


@lru_cache(maxsize=1)
def default_config() -> LocatorConfig:
    return LocatorConfig()
