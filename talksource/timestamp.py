"""
Timestamp patterns, timestamp parsing and comment anchors.

Signature timestamps are written in the wiki's content language using a
MediaWiki date format string (e.g. "H:i, j F Y" on English Wikipedia),
followed by a timezone in parentheses. The regexes here are generated from
that format string rather than hard-coded.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Set, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

logger = structlog.get_logger(__name__)

TIMEZONE_PATTERN = r"\((?:UTC|[A-Z]{1,5}|[+-]\d{0,4})\)"

# Format codes that produce a capturing group in the parse regex.
_NAME_CODES = ("xg", "D", "l", "F", "M")
_TWO_DIGIT_CODES = ("d", "H", "i")
_ONE_OR_TWO_DIGIT_CODES = ("j", "n", "G")
_YEAR_CODES = ("Y", "xkY")

ANCHOR_REGEXP = re.compile(r"^(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})_(.+)$")


@dataclass
class TimestampPatterns:
    """Compiled timestamp regexes plus what is needed to turn a match into a date."""

    timestamp: str
    detect: re.Pattern
    no_timezone: re.Pattern
    parse: re.Pattern
    part_codes: List[str]
    months: List[str]
    months_genitive: List[str]
    months_short: List[str]
    digits: Optional[str] = None
    timezone: Union[str, int] = "UTC"
    utc_label: str = "UTC"
    _digit_table: dict = field(default_factory=dict, repr=False)

    def __post_init__(self):
        if self.digits:
            self._digit_table = {ord(d): str(i) for i, d in enumerate(self.digits)}

    def to_int(self, value: str) -> int:
        return int(value.translate(self._digit_table) if self._digit_table else value)


def _names_alternation(names: Sequence[str], capture: bool) -> str:
    body = "|".join(re.escape(name) for name in names)
    return f"({body})" if capture else f"(?:{body})"


def build_main_part_pattern(
    date_format: str,
    months: Sequence[str],
    months_genitive: Sequence[str],
    months_short: Sequence[str],
    weekdays: Sequence[str],
    weekdays_short: Sequence[str],
    digits: Optional[str] = None,
    capture: bool = False,
) -> Tuple[str, List[str]]:
    """
    Converts a MediaWiki date format string into a regex source.

    Args:
        date_format: PHP-style format, e.g. "H:i, j F Y".
        capture: When True every date component becomes a capturing group, in
                 the order returned as the second element.

    Returns:
        (pattern, part_codes)
    """
    digit = f"[{re.escape(digits)}]" if digits else r"\d"
    open_group = "(" if capture else "(?:"
    pattern = ""
    part_codes: List[str] = []

    i = 0
    length = len(date_format)
    while i < length:
        code = date_format[i]
        if code == "x" and i < length - 1:
            i += 1
            code += date_format[i]
        if code == "xk" and i < length - 1 and date_format[i + 1] == "Y":
            i += 1
            code += "Y"

        if code == "xx":
            pattern += "x"
        elif code == "xg":
            pattern += _names_alternation(months_genitive, capture)
            part_codes.append(code)
        elif code == "D":
            pattern += _names_alternation(weekdays_short, capture)
            part_codes.append(code)
        elif code == "l":
            pattern += _names_alternation(weekdays, capture)
            part_codes.append(code)
        elif code == "F":
            pattern += _names_alternation(months, capture)
            part_codes.append(code)
        elif code == "M":
            pattern += _names_alternation(months_short, capture)
            part_codes.append(code)
        elif code in _TWO_DIGIT_CODES:
            pattern += f"{open_group}{digit}{{2}})"
            part_codes.append(code)
        elif code in _ONE_OR_TWO_DIGIT_CODES:
            pattern += f"{open_group}{digit}{{1,2}})"
            part_codes.append(code)
        elif code in _YEAR_CODES:
            pattern += f"{open_group}{digit}{{4}})"
            part_codes.append(code)
        elif code == "\\":
            # Escaped literal character
            if i < length - 1:
                i += 1
                pattern += re.escape(date_format[i])
            else:
                pattern += re.escape("\\")
        elif code == '"':
            # Quoted literal, up to the closing quote
            end = date_format.find('"', i + 1)
            if end == -1:
                pattern += re.escape('"')
            else:
                pattern += re.escape(date_format[i + 1 : end])
                i = end
        else:
            pattern += re.escape(code)
        i += 1

    return pattern, part_codes


def build_timestamp_patterns(
    date_format: str,
    months: Sequence[str],
    months_genitive: Sequence[str],
    months_short: Sequence[str],
    weekdays: Sequence[str],
    weekdays_short: Sequence[str],
    digits: Optional[str] = None,
    content_timezone: Union[str, int] = "UTC",
    utc_label: str = "UTC",
) -> TimestampPatterns:
    names = dict(
        months=months,
        months_genitive=months_genitive,
        months_short=months_short,
        weekdays=weekdays,
        weekdays_short=weekdays_short,
        digits=digits,
    )
    main_part, _ = build_main_part_pattern(date_format, **names)
    main_part_capturing, part_codes = build_main_part_pattern(date_format, capture=True, **names)
    timestamp = f"{main_part} +{TIMEZONE_PATTERN}"

    return TimestampPatterns(
        timestamp=timestamp,
        detect=re.compile(timestamp),
        no_timezone=re.compile(main_part),
        # The last timestamp in the string wins; "=" before it means a template parameter.
        parse=re.compile(rf"^([\s\S]*(?:^|[^=])(?:\b| ))({main_part_capturing} +{TIMEZONE_PATTERN})(?![\"»])"),
        part_codes=part_codes,
        months=list(months),
        months_genitive=list(months_genitive),
        months_short=list(months_short),
        digits=digits,
        timezone=content_timezone,
        utc_label=utc_label,
    )


def _apply_timezone(naive: datetime, tz: Union[str, int]) -> datetime:
    if isinstance(tz, int):
        return (naive - timedelta(minutes=tz)).replace(tzinfo=timezone.utc)
    if tz.upper() == "UTC":
        return naive.replace(tzinfo=timezone.utc)
    try:
        zone = ZoneInfo(tz)
    except ZoneInfoNotFoundError:
        logger.warning(f"Unknown content timezone '{tz}', treating timestamps as UTC")
        return naive.replace(tzinfo=timezone.utc)
    return naive.replace(tzinfo=zone).astimezone(timezone.utc)


def date_from_match(match: re.Match, patterns: TimestampPatterns, first_group: int = 3) -> Optional[datetime]:
    """
    Builds a UTC datetime from a match of `patterns.parse`.
    Returns None when the components do not make up a real date.
    """
    year = 0
    month = 0
    day = 0
    hours = 0
    minutes = 0

    for offset, code in enumerate(patterns.part_codes):
        value = match.group(first_group + offset)
        if value is None:
            continue
        if code == "xg":
            month = patterns.months_genitive.index(value) + 1
        elif code == "F":
            month = patterns.months.index(value) + 1
        elif code == "M":
            month = patterns.months_short.index(value) + 1
        elif code in ("d", "j"):
            day = patterns.to_int(value)
        elif code == "n":
            month = patterns.to_int(value)
        elif code == "Y":
            year = patterns.to_int(value)
        elif code == "xkY":
            # Thai solar calendar
            year = patterns.to_int(value) - 543
        elif code in ("G", "H"):
            hours = patterns.to_int(value)
        elif code == "i":
            minutes = patterns.to_int(value)
        # Weekday names carry no information we need.

    try:
        naive = datetime(year, month, day, hours, minutes)
    except ValueError:
        logger.debug("Timestamp components do not form a valid date", year=year, month=month, day=day)
        return None
    return _apply_timezone(naive, patterns.timezone)


def parse_timestamp(timestamp: str, patterns: TimestampPatterns) -> Optional[datetime]:
    """Parses the last timestamp found in `timestamp` into an aware UTC datetime."""
    if not timestamp:
        return None
    match = patterns.parse.search(timestamp)
    if not match:
        return None
    return date_from_match(match, patterns)


def find_first_timestamp(code: str, patterns: TimestampPatterns) -> Optional[str]:
    match = patterns.detect.search(code)
    return match.group(0) if match else None


def generate_comment_anchor(date: datetime, author: str, registry: Optional[Set[str]] = None) -> str:
    """
    Generates a comment anchor like "202005011200_Example_user".

    Args:
        date: Comment date; converted to UTC when aware.
        author: User name.
        registry: Anchors already issued in this run. When given, collisions get
                  "_2", "_3"... appended and the result is added to the set.
    """
    if date.tzinfo is not None:
        date = date.astimezone(timezone.utc)
    anchor = f"{date:%Y%m%d%H%M}_{author.replace(' ', '_')}"
    if registry is None:
        return anchor

    unique = anchor
    n = 2
    while unique in registry:
        unique = f"{anchor}_{n}"
        n += 1
    registry.add(unique)
    return unique


def parse_comment_anchor(anchor: str) -> Optional[Tuple[datetime, str]]:
    """
    Inverse of generate_comment_anchor. Returns (date, author) or None.
    A collision suffix stays part of the author, it cannot be told apart from a name ending in "_2".
    """
    match = ANCHOR_REGEXP.match(anchor or "")
    if not match:
        return None
    year, month, day, hours, minutes = (int(g) for g in match.groups()[:5])
    try:
        date = datetime(year, month, day, hours, minutes, tzinfo=timezone.utc)
    except ValueError:
        return None
    return date, match.group(6).replace("_", " ")
