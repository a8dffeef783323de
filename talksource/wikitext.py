"""
Wikitext helpers shared by the extractor and the locators: markup stripping for
comparisons, whitespace/entity normalization and equal-length blanking of code
that must not be mistaken for headings or signatures.

Every blanking helper here keeps the string length and the line breaks intact,
so offsets found in the blanked text are valid in the original text.
"""

import html
import re
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from talksource.config import SitePatterns

HTML_COMMENT_REGEXP = re.compile(r"<!--[\s\S]*?-->")

_NORMALIZED_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&#91;", "["),
    ("&#93;", "]"),
    ("&#123;", "{"),
    ("&#124;", "|"),
    ("&#125;", "}"),
)


def blank(text: str) -> str:
    """Replaces every character except line breaks with a space."""
    return re.sub(r"[^\n]", " ", text)


def blank_wrapped(text: str) -> str:
    """
    Like blank(), but marks the run with \\x01 ... \\x02 so patterns can tell a
    blanked span from real whitespace.
    """
    if len(text) < 2:
        return blank(text)
    return "\x01" + blank(text[1:-1]) + "\x02"


def hide_html_comments(code: str) -> str:
    return HTML_COMMENT_REGEXP.sub(lambda m: blank_wrapped(m.group(0)), code)


def mask_distracting_code(code: str, patterns: "SitePatterns") -> str:
    """
    Blanks code that can contain heading or signature lookalikes: HTML comments,
    code-like tags, quotes and lines matching the configured antipatterns.
    The result has the same length and line structure as `code`.
    """
    code = hide_html_comments(code)
    code = patterns.distracting_tags.sub(lambda m: blank_wrapped(m.group(0)), code)
    if patterns.quote:
        code = patterns.quote.sub(lambda m: m.group(1) + blank(m.group(2)) + m.group(3), code)
    if patterns.comment_antipatterns:
        code = patterns.comment_antipatterns.sub(lambda m: blank(m.group(0)), code)
    return code


def remove_wiki_markup(code: str) -> str:
    """
    Strips the most common wiki markup so that code can be compared with
    rendered text. This is a heuristic, not a parser.
    """
    # 1. Comments
    code = HTML_COMMENT_REGEXP.sub("", code)
    # 2. Links: keep the label, or the target when there is no label
    code = re.sub(r"\[\[:?(?:[^|\[\]<>\n]+\|)?(.+?)\]\]", r"\1", code)
    # 3. Templates: keep the first parameter only
    code = re.sub(r"\{\{:?(?:[^|{}<>\n]+)(?:\|(.+?))?\}\}", r"\1", code)
    # 4. External links: keep the label
    code = re.sub(r"\[https?://[^\[\]<>\"\n ]+ *([^\]]*)\]", r"\1", code)
    # 5. Bold and italics
    code = re.sub(r"'''(.+?)'''", r"\1", code)
    code = re.sub(r"''(.+?)''", r"\1", code)
    # 6. Tags
    code = re.sub(r"<br ?/?>", " ", code)
    code = re.sub(r"<\w+(?: [\w ]+?=[^<>]+?| ?/?)>", "", code)
    code = re.sub(r"</\w+ ?>", "", code)

    code = re.sub(r" {2,}", " ", code)
    return code.strip()


def normalize_code(code: str) -> str:
    """Decodes the entities used to escape wiki syntax and collapses whitespace."""
    for entity, char in _NORMALIZED_ENTITIES:
        code = code.replace(entity, char)
    return re.sub(r"\s+", " ", code).strip()


def encode_wikilink(text: str) -> str:
    """Escapes characters that would break a wikilink or template when inserted into code."""
    for entity, char in _NORMALIZED_ENTITIES:
        text = text.replace(char, entity)
    return re.sub(r"\s+", " ", text).strip()


def decode_html_entities(text: str) -> str:
    if "&" not in text:
        return text
    return html.unescape(text)


def normalize_user_name(name: str) -> str:
    """
    Brings a user name from code to its canonical form: entities decoded,
    underscores as spaces, first letter uppercase.
    """
    name = decode_html_entities(name).replace("_", " ")
    name = re.sub(r" {2,}", " ", name).strip()
    if not name:
        return name
    return name[0].upper() + name[1:]


def end_with_two_newlines(code: str) -> str:
    """Makes non-empty code end with exactly one blank line unless it already ends with more."""
    return re.sub(r"([^\n])\n?\Z", "\\1\n\n", code)


def generate_any_space_pattern(name: str) -> str:
    """Regex source for a page or namespace name, tolerant of spaces/underscores around words and colons."""
    parts = []
    for piece in re.split(r"([ _]+|:)", name.strip(" _")):
        if not piece:
            continue
        if piece == ":":
            parts.append("[ _]*:[ _]*")
        elif piece.strip(" _") == "":
            parts.append("[ _]+")
        else:
            parts.append(re.escape(piece))
    return "".join(parts)


def generate_page_name_pattern(name: str) -> str:
    """
    Regex source for a page name as it may appear in code: first letter in
    either case, spaces and underscores interchangeable.
    """
    name = name.strip(" _")
    if not name:
        return ""
    first = name[0]
    if first.upper() != first.lower():
        first_pattern = f"[{re.escape(first.upper())}{re.escape(first.lower())}]"
    else:
        first_pattern = re.escape(first)
    rest = name[1:]
    if rest[:1] in (" ", "_"):
        return first_pattern + "[ _]+" + generate_any_space_pattern(rest)
    return first_pattern + generate_any_space_pattern(rest)


def generate_tags_regexp(tags: Iterable[str]) -> re.Pattern:
    """Matches whole <tag ...>...</tag> elements for any of `tags`, case-insensitively."""
    names = "|".join(re.escape(tag) for tag in tags)
    return re.compile(rf"<({names})(?:\s[^<>]*?)?(?<!/)>[\s\S]*?</\1\s*>", re.IGNORECASE)
