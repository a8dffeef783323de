"""
Reversible masking of substrings.

A TextMasker replaces parts of a text with short sentinel tokens so that
later regex-based transforms cannot touch them, and restores them afterwards.
Tokens look like "\\x01<index>[_<kind>][_<length>]\\x02"; tables use
"\\x03" / "\\x04" instead so table-aware code can tell them apart.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Set, Tuple, Union

import structlog

from talksource.wikitext import generate_tags_regexp

logger = structlog.get_logger(__name__)

KIND_REGEXP = re.compile(r"^\w+$")

TABLE_REGEXP = re.compile(r"^(:* *)(\{\|[\s\S]*?\n\|\})", re.MULTILINE)
# A table whose closing "|}" is cut off, e.g. by a section boundary
UNCLOSED_TABLE_REGEXP = re.compile(r"^(:* *)(\{\|[\s\S]*\n\|)", re.MULTILINE)

BLOCK_TAGS = ["pre", "source", "syntaxhighlight", "timeline", "graph"]
GALLERY_TAGS = ["gallery", "poem"]
INLINE_TAGS = ["nowiki", "math", "chem", "ce", "hiero", "score", "mapframe", "maplink"]

Handler = Callable[[str], str]


@dataclass(frozen=True)
class MaskedText:
    """A masked buffer together with the texts its tokens stand for."""

    text: str
    masked_texts: Tuple[str, ...]


def _delimiters(kind: Optional[str]) -> Tuple[str, str]:
    return ("\x03", "\x04") if kind == "table" else ("\x01", "\x02")


class TextMasker:
    """
    Masking session over one text.

    All masking methods return self so calls can be chained:

        masker = TextMasker(code).mask_sensitive_code()
        masker.with_text(transform).unmask()
    """

    def __init__(self, text: str, masked_texts: Optional[List[str]] = None):
        self.text = text
        self.masked_texts: List[str] = masked_texts if masked_texts is not None else []
        # Kinds passed to unmask() so far; texts restored later get these restored too
        self._unmasked_kinds: Set[str] = set()

    def _make_token(self, index: int, kind: Optional[str], length: Optional[int] = None) -> str:
        start, end = _delimiters(kind)
        body = str(index)
        if kind:
            body += f"_{kind}"
        if length is not None:
            body += f"_{length}"
        return start + body + end

    def _store(self, text: str) -> int:
        self.masked_texts.append(text)
        return len(self.masked_texts)

    def mask(self, pattern: Union[str, re.Pattern], kind: Optional[str] = None, use_groups: bool = False) -> "TextMasker":
        """
        Replaces every match of `pattern` with a token.

        Args:
            pattern: Regex (source or compiled).
            kind: Optional label carried in the token, restricting what unmask(kind) restores.
            use_groups: If True, group 1 stays in the text in front of the token and only
                        group 2 is masked.
        """
        if kind and not KIND_REGEXP.match(kind):
            logger.warning(f"Masking kind '{kind}' contains non-word characters")
        regexp = re.compile(pattern) if isinstance(pattern, str) else pattern

        def replace(match: re.Match) -> str:
            if use_groups:
                pre_text = match.group(1) or ""
                text_to_mask = match.group(2) or ""
                tail = match.group(0)[match.end(2) - match.start() :] if text_to_mask else ""
            else:
                pre_text = ""
                text_to_mask = match.group(0)
                tail = ""
            if not text_to_mask:
                return match.group(0)
            return pre_text + self._make_token(self._store(text_to_mask), kind) + tail

        self.text = regexp.sub(replace, self.text)
        return self

    def _mask_span(self, start: int, end: int, kind: str, handler: Optional[Handler], add_lengths: bool) -> int:
        span = self.text[start:end]
        length = None
        if add_lengths:
            # Nested tokens of the same kind count as the length of what they replaced
            open_char, close_char = _delimiters(kind)
            nested = re.compile(rf"{open_char}\d+_{re.escape(kind)}_(\d+){close_char}")
            length = len(nested.sub(lambda m: " " * int(m.group(1)), span))
        if handler:
            span = handler(span)
        token = self._make_token(self._store(span), kind, length)
        self.text = self.text[:start] + token + self.text[end:]
        return start + len(token)

    def mask_balanced(
        self,
        opening: str = "{{",
        closing: str = "}}",
        kind: str = "template",
        handler: Optional[Handler] = None,
        add_lengths: bool = False,
    ) -> "TextMasker":
        """
        Masks balanced opening/closing delimiter pairs, innermost first.

        A closing delimiter without an opening one is treated as if the text
        opened at position 0; openings left unclosed are closed at the end of
        the text.

        Args:
            handler: Transforms each span before it is stored.
            add_lengths: Append the span's length to the token, counting nested
                         tokens as the length they stand for.
        """
        if opening == closing:
            raise ValueError("Opening and closing delimiters must differ")

        regexp = re.compile(f"{re.escape(opening)}|{re.escape(closing)}")
        stack: List[int] = []
        pos = 0
        while True:
            match = regexp.search(self.text, pos)
            if not match:
                break
            if match.group(0) == opening:
                stack.append(match.start())
                pos = match.end()
            else:
                start = stack.pop() if stack else 0
                pos = self._mask_span(start, match.end(), kind, handler, add_lengths)

        while stack:
            self._mask_span(stack.pop(), len(self.text), kind, handler, add_lengths)

        return self

    def mask_templates_recursively(self, handler: Optional[Handler] = None, add_lengths: bool = False) -> "TextMasker":
        return self.mask_balanced("{{", "}}", "template", handler, add_lengths)

    def mask_tags(self, tags: Sequence[str], kind: Optional[str] = None) -> "TextMasker":
        return self.mask(generate_tags_regexp(tags), kind)

    def mask_sensitive_code(self, template_handler: Optional[Handler] = None) -> "TextMasker":
        """Masks code that line-based transforms must never split: code blocks, templates, tables."""
        return (
            self.mask_tags(BLOCK_TAGS, "block")
            .mask_tags(GALLERY_TAGS, "gallery")
            .mask_tags(INLINE_TAGS, "inline")
            .mask_templates_recursively(template_handler)
            .mask(TABLE_REGEXP, "table", use_groups=True)
            .mask(UNCLOSED_TABLE_REGEXP, "table", use_groups=True)
        )

    def unmask_text(self, text: str, kind: Optional[str] = None) -> str:
        """
        Restores tokens in `text` using this session's store. With `kind`, only
        tokens of that kind, of kinds already unmasked by unmask(), and untyped
        tokens are restored.
        """
        if kind:
            kinds = "|".join(re.escape(k) for k in sorted(self._unmasked_kinds | {kind}))
            regexp = re.compile(rf"[\x01\x03](\d+)(?:_(?:{kinds})(?:_\d+)?)?[\x02\x04]")
        else:
            regexp = re.compile(r"[\x01\x03](\d+)(?:_\w+)?[\x02\x04]")

        def restore(match: re.Match) -> str:
            index = int(match.group(1))
            if index < 1 or index > len(self.masked_texts):
                raise ValueError(f"Masked text #{index} is not in this session's store")
            return self.masked_texts[index - 1]

        # Restored texts may contain tokens themselves
        while regexp.search(text):
            text = regexp.sub(restore, text)
        return text

    def unmask(self, kind: Optional[str] = None) -> "TextMasker":
        self.text = self.unmask_text(self.text, kind)
        if kind:
            self._unmasked_kinds.add(kind)
        return self

    def with_text(self, func: Callable[[str], str]) -> "TextMasker":
        self.text = func(self.text)
        return self

    def snapshot(self) -> MaskedText:
        return MaskedText(self.text, tuple(self.masked_texts))
