import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from talksource import __version__
from talksource.config import LocatorConfig, default_config
from talksource.locate.comments import locate_comment
from talksource.locate.sections import locate_section
from talksource.masking import TextMasker
from talksource.models import CommentFingerprint, CommentTarget, SectionTarget
from talksource.signatures import extract_signatures
from talksource.wikitext import remove_wiki_markup


def _configure_logging(verbose: bool):
    # Results go to stdout; everything else must go to stderr.
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(stream=sys.stderr, level=level, force=True)
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _read_code(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    p = Path(path)
    if not p.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    return p.read_text(encoding="utf-8")


def _load_config(args: argparse.Namespace) -> LocatorConfig:
    if not args.config:
        return default_config()
    try:
        return LocatorConfig.from_file(args.config)
    except (OSError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)


def handle_signatures(args: argparse.Namespace):
    code = _read_code(args.input)
    signatures = extract_signatures(code, _load_config(args), generate_anchors=args.anchors)

    if args.json:
        print(json.dumps([s.model_dump(mode="json") for s in signatures], indent=2, ensure_ascii=False))
        return

    for s in signatures:
        line = f"{s.index}\t{s.start_index}-{s.end_index}\t{s.author}\t{s.timestamp or ''}"
        if s.anchor:
            line += f"\t{s.anchor}"
        print(line)
    print(f"{len(signatures)} signature(s)", file=sys.stderr)


def handle_locate_section(args: argparse.Namespace):
    code = _read_code(args.input)

    oldest_comment = None
    if args.oldest_author:
        oldest_comment = CommentFingerprint(
            author=args.oldest_author,
            timestamp=args.oldest_timestamp,
            text=args.oldest_text,
        )
    target = SectionTarget(
        headline=args.headline,
        index=args.index,
        previous_headlines=args.previous_headline or [],
        oldest_comment=oldest_comment,
    )

    source = locate_section(code, target, _load_config(args), is_in_section_context=args.section_context)
    if source is None:
        print(f"Section not found: {args.headline}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(source.model_dump(mode="json"), indent=2, ensure_ascii=False))
    else:
        print(f"index={source.index} level={source.level} score={source.score:.3f}")
        print(f"span={source.start_index}-{source.end_index} content_end={source.content_end_index}")
        print(source.code, end="")


def handle_locate_comment(args: argparse.Namespace):
    code = _read_code(args.input)
    target = CommentTarget(
        index=args.index,
        author=args.author,
        timestamp=args.timestamp,
        text=args.text or "",
        section_headline=args.section_headline,
    )

    source = locate_comment(code, target, _load_config(args), is_in_section_context=args.section_context)
    if source is None:
        print(f"Comment not found: {args.author}, {args.timestamp}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(source.model_dump(mode="json"), indent=2, ensure_ascii=False))
    else:
        print(f"index={source.index} score={source.score:.3f} span={source.start_index}-{source.end_index}")
        print(source.code)


def handle_mask(args: argparse.Namespace):
    code = _read_code(args.input)
    masker = TextMasker(code).mask_sensitive_code()

    if args.json:
        snapshot = masker.snapshot()
        print(json.dumps({"text": snapshot.text, "masked_texts": list(snapshot.masked_texts)}, ensure_ascii=False))
        return

    output = masker.text
    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        print(f"✅ Masked {len(masker.masked_texts)} span(s) -> {args.output}", file=sys.stderr)
    else:
        print(output, end="")


def handle_strip(args: argparse.Namespace):
    print(remove_wiki_markup(_read_code(args.input)))


def _add_common(parser: argparse.ArgumentParser):
    parser.add_argument("input", help="Wikitext file, or '-' for stdin")
    parser.add_argument("--config", help="JSON file with site configuration")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        prog="talksource", description="Locate sections, comments and signatures in talk page wikitext."
    )
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Log scoring details to stderr")
    subparsers = parser.add_subparsers(dest="command", help="Subcommands")

    p_sigs = subparsers.add_parser("signatures", help="List signatures found in the code")
    _add_common(p_sigs)
    p_sigs.add_argument("--anchors", action="store_true", help="Generate comment anchors")
    p_sigs.set_defaults(func=handle_signatures)

    p_section = subparsers.add_parser("locate-section", help="Find the code of a section")
    _add_common(p_section)
    p_section.add_argument("--headline", required=True, help="Rendered headline")
    p_section.add_argument("--index", type=int, default=0, help="Ordinal of the section on the page")
    p_section.add_argument(
        "--previous-headline",
        action="append",
        help="Headline of a preceding section, nearest first (repeatable)",
    )
    p_section.add_argument("--oldest-author", help="Author of the section's oldest comment")
    p_section.add_argument("--oldest-timestamp", help="Timestamp of the section's oldest comment")
    p_section.add_argument("--oldest-text", help="Text of the section's oldest comment")
    p_section.add_argument("--section-context", action="store_true", help="Input is a single section's code")
    p_section.set_defaults(func=handle_locate_section)

    p_comment = subparsers.add_parser("locate-comment", help="Find the code of a comment")
    _add_common(p_comment)
    p_comment.add_argument("--author", required=True)
    p_comment.add_argument("--timestamp", required=True)
    p_comment.add_argument("--text", help="Rendered text of the comment")
    p_comment.add_argument("--index", type=int, default=0, help="Ordinal of the comment on the page")
    p_comment.add_argument("--section-headline", help="Headline of the section the comment is in")
    p_comment.add_argument("--section-context", action="store_true", help="Input is a single section's code")
    p_comment.set_defaults(func=handle_locate_comment)

    p_mask = subparsers.add_parser("mask", help="Mask templates, tables and code blocks")
    p_mask.add_argument("input", help="Wikitext file, or '-' for stdin")
    p_mask.add_argument("-o", "--output", help="Output path (default: stdout)")
    p_mask.add_argument("--json", action="store_true", help="Print the masked text and the masked spans as JSON")
    p_mask.set_defaults(func=handle_mask)

    p_strip = subparsers.add_parser("strip", help="Remove wiki markup for comparison with rendered text")
    p_strip.add_argument("input", help="Wikitext file, or '-' for stdin")
    p_strip.set_defaults(func=handle_strip)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if not getattr(args, "func", None):
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
