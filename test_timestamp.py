"""
Tests for timestamp patterns, parsing and comment anchors (talksource/timestamp.py).

Run: python3 test_timestamp.py
"""

import sys
from datetime import datetime, timezone

sys.path.insert(0, '.')

from talksource.config import LocatorConfig, default_config
from talksource.timestamp import (
    build_main_part_pattern,
    find_first_timestamp,
    generate_comment_anchor,
    parse_comment_anchor,
    parse_timestamp,
)

GERMAN_MONTHS = [
    "Januar", "Februar", "März", "April", "Mai", "Juni",
    "Juli", "August", "September", "Oktober", "November", "Dezember",
]


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_main_part_pattern():
    pattern, codes = build_main_part_pattern(
        "H:i, j F Y",
        months=["May"],
        months_genitive=["May"],
        months_short=["May"],
        weekdays=[],
        weekdays_short=[],
        capture=True,
    )
    assert codes == ["H", "i", "j", "F", "Y"]
    assert pattern.count("(") == 5

    pattern, codes = build_main_part_pattern(
        'd.m.Y "um" H:i \\h',
        months=[], months_genitive=[], months_short=[], weekdays=[], weekdays_short=[],
    )
    assert codes == ["d", "Y", "H", "i"]
    assert "um" in pattern
    print("PASS: main part pattern from date format")


def test_parse_english_timestamp():
    patterns = default_config().patterns.timestamp
    assert parse_timestamp("12:00, 1 May 2020 (UTC)", patterns) == _utc(2020, 5, 1, 12, 0)
    assert parse_timestamp("Posted 09:15, 3 June 2021 (UTC) later", patterns) == _utc(2021, 6, 3, 9, 15)
    print("PASS: English timestamps")


def test_last_timestamp_wins():
    patterns = default_config().patterns.timestamp
    text = "Moved from 10:00, 1 May 2020 (UTC). 11:30, 2 May 2020 (UTC)"
    assert parse_timestamp(text, patterns) == _utc(2020, 5, 2, 11, 30)
    print("PASS: last timestamp in the string is parsed")


def test_unparseable_timestamps():
    patterns = default_config().patterns.timestamp
    assert parse_timestamp("12:00, 31 February 2020 (UTC)", patterns) is None
    assert parse_timestamp("no timestamp here", patterns) is None
    assert parse_timestamp("", patterns) is None
    # A template parameter, not a signature
    assert parse_timestamp("|date=12:00, 1 May 2020 (UTC)", patterns) is None
    print("PASS: unparseable timestamps give None")


def test_timezone_offset():
    patterns = LocatorConfig(timezone=180).patterns.timestamp
    assert parse_timestamp("12:00, 1 May 2020 (MSK)", patterns) == _utc(2020, 5, 1, 9, 0)
    print("PASS: content timezone offset applied")


def test_localized_format():
    config = LocatorConfig(date_format="H:i, j. F Y", months=GERMAN_MONTHS, timezone=120)
    patterns = config.patterns.timestamp
    assert parse_timestamp("14:05, 7. März 2021 (CEST)", patterns) == _utc(2021, 3, 7, 12, 5)
    assert find_first_timestamp("Hallo 14:05, 7. März 2021 (CEST) x", patterns) == "14:05, 7. März 2021 (CEST)"
    print("PASS: localized date format")


def test_local_digits():
    digits = "٠١٢٣٤٥٦٧٨٩"
    config = LocatorConfig(date_format="H:i, j F Y", digits=digits)
    patterns = config.patterns.timestamp
    assert parse_timestamp("١٢:٠٠, ١ May ٢٠٢٠ (UTC)", patterns) == _utc(2020, 5, 1, 12, 0)
    print("PASS: local digits")


def test_anchor_generation():
    date = _utc(2020, 5, 1, 12, 0)
    assert generate_comment_anchor(date, "Example user") == "202005011200_Example_user"

    registry = set()
    assert generate_comment_anchor(date, "Alice", registry) == "202005011200_Alice"
    assert generate_comment_anchor(date, "Alice", registry) == "202005011200_Alice_2"
    assert generate_comment_anchor(date, "Alice", registry) == "202005011200_Alice_3"
    assert len(registry) == 3
    print("PASS: anchors and collisions")


def test_anchor_parsing():
    date, author = parse_comment_anchor("202005011200_Example_user")
    assert date == _utc(2020, 5, 1, 12, 0)
    assert author == "Example user"
    assert parse_comment_anchor("not-an-anchor") is None
    assert parse_comment_anchor("202013011200_Bad_month") is None
    print("PASS: anchor parsing")


if __name__ == "__main__":
    tests = [
        test_main_part_pattern,
        test_parse_english_timestamp,
        test_last_timestamp_wins,
        test_unparseable_timestamps,
        test_timezone_offset,
        test_localized_format,
        test_local_digits,
        test_anchor_generation,
        test_anchor_parsing,
    ]

    passed = 0
    failed = 0
    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"FAIL: {test.__name__}: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print(f"\n{'='*60}")
    print(f"Results: {passed} passed, {failed} failed out of {len(tests)} tests")
    if failed == 0:
        print("ALL TESTS PASSED")
    else:
        print("SOME TESTS FAILED")
