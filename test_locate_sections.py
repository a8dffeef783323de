"""
Tests for section location and section context edits
(talksource/locate/sections.py, talksource/edit.py).

Run: python3 test_locate_sections.py
"""

import sys

sys.path.insert(0, '.')

from talksource.edit import modify_section_context
from talksource.errors import SourceNotLoadedError
from talksource.locate.sections import (
    MAX_SECTION_SCORE,
    collect_section_sources,
    locate_section,
    score_section_source,
)
from talksource.models import CommentFingerprint, SectionAction, SectionTarget

PAGE = (
    "Intro text.\n"
    "== Topic A ==\n"
    "Hello there. [[User:Alice|Alice]] ([[User talk:Alice|talk]]) 12:00, 1 May 2020 (UTC)\n"
    ":Indeed. [[User:Bob|Bob]] 13:00, 1 May 2020 (UTC)\n"
    "\n"
    "== Topic B ==\n"
    "Something else entirely. [[User:Carol|Carol]] 14:00, 2 May 2020 (UTC)\n"
)

ALICE = CommentFingerprint(author="Alice", timestamp="12:00, 1 May 2020 (UTC)", text="Hello there.")

DUPLICATES = (
    "== Notes ==\n"
    "Unrelated remark about formatting. [[User:Bob|Bob]] 10:00, 5 May 2020 (UTC)\n"
    "== Notes ==\n"
    "The citation is wrong. [[User:Alice|Alice]] 11:00, 6 May 2020 (UTC)\n"
)


def test_locate_exact_section():
    target = SectionTarget(headline="Topic A", index=0, oldest_comment=ALICE)
    source = locate_section(PAGE, target)
    assert source is not None
    assert source.index == 0
    assert source.headline == "Topic A"
    assert source.start_index == PAGE.index("== Topic A")
    assert source.end_index == PAGE.index("== Topic B")
    assert source.code == PAGE[source.start_index : source.end_index]
    assert source.content_start_index == PAGE.index("Hello there.")
    assert source.breakdown.headline == 1
    assert source.breakdown.oldest_comment == 1
    # headline + index + previous headlines + oldest comment + word overlap
    assert abs(source.score - (1 + 0.5 + 0.25 + 1 + 2 / 3)) < 1e-9
    print("PASS: exact section located")


def test_locate_renamed_section():
    renamed = PAGE.replace("== Topic A ==", "== Topic A2 ==")
    target = SectionTarget(headline="Topic A", index=0, oldest_comment=ALICE)
    source = locate_section(renamed, target)
    assert source is not None
    assert source.headline == "Topic A2"
    assert source.breakdown.headline == 0
    assert source.score > 1
    print("PASS: renamed section located by its oldest comment")


def test_duplicate_headlines_resolved_by_oldest_comment():
    fingerprint = CommentFingerprint(
        author="Alice", timestamp="11:00, 6 May 2020 (UTC)", text="The citation is wrong."
    )
    target = SectionTarget(headline="Notes", index=0, oldest_comment=fingerprint)
    source = locate_section(DUPLICATES, target)
    assert source is not None
    assert source.index == 1
    assert source.start_index == DUPLICATES.rindex("== Notes ==")
    print("PASS: duplicate headlines resolved")


def test_section_context():
    code = DUPLICATES[DUPLICATES.rindex("== Notes ==") :]
    fingerprint = CommentFingerprint(
        author="Alice", timestamp="11:00, 6 May 2020 (UTC)", text="The citation is wrong."
    )
    target = SectionTarget(headline="Notes", index=5, previous_headlines=["Other"], oldest_comment=fingerprint)
    source = locate_section(code, target, is_in_section_context=True)
    assert source is not None
    assert source.is_in_section_context
    assert source.start_index == 0
    assert source.breakdown.index == 0
    assert source.breakdown.previous_headlines == 0
    print("PASS: section context ignores position")


def test_not_found():
    target = SectionTarget(
        headline="Nonexistent",
        index=7,
        oldest_comment=CommentFingerprint(author="Zed", timestamp="01:00, 1 January 2001 (UTC)", text="Gone."),
    )
    assert locate_section(PAGE, target) is None
    assert locate_section("No headings at all.\n", target) is None
    print("PASS: not found gives None")


def test_score_of_exactly_one_is_rejected():
    code = "== Alone ==\nNo signatures here.\n"
    target = SectionTarget(headline="Alone", index=3, previous_headlines=["Nope"], oldest_comment=ALICE)
    source = collect_section_sources(code)[0]
    assert score_section_source(source, target, []).total == 1
    assert locate_section(code, target) is None
    print("PASS: threshold is exclusive")


def test_ties_go_to_first_candidate():
    code = "== Same ==\nText\n== Same ==\nText\n"
    target = SectionTarget(headline="Same", index=5)
    source = locate_section(code, target)
    assert source is not None
    assert source.index == 0
    assert source.score == 2.75
    print("PASS: ties go to the first candidate")


def test_max_score_and_monotonicity():
    assert MAX_SECTION_SCORE == 3.75
    source = collect_section_sources(PAGE)[0]
    matching = SectionTarget(headline="Topic A", index=0, oldest_comment=ALICE)
    wrong_index = SectionTarget(headline="Topic A", index=1, oldest_comment=ALICE)
    wrong_text = SectionTarget(
        headline="Topic A",
        index=0,
        oldest_comment=CommentFingerprint(author="Alice", timestamp=ALICE.timestamp, text="Goodbye."),
    )
    best = score_section_source(source, matching, []).total
    assert best > score_section_source(source, wrong_index, []).total
    assert best > score_section_source(source, wrong_text, []).total
    print("PASS: each matching component raises the score")


def test_previous_headlines():
    source = collect_section_sources(PAGE)[1]
    target = SectionTarget(headline="Topic B", index=1, previous_headlines=["Topic A"])
    assert score_section_source(source, target, ["Topic A"]).previous_headlines == 1
    assert score_section_source(source, target, ["Other"]).previous_headlines == 0
    assert score_section_source(source, target, []).previous_headlines == 0
    print("PASS: previous headlines compared nearest first")


def test_candidate_offsets():
    for source in collect_section_sources(PAGE):
        assert source.start_index <= source.content_start_index <= source.first_chunk_end_index <= source.end_index
        assert source.content_start_index <= source.content_end_index <= source.end_index
        assert source.content_start_index <= source.first_chunk_content_end_index <= source.first_chunk_end_index
        assert source.relative_content_start_index == source.content_start_index - source.start_index
    print("PASS: candidate offsets are ordered")


def test_first_chunk_and_subsections():
    code = (
        "== Main ==\n"
        "Top comment.\n"
        "\n"
        "=== Sub ===\n"
        "Sub comment.\n"
        "== Next ==\n"
    )
    main = collect_section_sources(code)[0]
    assert main.level == 2
    assert main.end_index == code.index("== Next ==")
    assert main.first_chunk_code == "== Main ==\nTop comment.\n"
    assert main.first_chunk_end_index == code.index("\n\n=== Sub") + 1
    sub = collect_section_sources(code)[1]
    assert sub.level == 3
    assert sub.headline == "Sub"
    assert sub.end_index == code.index("== Next ==")
    print("PASS: first chunk stops at the first subsection")


def test_keep_in_section_ending():
    code = "== A ==\nText. [[User:Bob|Bob]] 10:00, 5 May 2020 (UTC)\n{{clear}}\n"
    source = collect_section_sources(code)[0]
    assert code[: source.content_end_index].endswith("(UTC)\n")
    assert code[: source.first_chunk_content_end_index].endswith("(UTC)\n")

    code = "== A ==\nText\n\n<!-- trailing note -->\n"
    source = collect_section_sources(code)[0]
    assert code[: source.content_end_index] == "== A ==\nText\n"
    print("PASS: trailing templates and comments stay at the end")


def test_placeholder_in_first_chunk():
    code = "== A ==\nText\n*\n"
    source = collect_section_sources(code)[0]
    assert code[: source.first_chunk_content_end_index] == "== A ==\nText\n"
    assert source.content_end_index == len(code)
    print("PASS: placeholder list item excluded from the first chunk")


def test_fake_headings_ignored():
    code = (
        "<!--\n== Fake ==\n-->\n"
        "<pre>\n== Also fake ==\n</pre>\n"
        "== [[Real|Real]] ''one'' ==\n"
        "x\n"
    )
    sources = collect_section_sources(code)
    assert [s.headline for s in sources] == ["Real one"]
    assert sources[0].index == 0
    print("PASS: headings in comments and code blocks ignored")


def test_template_in_target_headline():
    code = "== {{tl|Foo}} issue ==\nText\n"
    target = SectionTarget(headline="{{tl|Foo}} issue", index=0)
    source = locate_section(code, target)
    assert source is not None
    assert source.breakdown.headline == 0.5
    print("PASS: templates in headlines half count")


def test_missing_code_raises():
    try:
        locate_section(None, SectionTarget(headline="A"))
        assert False, "None should raise"
    except SourceNotLoadedError:
        pass
    print("PASS: missing code raises")


def test_reply_in_section():
    target = SectionTarget(headline="Topic A", index=0, oldest_comment=ALICE)
    source = locate_section(PAGE, target)
    result = modify_section_context(source, PAGE, SectionAction.REPLY_IN_SECTION, ":Reply. ~~~~\n")
    assert "13:00, 1 May 2020 (UTC)\n:Reply. ~~~~\n\n== Topic B ==" in result
    assert result.replace(":Reply. ~~~~\n", "") == PAGE
    print("PASS: reply in section")


def test_add_subsection():
    target = SectionTarget(headline="Topic A", index=0, oldest_comment=ALICE)
    source = locate_section(PAGE, target)
    subsection = "=== Follow-up ===\nMore. ~~~~\n"
    result = modify_section_context(source, PAGE, SectionAction.ADD_SUBSECTION, subsection)
    position = PAGE.index("== Topic B")
    assert result == PAGE[:position] + subsection + PAGE[position:].strip()

    try:
        modify_section_context(source, None, SectionAction.ADD_SUBSECTION, subsection)
        assert False, "Missing context code should raise"
    except SourceNotLoadedError:
        pass
    print("PASS: add subsection")


if __name__ == "__main__":
    tests = [
        test_locate_exact_section,
        test_locate_renamed_section,
        test_duplicate_headlines_resolved_by_oldest_comment,
        test_section_context,
        test_not_found,
        test_score_of_exactly_one_is_rejected,
        test_ties_go_to_first_candidate,
        test_max_score_and_monotonicity,
        test_previous_headlines,
        test_candidate_offsets,
        test_first_chunk_and_subsections,
        test_keep_in_section_ending,
        test_placeholder_in_first_chunk,
        test_fake_headings_ignored,
        test_template_in_target_headline,
        test_missing_code_raises,
        test_reply_in_section,
        test_add_subsection,
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
