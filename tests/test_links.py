from __future__ import annotations

from app.emporium.links import collect_linked_issue_ids
from app.emporium.links import extract_issue_references


def test_extract_issue_references_dedups_and_keeps_order() -> None:
    refs = extract_issue_references("see #12, then #3 and again #12", own_iid=1)
    assert refs == [12, 3]


def test_extract_issue_references_drops_self_and_zero() -> None:
    refs = extract_issue_references("I am #7, related #0 and #8", own_iid=7)
    assert refs == [8]


def test_extract_issue_references_skips_malformed_tokens() -> None:
    refs = extract_issue_references("#abc # 5 #-2 #9x", own_iid=1)
    assert refs == [9]


def test_extract_issue_references_empty() -> None:
    assert extract_issue_references(None, own_iid=1) == []
    assert extract_issue_references("", own_iid=1) == []


def test_collect_linked_issue_ids_merges_description_and_notes() -> None:
    ids = collect_linked_issue_ids("needs #4 and #2", ["dup of #2", None, "blocked by #5, #1"], own_iid=1)
    assert ids == [4, 2, 5]
