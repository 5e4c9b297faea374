"""
Tests for docxflow/matcher.py — LCS sequence matcher and replace merging.

Run: python3 test_matcher.py
From: python/
"""

import random
import sys
from functools import lru_cache

sys.path.insert(0, '.')

from docxflow.matcher import SequenceMatcher, get_opcodes, merge_replace_operations
from docxflow.models import OpCode, OpTag


def _assert_partition(a, b, opcodes):
    """Opcode ranges cover both sequences in order, without gaps or overlaps."""
    i = j = 0
    for op in opcodes:
        assert op.i1 == i and op.j1 == j, f"gap or overlap at {op}"
        assert op.i1 <= op.i2 and op.j1 <= op.j2
        if op.tag == OpTag.EQUAL:
            assert a[op.i1:op.i2] == b[op.j1:op.j2]
        i, j = op.i2, op.j2
    assert (i, j) == (len(a), len(b))


def _equal_length(opcodes):
    return sum(op.i2 - op.i1 for op in opcodes if op.tag == OpTag.EQUAL)


def _reference_lcs(a, b):
    """Plain recursive LCS length, independent of the matcher."""

    @lru_cache(maxsize=None)
    def length(i, j):
        if i == len(a) or j == len(b):
            return 0
        if a[i] == b[j]:
            return 1 + length(i + 1, j + 1)
        return max(length(i + 1, j), length(i, j + 1))

    return length(0, 0)


# ---------------------------------------------------------------------------
# Core comparison
# ---------------------------------------------------------------------------

def test_lcs_length():
    a = ["A", "B", "C", "D", "G", "H"]
    b = ["A", "E", "D", "F", "H", "R"]
    matcher = SequenceMatcher(a, b)
    opcodes = matcher.get_opcodes()
    _assert_partition(a, b, opcodes)
    assert _equal_length(opcodes) == 3
    assert matcher.lcs_length() == 3
    print("PASS: test_lcs_length")


def test_identical_sequences():
    a = ["x", " ", "y"]
    assert get_opcodes(a, list(a)) == [OpCode(OpTag.EQUAL, 0, 3, 0, 3)]
    print("PASS: test_identical_sequences")


def test_empty_inputs():
    assert get_opcodes([], []) == []
    assert get_opcodes([], ["x", "y"]) == [OpCode(OpTag.INSERT, 0, 0, 0, 2)]
    assert get_opcodes(["x"], []) == [OpCode(OpTag.DELETE, 0, 1, 0, 0)]
    print("PASS: test_empty_inputs")


def test_result_is_cached():
    matcher = SequenceMatcher(["a", "b"], ["b", "c"])
    first = matcher.get_opcodes()
    assert matcher.get_opcodes() is first
    print("PASS: test_result_is_cached")


def test_tie_breaks_toward_delete():
    """With two equally long alignments, the one consuming `a` first wins."""
    a, b = ["a", "x"], ["x", "a"]
    opcodes = SequenceMatcher(a, b)._compute()
    assert opcodes == [
        OpCode(OpTag.INSERT, 0, 0, 0, 1),
        OpCode(OpTag.EQUAL, 0, 1, 1, 2),
        OpCode(OpTag.DELETE, 1, 2, 2, 2),
    ]
    print("PASS: test_tie_breaks_toward_delete")


def test_single_substitution_becomes_replace():
    assert get_opcodes(["x"], ["y"]) == [OpCode(OpTag.REPLACE, 0, 1, 0, 1)]
    print("PASS: test_single_substitution_becomes_replace")


def test_random_sequences_partition():
    rng = random.Random(7)
    for _ in range(200):
        a = [rng.choice("abcd") for _ in range(rng.randint(0, 12))]
        b = [rng.choice("abcd") for _ in range(rng.randint(0, 12))]
        opcodes = get_opcodes(a, b)
        _assert_partition(a, b, opcodes)
        assert _equal_length(opcodes) == _reference_lcs(a, b)
    print("PASS: test_random_sequences_partition")


# ---------------------------------------------------------------------------
# Replace merging
# ---------------------------------------------------------------------------

def test_merge_insert_then_delete():
    ops = [OpCode(OpTag.INSERT, 0, 0, 0, 2), OpCode(OpTag.DELETE, 0, 3, 2, 2)]
    assert merge_replace_operations(ops) == [OpCode(OpTag.REPLACE, 0, 3, 0, 2)]
    print("PASS: test_merge_insert_then_delete")


def test_merge_delete_then_insert():
    ops = [
        OpCode(OpTag.EQUAL, 0, 1, 0, 1),
        OpCode(OpTag.DELETE, 1, 3, 1, 1),
        OpCode(OpTag.INSERT, 3, 3, 1, 4),
    ]
    assert merge_replace_operations(ops) == [
        OpCode(OpTag.EQUAL, 0, 1, 0, 1),
        OpCode(OpTag.REPLACE, 1, 3, 1, 4),
    ]
    print("PASS: test_merge_delete_then_insert")


def test_merge_leaves_separated_edits():
    ops = [
        OpCode(OpTag.DELETE, 0, 1, 0, 0),
        OpCode(OpTag.EQUAL, 1, 2, 0, 1),
        OpCode(OpTag.INSERT, 2, 2, 1, 2),
    ]
    assert merge_replace_operations(ops) == ops
    assert merge_replace_operations([]) == []
    print("PASS: test_merge_leaves_separated_edits")


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

if __name__ == '__main__':
    tests = [
        test_lcs_length,
        test_identical_sequences,
        test_empty_inputs,
        test_result_is_cached,
        test_tie_breaks_toward_delete,
        test_single_substitution_becomes_replace,
        test_random_sequences_partition,
        test_merge_insert_then_delete,
        test_merge_delete_then_insert,
        test_merge_leaves_separated_edits,
    ]

    passed = 0
    failed = 0
    for t in tests:
        try:
            t()
            passed += 1
        except Exception as e:
            print(f"FAIL: {t.__name__} — {e}")
            failed += 1

    print(f"\n{'=' * 50}")
    print(f"Results: {passed} passed, {failed} failed out of {len(tests)} tests")
    if failed > 0:
        sys.exit(1)
    else:
        print("All tests passed!")
