"""
Longest-common-subsequence sequence matcher.

Produces difflib-style opcodes describing how to turn sequence `a` into
sequence `b`. The opcode ranges always partition both sequences: read in
order, the `a` ranges cover [0, len(a)) and the `b` ranges cover
[0, len(b)) without gaps or overlaps.
"""

from typing import List, Optional, Sequence

from docxflow.models import OpCode, OpTag


class SequenceMatcher:
    """
    Compares two sequences of hashable tokens.

    The edit script is not unique when several alignments share the same LCS
    length. Ties are broken toward deletion: while walking the table back
    from the end, `a` is consumed before `b` whenever both moves keep the
    LCS length. The result is computed once and cached on the instance.
    """

    def __init__(self, a: Sequence[str], b: Sequence[str]):
        self.a = list(a)
        self.b = list(b)
        self._opcodes: Optional[List[OpCode]] = None

    def get_opcodes(self) -> List[OpCode]:
        if self._opcodes is None:
            self._opcodes = merge_replace_operations(self._compute())
        return self._opcodes

    def lcs_length(self) -> int:
        return sum(op.i2 - op.i1 for op in self.get_opcodes() if op.tag == OpTag.EQUAL)

    def _compute(self) -> List[OpCode]:
        len_a, len_b = len(self.a), len(self.b)
        if len_a == 0 and len_b == 0:
            return []
        if len_a == 0:
            return [OpCode(OpTag.INSERT, 0, 0, 0, len_b)]
        if len_b == 0:
            return [OpCode(OpTag.DELETE, 0, len_a, 0, 0)]
        return self._traceback(self._table())

    def _table(self) -> List[List[int]]:
        """table[i][j] is the LCS length of a[:i] and b[:j]."""
        a, b = self.a, self.b
        table = [[0] * (len(b) + 1) for _ in range(len(a) + 1)]
        for i in range(1, len(a) + 1):
            row, prev = table[i], table[i - 1]
            token = a[i - 1]
            for j in range(1, len(b) + 1):
                if token == b[j - 1]:
                    row[j] = prev[j - 1] + 1
                else:
                    row[j] = prev[j] if prev[j] >= row[j - 1] else row[j - 1]
        return table

    def _traceback(self, table: List[List[int]]) -> List[OpCode]:
        a, b = self.a, self.b
        i, j = len(a), len(b)
        reversed_ops: List[OpCode] = []

        def matches() -> bool:
            return i > 0 and j > 0 and a[i - 1] == b[j - 1]

        def prefers_delete() -> bool:
            return i > 0 and (j == 0 or table[i - 1][j] >= table[i][j - 1])

        while i > 0 or j > 0:
            if matches():
                end_i, end_j = i, j
                while matches():
                    i -= 1
                    j -= 1
                reversed_ops.append(OpCode(OpTag.EQUAL, i, end_i, j, end_j))
            elif prefers_delete():
                end_i = i
                while prefers_delete() and not matches():
                    i -= 1
                reversed_ops.append(OpCode(OpTag.DELETE, i, end_i, j, j))
            else:
                end_j = j
                while j > 0 and not prefers_delete() and not matches():
                    j -= 1
                reversed_ops.append(OpCode(OpTag.INSERT, i, i, j, end_j))

        reversed_ops.reverse()
        return reversed_ops


def merge_replace_operations(opcodes: List[OpCode]) -> List[OpCode]:
    """
    Merges an insertion and a deletion that touch the same position into one
    replacement, in either order. Coverage of both sequences is unchanged.
    """
    merged: List[OpCode] = []
    k = 0
    while k < len(opcodes):
        current = opcodes[k]
        following = opcodes[k + 1] if k + 1 < len(opcodes) else None

        if following is not None:
            if (
                current.tag == OpTag.INSERT
                and following.tag == OpTag.DELETE
                and current.i1 == following.i1
                and current.j2 == following.j1
            ):
                merged.append(OpCode(OpTag.REPLACE, following.i1, following.i2, current.j1, current.j2))
                k += 2
                continue
            if (
                current.tag == OpTag.DELETE
                and following.tag == OpTag.INSERT
                and current.i2 == following.i1
                and current.j1 == following.j1
            ):
                merged.append(OpCode(OpTag.REPLACE, current.i1, current.i2, following.j1, following.j2))
                k += 2
                continue

        merged.append(current)
        k += 1
    return merged


def get_opcodes(a: Sequence[str], b: Sequence[str]) -> List[OpCode]:
    return SequenceMatcher(a, b).get_opcodes()
