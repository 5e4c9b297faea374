from dataclasses import dataclass
from typing import List, Optional

from docxflow.errors import InvariantViolation


@dataclass
class ParagraphSlots:
    """
    Named positions of the paragraph being rewritten.

    `start` is the index of the segment holding the paragraph start tag,
    `placeholder` the position of the first-text placeholder relative to
    `start`, so it stays valid in every duplicate of the paragraph.
    """

    start: int
    offset: int  # input byte offset of the start tag
    placeholder: Optional[int] = None


class SegmentBuilder:
    """
    Assembles the rewritten container as an ordered list of byte segments.

    Input bytes before `cursor` are accounted for: either copied into a
    segment or withheld as paragraph text that a placeholder will replace.
    """

    def __init__(self, data: bytes):
        self._input = data
        self._segments: List[bytes] = []
        self.cursor = 0

    def __len__(self) -> int:
        return len(self._segments)

    def flush(self, upto: int) -> None:
        """Copies unflushed input bytes up to `upto` into a new segment."""
        if upto > self.cursor:
            self._segments.append(self._input[self.cursor : upto])
            self.cursor = upto

    def withhold(self, upto: int) -> None:
        """Marks input bytes up to `upto` as consumed without copying them."""
        if upto < self.cursor:
            raise InvariantViolation(f"cursor moved backwards: {self.cursor} -> {upto}")
        self.cursor = upto

    def open_paragraph(self, tag_start: int, tag_end: int) -> ParagraphSlots:
        self.flush(tag_start)
        slots = ParagraphSlots(start=len(self._segments), offset=tag_start)
        self.flush(tag_end)
        return slots

    def add_placeholder(self, slots: ParagraphSlots) -> None:
        slots.placeholder = len(self._segments) - slots.start
        self._segments.append(b"")

    def restore_paragraph(self, slots: ParagraphSlots) -> None:
        """Replaces everything emitted for the paragraph by its original bytes."""
        self._segments[slots.start :] = [self._input[slots.offset : self.cursor]]

    def close_paragraph(self, slots: ParagraphSlots, texts: List[bytes]) -> None:
        """
        Emits the paragraph once per entry of `texts`, each copy carrying its
        own text in the placeholder. An empty list drops the paragraph.
        """
        if not texts:
            del self._segments[slots.start :]
            return
        if slots.placeholder is None:
            raise InvariantViolation("paragraph text replaced but no placeholder was reserved")

        body = self._segments[slots.start :]
        copies: List[bytes] = []
        for text in texts:
            copy = list(body)
            copy[slots.placeholder] = text
            copies.extend(copy)
        self._segments[slots.start :] = copies

    def result(self) -> bytes:
        self.flush(len(self._input))
        return b"".join(self._segments)
