from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ProcessingOptions(BaseModel):
    """
    Policy switches read by every extract / rewrite / diff call.
    Frozen: pass a new instance instead of mutating a shared one.
    """

    model_config = ConfigDict(frozen=True)

    verbose: bool = Field(False, description="Emit per-paragraph debug traces.")
    remove_empty_paragraphs: bool = Field(
        True,
        description="Initial template policy: drop paragraphs whose expansion is empty.",
    )


DEFAULT_OPTIONS = ProcessingOptions()


class ExtractionMode(str, Enum):
    ACCEPTED = "ACCEPTED"  # insertions kept, deletions dropped
    ORIGINAL = "ORIGINAL"  # deletions kept, insertions dropped


class OpTag(str, Enum):
    EQUAL = "equal"
    DELETE = "delete"
    INSERT = "insert"
    REPLACE = "replace"


class OpCode(NamedTuple):
    """One edit step: a[i1:i2] becomes b[j1:j2]."""

    tag: OpTag
    i1: int
    i2: int
    j1: int
    j2: int


class DiffSummary(BaseModel):
    total_containers: int = 0
    changed_containers: int = 0
    total_insertions: int = 0
    total_deletions: int = 0
    total_equal: int = 0


class ContainerDiff(BaseModel):
    """Word-level comparison of one container (original -> accepted)."""

    opcodes: List[OpCode] = Field(default_factory=list)
    original_tokens: List[str] = Field(default_factory=list)
    accepted_tokens: List[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return any(op.tag != OpTag.EQUAL for op in self.opcodes)

    def operations(self) -> Iterator[Tuple[OpTag, str]]:
        """
        Yields (tag, text) pairs in document order. A replacement yields its
        deleted text first, then its inserted text.
        """
        for op in self.opcodes:
            old = "".join(self.original_tokens[op.i1 : op.i2])
            new = "".join(self.accepted_tokens[op.j1 : op.j2])
            if op.tag == OpTag.EQUAL:
                yield OpTag.EQUAL, old
            elif op.tag == OpTag.DELETE:
                yield OpTag.DELETE, old
            elif op.tag == OpTag.INSERT:
                yield OpTag.INSERT, new
            else:
                if old:
                    yield OpTag.DELETE, old
                if new:
                    yield OpTag.INSERT, new


class DiffResult(BaseModel):
    container_diffs: Dict[str, ContainerDiff] = Field(default_factory=dict)
    summary: DiffSummary = Field(default_factory=DiffSummary)

    def pretty_print(self) -> str:
        from docxflow.diff import render_diff

        return render_diff(self)
