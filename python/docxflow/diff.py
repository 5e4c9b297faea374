import re
from typing import Dict, List, Mapping, Optional, Sequence

import structlog

from docxflow.matcher import SequenceMatcher
from docxflow.models import DEFAULT_OPTIONS, ContainerDiff, DiffResult, DiffSummary, OpTag, ProcessingOptions

logger = structlog.get_logger(__name__)

_TOKEN_PATTERN = re.compile(r"\S+|\s+")

PARAGRAPH_SEPARATOR = "\n"
DELETE_MARKUP = ("<delete>", "</delete>")
INSERT_MARKUP = ("<insert>", "</insert>")


def tokenize(text: str) -> List[str]:
    """
    Splits text into words and whitespace runs.
    Joining the tokens gives back the original text.
    """
    return _TOKEN_PATTERN.findall(text)


def diff_paragraphs(original: Sequence[str], accepted: Sequence[str]) -> ContainerDiff:
    """Word-level comparison of two paragraph lists of the same container."""
    original_tokens = tokenize(PARAGRAPH_SEPARATOR.join(original))
    accepted_tokens = tokenize(PARAGRAPH_SEPARATOR.join(accepted))
    matcher = SequenceMatcher(original_tokens, accepted_tokens)
    return ContainerDiff(
        opcodes=matcher.get_opcodes(),
        original_tokens=original_tokens,
        accepted_tokens=accepted_tokens,
    )


def diff_containers(
    original: Mapping[str, Sequence[str]],
    accepted: Mapping[str, Sequence[str]],
    options: Optional[ProcessingOptions] = None,
) -> DiffResult:
    """
    Compares two readings of the same document, container by container.

    Containers present in only one mapping are compared against an empty
    paragraph list. Only containers with at least one change are kept in
    `container_diffs`; the summary counts tokens over every container.
    """
    options = options or DEFAULT_OPTIONS
    names = sorted(set(original) | set(accepted))
    summary = DiffSummary(total_containers=len(names))
    changed: Dict[str, ContainerDiff] = {}

    for name in names:
        container_diff = diff_paragraphs(original.get(name, []), accepted.get(name, []))

        for op in container_diff.opcodes:
            if op.tag == OpTag.EQUAL:
                summary.total_equal += op.i2 - op.i1
            if op.tag in (OpTag.DELETE, OpTag.REPLACE):
                summary.total_deletions += op.i2 - op.i1
            if op.tag in (OpTag.INSERT, OpTag.REPLACE):
                summary.total_insertions += op.j2 - op.j1

        if container_diff.changed:
            changed[name] = container_diff
            summary.changed_containers += 1

        if options.verbose:
            logger.debug(
                "Compared container",
                container=name,
                changed=container_diff.changed,
                opcodes=len(container_diff.opcodes),
            )

    return DiffResult(container_diffs=changed, summary=summary)


def escape_text(text: str) -> str:
    """Escapes angle brackets so literal text cannot be mistaken for diff markup."""
    return text.replace("<", "&lt;").replace(">", "&gt;")


def render_container(container_diff: ContainerDiff) -> str:
    parts = []
    for tag, text in container_diff.operations():
        text = escape_text(text)
        if tag == OpTag.DELETE:
            parts.append(f"{DELETE_MARKUP[0]}{text}{DELETE_MARKUP[1]}")
        elif tag == OpTag.INSERT:
            parts.append(f"{INSERT_MARKUP[0]}{text}{INSERT_MARKUP[1]}")
        else:
            parts.append(text)
    return "".join(parts)


def render_diff(result: DiffResult) -> str:
    """
    Human (and LLM) readable report: a summary block, then every changed
    container with deletions in <delete> and insertions in <insert> tags.
    """
    s = result.summary
    lines = [
        "=== DIFF SUMMARY ===\n",
        f"Total containers: {s.total_containers}\n",
        f"Changed containers: {s.changed_containers}\n",
        f"Insertions: {s.total_insertions}, Deletions: {s.total_deletions}, Equal: {s.total_equal}\n\n",
    ]
    for name, container_diff in result.container_diffs.items():
        lines.append(f"=== CONTAINER: {name} ===\n")
        lines.append(render_container(container_diff))
        lines.append("\n\n")
    return "".join(lines)
