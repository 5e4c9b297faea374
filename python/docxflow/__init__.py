from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from docxflow.diff import diff_containers, render_diff
from docxflow.errors import DocxFlowError, InvariantViolation, ParseError, ReplacerError, UnexpectedEOF
from docxflow.extract import extract_paragraphs
from docxflow.matcher import SequenceMatcher, get_opcodes
from docxflow.models import (
    DEFAULT_OPTIONS,
    ContainerDiff,
    DiffResult,
    DiffSummary,
    ExtractionMode,
    OpCode,
    OpTag,
    ProcessingOptions,
)
from docxflow.package import diff_revisions, extract_original_text, extract_text, modify_text, modify_text_bytes
from docxflow.rewrite.engine import Replacer, rewrite_container
from docxflow.template import TemplateReplacer
from docxflow.utils.docx import is_container

try:
    __version__ = version("docxflow")
except PackageNotFoundError:
    # Running from a source checkout: fall back to a VERSION file next to the package.
    _version_file = Path(__file__).parent / "VERSION"
    if _version_file.is_file():
        __version__ = _version_file.read_text().strip()
    else:
        __version__ = "0.0.0-dev"

__all__ = [
    "extract_paragraphs",
    "rewrite_container",
    "Replacer",
    "SequenceMatcher",
    "get_opcodes",
    "diff_containers",
    "render_diff",
    "extract_text",
    "extract_original_text",
    "modify_text",
    "modify_text_bytes",
    "diff_revisions",
    "is_container",
    "TemplateReplacer",
    "ProcessingOptions",
    "DEFAULT_OPTIONS",
    "ExtractionMode",
    "OpTag",
    "OpCode",
    "ContainerDiff",
    "DiffResult",
    "DiffSummary",
    "DocxFlowError",
    "ParseError",
    "UnexpectedEOF",
    "ReplacerError",
    "InvariantViolation",
    "__version__",
]
