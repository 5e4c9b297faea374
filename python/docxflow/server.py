import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from mcp.server.fastmcp import FastMCP

from docxflow.errors import DocxFlowError
from docxflow.models import ExtractionMode, ProcessingOptions
from docxflow.package import diff_revisions as _diff_revisions
from docxflow.package import extract_text, modify_text
from docxflow.template import TemplateReplacer

# --- LOGGING CONFIGURATION ---
# MCP communicates over stdio.
# CRITICAL: All logs must go to stderr. Any print to stdout will break the JSON-RPC protocol.
logging.basicConfig(stream=sys.stderr, level=logging.INFO, force=True)

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)

logger = structlog.get_logger(__name__)

mcp = FastMCP("docxflow Document Service")


@mcp.tool()
def read_paragraphs(file_path: str, original: bool = False) -> str:
    """
    Reads a DOCX file and returns the text of every paragraph, per container.

    Args:
        file_path: Absolute path to the DOCX file.
        original: If False (default), returns the 'Accepted' text (insertions kept, deletions hidden).
                  If True, returns the 'Original' text, as it read before the tracked changes.

    Returns:
        A JSON object mapping each container (word/document.xml, word/header1.xml, ...) to its
        list of paragraphs.
    """
    mode = ExtractionMode.ORIGINAL if original else ExtractionMode.ACCEPTED
    try:
        return json.dumps(extract_text(file_path, mode), indent=2, ensure_ascii=False)
    except (DocxFlowError, OSError) as e:
        logger.warning("read_paragraphs failed", file_path=file_path, error=str(e))
        return f"Error reading file: {str(e)}"


@mcp.tool()
def diff_revisions(file_path: str) -> str:
    """
    Shows the tracked changes of a DOCX file as a word-level diff.

    The 'Original' reading (all changes rejected) is compared with the 'Accepted' reading
    (all changes accepted). Deleted words are wrapped in <delete>...</delete>, inserted words in
    <insert>...</insert>. Literal angle brackets in the text are escaped as &lt; and &gt;.
    """
    try:
        result = _diff_revisions(file_path)
    except (DocxFlowError, OSError) as e:
        logger.warning("diff_revisions failed", file_path=file_path, error=str(e))
        return f"Error computing diff: {str(e)}"

    if not result.container_diffs:
        return "No tracked changes found in the document."
    return result.pretty_print()


@mcp.tool()
def fill_template(
    template_path: str,
    data: Dict[str, Any],
    output_path: Optional[str] = None,
    keep_empty: bool = False,
) -> str:
    """
    Expands every paragraph of a DOCX template with Jinja2 and saves the result.

    Each paragraph is rendered against `data`. A paragraph whose expansion is empty is removed
    (unless keep_empty is True); an expansion containing line breaks ({{ nl() }}) becomes several
    paragraphs with the formatting of the first run. Template errors are reported inline in an
    extra paragraph starting with '$$$$$$ ERROR $$$$$'.

    Args:
        template_path: Absolute path to the template DOCX.
        data: Template variables.
        output_path: Optional. Defaults to <template>_filled.docx next to the template.
        keep_empty: Keep paragraphs whose expansion is empty.
    """
    if not output_path:
        p = Path(template_path)
        output_path = str(p.parent / f"{p.stem}_filled{p.suffix}")

    options = ProcessingOptions(remove_empty_paragraphs=not keep_empty)
    try:
        written = modify_text(template_path, TemplateReplacer(data, options), output_path, options)
    except (DocxFlowError, OSError) as e:
        logger.warning("fill_template failed", template_path=template_path, error=str(e))
        return f"Error filling template: {str(e)}"

    return f"Saved to: {written}"


def main():
    mcp.run()


if __name__ == "__main__":
    main()
