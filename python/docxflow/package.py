"""
Package-level operations on .docx files.

A .docx is a zip archive. Only the container parts (document body, headers,
footers) are read or rewritten; every other part is copied through unchanged.
"""

import os
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

import structlog

from docxflow.diff import diff_containers
from docxflow.errors import DocxFlowError
from docxflow.extract import extract_paragraphs
from docxflow.models import DEFAULT_OPTIONS, DiffResult, ExtractionMode, ProcessingOptions
from docxflow.rewrite.engine import Replacer, echo_replacer, rewrite_container
from docxflow.utils.docx import is_container

logger = structlog.get_logger(__name__)

Source = Union[str, os.PathLike, bytes]


def _read_source(source: Source) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, "rb") as f:
        return f.read()


def _open_package(data: bytes) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(BytesIO(data))
    except zipfile.BadZipFile as e:
        raise DocxFlowError(f"Not a docx package: {e}") from e


def iter_containers(data: bytes) -> Iterator[Tuple[str, bytes]]:
    """Yields (name, content) for every container part, in archive order."""
    with _open_package(data) as zf:
        for info in zf.infolist():
            if is_container(info.filename):
                yield info.filename, zf.read(info)


def extract_text(
    source: Source,
    mode: ExtractionMode = ExtractionMode.ACCEPTED,
    options: Optional[ProcessingOptions] = None,
) -> Dict[str, List[str]]:
    """
    Extracts paragraph text from every container of a package.
    Returns a mapping from container name (e.g. word/footer1.xml) to its
    paragraphs. `source` is a path or the raw bytes of the package.
    """
    options = options or DEFAULT_OPTIONS
    data = _read_source(source)
    result: Dict[str, List[str]] = {}
    for name, content in iter_containers(data):
        if options.verbose:
            logger.info(f"Extracting {mode.value.lower()} text from {name}")
        result[name] = extract_paragraphs(content, mode, options, container=name)
    logger.debug("Extraction finished", containers=len(result), mode=mode.value)
    return result


def extract_original_text(source: Source, options: Optional[ProcessingOptions] = None) -> Dict[str, List[str]]:
    """Same as extract_text, reading the document as if every change was rejected."""
    return extract_text(source, ExtractionMode.ORIGINAL, options)


def modify_text_bytes(
    data: bytes,
    replacer: Optional[Replacer] = None,
    options: Optional[ProcessingOptions] = None,
) -> bytes:
    """
    Rewrites the paragraph text of every container through `replacer` and
    returns the new package. Non-container parts are copied unmodified with
    their original zip metadata. Without a replacer the text is kept, but the
    formatting of each paragraph collapses to that of its first run.
    """
    options = options or DEFAULT_OPTIONS
    replacer = replacer or echo_replacer
    buffer = BytesIO()

    with _open_package(data) as source_zip, zipfile.ZipFile(buffer, "w") as target_zip:
        for info in source_zip.infolist():
            content = source_zip.read(info)
            if is_container(info.filename):
                if options.verbose:
                    logger.info(f"Processing {info.filename}")
                content = rewrite_container(content, info.filename, replacer, options)
            target_zip.writestr(info, content)

    return buffer.getvalue()


def modify_text(
    source_path: Union[str, os.PathLike],
    replacer: Optional[Replacer] = None,
    target_path: Optional[Union[str, os.PathLike]] = None,
    options: Optional[ProcessingOptions] = None,
) -> Path:
    """
    File variant of modify_text_bytes. Without `target_path` the source file
    is rewritten in place. Returns the path written.
    """
    target = Path(target_path or source_path)
    logger.info(f"Modifying {source_path} -> {target}")
    result = modify_text_bytes(_read_source(source_path), replacer, options)
    with open(target, "wb") as f:
        f.write(result)
    return target


def diff_revisions(source: Source, options: Optional[ProcessingOptions] = None) -> DiffResult:
    """Compares the original and the accepted reading of a document's tracked changes."""
    data = _read_source(source)
    original = extract_text(data, ExtractionMode.ORIGINAL, options)
    accepted = extract_text(data, ExtractionMode.ACCEPTED, options)
    return diff_containers(original, accepted, options)
