import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from docxflow import __version__
from docxflow.errors import DocxFlowError
from docxflow.models import ExtractionMode, ProcessingOptions
from docxflow.package import diff_revisions, extract_text, modify_text
from docxflow.template import TemplateReplacer


def configure_logging(verbose: bool = False) -> None:
    """Human readable logs on stderr; stdout is reserved for command output."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.INFO),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def _options(args: argparse.Namespace, **overrides: Any) -> ProcessingOptions:
    return ProcessingOptions(verbose=args.verbose, **overrides)


def _write_output(text: str, output: Optional[Path] = None) -> None:
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"Wrote {output}", file=sys.stderr)
    else:
        print(text)


def handle_extract(args: argparse.Namespace):
    mode = ExtractionMode.ORIGINAL if args.original else ExtractionMode.ACCEPTED
    containers = extract_text(args.input, mode, _options(args))

    if args.json:
        text = json.dumps(containers, indent=2, ensure_ascii=False)
    else:
        sections = []
        for name, paragraphs in containers.items():
            sections.append(f"=== {name} ===\n" + "\n".join(paragraphs))
        text = "\n\n".join(sections)

    _write_output(text, args.output)


def handle_diff(args: argparse.Namespace):
    result = diff_revisions(args.input, _options(args))

    if args.json:
        text = result.model_dump_json(indent=2)
    else:
        text = result.pretty_print()

    _write_output(text, args.output)
    print(f"{result.summary.changed_containers} of {result.summary.total_containers} containers changed.", file=sys.stderr)


def _load_data(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise DocxFlowError(f"Template data must be a JSON object, got {type(data).__name__}")
    return data


def handle_fill(args: argparse.Namespace):
    options = _options(args, remove_empty_paragraphs=not args.keep_empty)
    replacer = TemplateReplacer(_load_data(args.data), options)

    output_path = args.output
    if not output_path:
        output_path = args.input.with_name(f"{args.input.stem}_filled{args.input.suffix}")

    written = modify_text(args.input, replacer, output_path, options)
    print(f"✅ Saved to {written}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docxflow", description="docxflow: DOCX text extraction, rewriting and diff")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Per-paragraph debug traces on stderr")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Subcommands")

    p_extract = subparsers.add_parser("extract", help="Extract paragraph text from every container")
    p_extract.add_argument("input", type=Path, help="Input DOCX file")
    p_extract.add_argument(
        "--original",
        action="store_true",
        help="Read the document as if every tracked change was rejected",
    )
    p_extract.add_argument("--json", action="store_true", help="Output a JSON object {container: [paragraphs]}")
    p_extract.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")
    p_extract.set_defaults(func=handle_extract)

    p_diff = subparsers.add_parser("diff", help="Compare the original and accepted text of a tracked document")
    p_diff.add_argument("input", type=Path, help="Input DOCX file")
    p_diff.add_argument("--json", action="store_true", help="Output the raw diff result as JSON")
    p_diff.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")
    p_diff.set_defaults(func=handle_diff)

    p_fill = subparsers.add_parser("fill", help="Expand every paragraph as a Jinja2 template")
    p_fill.add_argument("input", type=Path, help="Template DOCX file")
    p_fill.add_argument("data", type=Path, help="JSON file with the template variables")
    p_fill.add_argument("-o", "--output", type=Path, help="Output DOCX path (default: <input>_filled.docx)")
    p_fill.add_argument(
        "--keep-empty",
        action="store_true",
        help="Keep paragraphs whose expansion is empty instead of removing them",
    )
    p_fill.set_defaults(func=handle_fill)
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    try:
        args.func(args)
    except (DocxFlowError, OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
