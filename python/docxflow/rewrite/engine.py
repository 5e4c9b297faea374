from enum import Enum
from typing import List, Optional, Protocol, Sequence

import structlog

from docxflow.errors import ParseError, ReplacerError, UnexpectedEOF
from docxflow.models import DEFAULT_OPTIONS, ProcessingOptions
from docxflow.rewrite.segments import ParagraphSlots, SegmentBuilder
from docxflow.utils.docx import CDATA, END, START, TEXT, MarkupToken, iter_markup, w, xml_escape

logger = structlog.get_logger(__name__)

_P = w("p")
_R = w("r")
_T = w("t")


class Replacer(Protocol):
    """
    Maps the text of one paragraph to the texts of the paragraphs replacing it.
    [] drops the paragraph, [s] rewrites it, [s1, s2, ...] duplicates it.
    """

    def __call__(self, container: str, text: str) -> List[str]: ...


def echo_replacer(container: str, text: str) -> List[str]:
    return [text]


class State(str, Enum):
    OUTSIDE = "OUTSIDE"
    IN_PARAGRAPH = "IN_PARAGRAPH"
    IN_RUN = "IN_RUN"
    IN_TEXT = "IN_TEXT"


class StreamingRewriter:
    """
    Copies a container byte for byte, except for paragraph text.

    Every markup token is flushed verbatim as soon as it is read. Character
    data of `w:t` elements is withheld instead and collected per paragraph;
    the first text element of the paragraph gets a placeholder segment that
    receives the replacement text once the paragraph end tag is reached.
    Other text elements of the paragraph are left empty, so the rewritten
    paragraph takes the formatting of its first run.

    The first text element keeps its start tag as written. When it carries
    no xml:space="preserve", Word trims leading and trailing spaces of the
    replacement text on display; the bytes are written unchanged.
    """

    def __init__(
        self,
        data: bytes,
        container: str,
        replacer: Replacer,
        options: Optional[ProcessingOptions] = None,
    ):
        self.container = container
        self.replacer = replacer
        self.options = options or DEFAULT_OPTIONS
        self._data = data
        self._builder = SegmentBuilder(data)
        self._state = State.OUTSIDE
        self._depth = 0
        self._paragraph_depth = 0
        self._run_depth = 0
        self._text_depth = 0
        self._slots: Optional[ParagraphSlots] = None
        self._text: List[str] = []

    def run(self) -> bytes:
        try:
            for token in iter_markup(self._data):
                self._step(token)
        except UnexpectedEOF as e:
            if self._state != State.OUTSIDE:
                raise e.with_container(self.container) from e
            logger.debug("Input ended between paragraphs", container=self.container, reason=e.reason)
        except ParseError as e:
            raise e.with_container(self.container) from e
        return self._builder.result()

    def _step(self, token: MarkupToken) -> None:
        builder = self._builder

        if token.kind == START:
            self._depth += 1
            if self._state == State.OUTSIDE:
                if token.name == _P:
                    self._open_paragraph(token)
                    return
            elif self._state == State.IN_PARAGRAPH and token.name == _R:
                self._state = State.IN_RUN
                self._run_depth = self._depth
            elif self._state == State.IN_RUN and token.name == _T and not token.empty:
                self._state = State.IN_TEXT
                self._text_depth = self._depth
                builder.flush(token.end)
                if self._slots.placeholder is None:
                    builder.add_placeholder(self._slots)
                return
            builder.flush(token.end)

        elif token.kind == END:
            builder.flush(token.end)
            if self._state == State.IN_TEXT and self._depth == self._text_depth:
                self._state = State.IN_RUN
            elif self._state == State.IN_RUN and self._depth == self._run_depth:
                self._state = State.IN_PARAGRAPH
            elif self._state == State.IN_PARAGRAPH and self._depth == self._paragraph_depth:
                self._close_paragraph()
            self._depth -= 1

        elif token.kind in (TEXT, CDATA) and self._state == State.IN_TEXT and self._depth == self._text_depth:
            self._text.append(token.text)
            builder.withhold(token.end)

        else:
            builder.flush(token.end)

    def _open_paragraph(self, token: MarkupToken) -> None:
        self._slots = self._builder.open_paragraph(token.start, token.end)
        self._state = State.IN_PARAGRAPH
        self._paragraph_depth = self._depth
        self._text = []

    def _close_paragraph(self) -> None:
        slots = self._slots
        text = "".join(self._text)
        self._slots = None
        self._text = []
        self._state = State.OUTSIDE

        if slots.placeholder is None or not text:
            # Nothing to hand to the replacer: keep the paragraph as it was.
            self._builder.restore_paragraph(slots)
            return

        replaced = self._checked(self.replacer(self.container, text))
        if self.options.verbose:
            logger.debug("Replaced paragraph", container=self.container, original=text, replaced=replaced)
        self._builder.close_paragraph(slots, [xml_escape(item) for item in replaced])

    def _checked(self, replaced: Sequence[str]) -> List[str]:
        if not isinstance(replaced, (list, tuple)):
            raise ReplacerError(
                f"{self.container}: replacer must return a list of strings, got {type(replaced).__name__}"
            )
        for item in replaced:
            if not isinstance(item, str):
                raise ReplacerError(
                    f"{self.container}: replacer returned a {type(item).__name__} item, expected str"
                )
        return list(replaced)


def rewrite_container(
    data: bytes,
    container: str,
    replacer: Optional[Replacer] = None,
    options: Optional[ProcessingOptions] = None,
) -> bytes:
    """
    Rewrites the paragraph text of one container through `replacer`.
    Bytes outside rewritten paragraphs are returned unchanged.
    """
    return StreamingRewriter(data, container, replacer or echo_replacer, options).run()
