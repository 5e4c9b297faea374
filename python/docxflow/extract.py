"""
Revision-aware paragraph text extraction.

One forward pass over a container part (document body, header or footer).
Tracked changes are resolved on the fly:

- ACCEPTED: what the document reads like once every change is accepted.
  Inserted runs are kept, `w:del` content and `w:delText` are dropped.
- ORIGINAL: what the document read like before the changes.
  `w:ins` subtrees are skipped without being entered, `w:delText` is kept.
"""

from enum import Enum
from typing import List, Optional

import structlog
from docx.oxml.ns import qn
from lxml import etree

from docxflow.errors import ParseError, UnexpectedEOF
from docxflow.models import DEFAULT_OPTIONS, ExtractionMode, ProcessingOptions

logger = structlog.get_logger(__name__)

_P = qn("w:p")
_R = qn("w:r")
_T = qn("w:t")
_DEL_TEXT = qn("w:delText")
_INS = qn("w:ins")
_DEL = qn("w:del")
_PPR = qn("w:pPr")
_RPR = qn("w:rPr")

_CHUNK_SIZE = 64 * 1024


class State(str, Enum):
    OUTSIDE = "OUTSIDE"
    IN_PARAGRAPH = "IN_PARAGRAPH"
    IN_RUN = "IN_RUN"
    IN_TEXT = "IN_TEXT"
    IN_DELETION = "IN_DELETION"
    IN_INSERTION = "IN_INSERTION"
    SKIPPING = "SKIPPING"  # subtree dropped by the current mode


class ParagraphExtractor:
    """
    Explicit state machine driven by lxml pull-parser events.

    One state is pushed per open element, so the top of the stack is the
    current state and wrappers can nest in any combination (a deletion inside
    an insertion, an insertion around a whole run or around a single text node).
    """

    def __init__(
        self,
        mode: ExtractionMode = ExtractionMode.ACCEPTED,
        options: Optional[ProcessingOptions] = None,
        container: str = "",
    ):
        self.mode = ExtractionMode(mode)
        self.options = options or DEFAULT_OPTIONS
        self.container = container
        self.paragraphs: List[str] = []
        self._states: List[State] = []
        self._tags: List[str] = []
        self._buffer: List[str] = []

    @property
    def state(self) -> State:
        return self._states[-1] if self._states else State.OUTSIDE

    def _inside(self, state: State) -> bool:
        return state in self._states

    # -- transitions -------------------------------------------------------

    def _enter(self, tag: str) -> State:
        current = self.state
        if current == State.SKIPPING:
            return State.SKIPPING

        if tag == _P:
            if self._inside(State.IN_PARAGRAPH):
                # Text box content belongs to the enclosing paragraph
                return current
            self._buffer = []
            return State.IN_PARAGRAPH

        if not self._inside(State.IN_PARAGRAPH):
            return current

        if tag == _INS:
            if self._tags and self._tags[-1] == _RPR:
                # Revision mark on run / paragraph-mark properties, no content.
                if len(self._tags) > 1 and self._tags[-2] == _PPR:
                    self._paragraph_mark_inserted()
                return current
            if self.mode == ExtractionMode.ORIGINAL:
                return State.SKIPPING
            return State.IN_INSERTION

        if tag == _DEL:
            if self._tags and self._tags[-1] == _RPR:
                return current
            return State.IN_DELETION

        if tag == _R:
            return State.IN_RUN

        if tag in (_T, _DEL_TEXT) and self._inside(State.IN_RUN):
            return State.IN_TEXT

        return current

    def _leave(self, tag: str, state: State, element) -> None:
        if state == State.IN_TEXT:
            if self._keeps(tag):
                # character data following a comment or PI child sits in its tail
                self._buffer.append(element.text or "")
                self._buffer.extend(child.tail or "" for child in element)
        elif state == State.IN_PARAGRAPH and tag == _P and not self._inside(State.IN_PARAGRAPH):
            text = "".join(self._buffer)
            self._buffer = []
            self.paragraphs.append(text)
            if self.options.verbose:
                logger.debug("Captured paragraph", container=self.container, mode=self.mode.value, text=text)
            element.clear(keep_tail=True)

    def _keeps(self, tag: str) -> bool:
        if self.mode == ExtractionMode.ACCEPTED:
            return tag == _T and not self._inside(State.IN_DELETION)
        return not self._inside(State.IN_INSERTION)

    def _paragraph_mark_inserted(self) -> None:
        # TODO: decide whether a paragraph whose mark is inserted should be dropped
        # from the ORIGINAL reading once a sample document shows the intended use.
        if self.options.verbose:
            logger.debug(
                "Paragraph mark carries an insertion marker, paragraph kept",
                container=self.container,
                mode=self.mode.value,
            )

    # -- driver ------------------------------------------------------------

    def _consume(self, parser: etree.XMLPullParser) -> None:
        for action, element in parser.read_events():
            if action == "start":
                self._states.append(self._enter(element.tag))
                self._tags.append(element.tag)
            else:
                self._tags.pop()
                self._leave(element.tag, self._states.pop(), element)

    def run(self, data: bytes) -> List[str]:
        parser = etree.XMLPullParser(events=("start", "end"), resolve_entities=False, no_network=True)
        try:
            for offset in range(0, len(data), _CHUNK_SIZE):
                parser.feed(data[offset : offset + _CHUNK_SIZE])
                self._consume(parser)
        except etree.XMLSyntaxError as e:
            raise ParseError(str(e), container=self.container) from e

        try:
            parser.close()
        except etree.XMLSyntaxError as e:
            self._consume(parser)
            if self._inside(State.IN_PARAGRAPH):
                raise UnexpectedEOF(
                    f"unexpected end of input inside a paragraph: {e}",
                    container=self.container,
                    offset=len(data),
                ) from e
            logger.debug("Input ended between paragraphs", container=self.container, reason=str(e))
            return self.paragraphs

        self._consume(parser)
        return self.paragraphs


def extract_paragraphs(
    data: bytes,
    mode: ExtractionMode = ExtractionMode.ACCEPTED,
    options: Optional[ProcessingOptions] = None,
    container: str = "",
) -> List[str]:
    """
    Returns the text of every paragraph of one container, in document order.

    Raises ParseError on malformed markup or when the input stops inside a
    paragraph. Input ending cleanly between paragraphs is not an error.
    """
    return ParagraphExtractor(mode, options, container).run(data)
