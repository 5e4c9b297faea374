from typing import Optional


class DocxFlowError(ValueError):
    """Base class for every error raised by docxflow."""


class ParseError(DocxFlowError):
    """
    Malformed or truncated markup met inside a structural element.
    `container` is the part name (e.g. word/document.xml) when known,
    `offset` the byte position in that part.
    """

    def __init__(self, message: str, container: str = "", offset: Optional[int] = None):
        self.reason = message
        self.container = container
        self.offset = offset
        super().__init__(self._format())

    def _format(self) -> str:
        text = self.reason
        if self.offset is not None:
            text = f"{text} (byte {self.offset})"
        if self.container:
            text = f"{self.container}: {text}"
        return text

    def with_container(self, container: str) -> "ParseError":
        """Returns a copy of this error annotated with the container name."""
        err = type(self)(self.reason, container=container, offset=self.offset)
        err.__cause__ = self.__cause__
        return err


class UnexpectedEOF(ParseError):
    """Input ended while elements were still open."""


class ReplacerError(DocxFlowError):
    """A replacer returned something other than a list of strings."""


class InvariantViolation(RuntimeError):
    """Internal bookkeeping defect. Callers are not expected to recover."""
