"""
Low-level utilities for reading WordprocessingML parts as a byte stream.

The rewriter needs the exact byte span of every piece of markup so that it can
copy the input verbatim and withhold only paragraph text. A tree parser loses
those offsets, so `iter_markup` scans the raw bytes itself and yields one token
per tag, character-data run, comment or processing instruction.
"""

import re
from typing import Dict, Iterator, List, NamedTuple, Tuple
from xml.sax.saxutils import escape as _sax_escape

from docx.oxml.ns import nsmap

from docxflow.errors import InvariantViolation, ParseError, UnexpectedEOF

W_NS = nsmap["w"]
XML_NS = "http://www.w3.org/XML/1998/namespace"

# Main document body, numbered headers and footers.
CONTAINER_PATTERN = re.compile(r"^word/(document|header[0-9]+|footer[0-9]+)\.xml$")

# --- Token kinds ---
START = "start"
END = "end"
TEXT = "text"
CDATA = "cdata"
COMMENT = "comment"
PI = "pi"
DOCTYPE = "doctype"


class MarkupToken(NamedTuple):
    kind: str
    start: int  # byte offset of the first byte
    end: int  # byte offset one past the last byte
    name: Tuple[str, str] = ("", "")  # (namespace, local) for START / END
    text: str = ""  # decoded character data for TEXT / CDATA
    empty: bool = False  # START of a self-closing tag


def is_container(name: str) -> bool:
    return CONTAINER_PATTERN.match(name) is not None


def w(local: str) -> Tuple[str, str]:
    """Name key of a WordprocessingML main-namespace element."""
    return (W_NS, local)


_START_TAG = re.compile(rb"<([^\s/>!?<]+)((?:\s+[^\s=/>]+\s*=\s*(?:\"[^\"]*\"|'[^']*'))*)\s*(/?)>")
_END_TAG = re.compile(rb"</([^\s/><]+)\s*>")
_ATTRIBUTE = re.compile(rb"([^\s=/>]+)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")
_CHARS = re.compile(rb"[^<]+")
_COMMENT = re.compile(rb"<!--.*?-->", re.S)
_CDATA = re.compile(rb"<!\[CDATA\[(.*?)\]\]>", re.S)
_PI = re.compile(rb"<\?.*?\?>", re.S)
_DOCTYPE = re.compile(rb"<!DOCTYPE(?:[^>\[]|\[[^\]]*\])*>", re.S)

# (opening, terminator): a construct whose terminator never shows up is truncated
_TERMINATORS = (
    (b"<!--", b"-->"),
    (b"<![CDATA[", b"]]>"),
    (b"<?", b"?>"),
)

_ENTITY = re.compile(r"&(#[0-9]+|#x[0-9a-fA-F]+|[A-Za-z_][A-Za-z0-9._-]*);")
_BARE_AMPERSAND = re.compile(r"&(?!#[0-9]+;|#x[0-9a-fA-F]+;|[A-Za-z_][A-Za-z0-9._-]*;)")
_PREDEFINED = {"amp": "&", "lt": "<", "gt": ">", "quot": '"', "apos": "'"}
# Anything outside the XML 1.0 Char production, lone surrogates included
_INVALID_CHAR = re.compile("[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


def _decode(raw: bytes, offset: int) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"invalid UTF-8 sequence: {e.reason}", offset=offset + e.start) from e


def unescape_text(raw: str, offset: int = 0) -> str:
    """Resolves character and predefined entity references."""
    bare = _BARE_AMPERSAND.search(raw)
    if bare:
        raise ParseError("bare '&' in character data", offset=offset)

    def resolve(match: "re.Match[str]") -> str:
        ref = match.group(1)
        if ref.startswith("#x"):
            code = int(ref[2:], 16)
        elif ref.startswith("#"):
            code = int(ref[1:])
        elif ref in _PREDEFINED:
            return _PREDEFINED[ref]
        else:
            raise ParseError(f"undefined entity &{ref};", offset=offset)
        try:
            return chr(code)
        except (ValueError, OverflowError) as e:
            raise ParseError(f"invalid character reference &{ref};", offset=offset) from e

    return _ENTITY.sub(resolve, raw)


def xml_escape(text: str) -> bytes:
    """
    Escapes text for inclusion as element content, UTF-8 encoded.
    Characters XML cannot carry are replaced by U+FFFD. Fails only on a
    programming error (non-str input).
    """
    try:
        return _sax_escape(_INVALID_CHAR.sub("\ufffd", text), {'"': "&quot;", "'": "&apos;"}).encode("utf-8")
    except (AttributeError, TypeError, UnicodeEncodeError) as e:
        raise InvariantViolation(f"cannot escape {text!r}: {e}") from e


def _split_qname(qname: str) -> Tuple[str, str]:
    prefix, _, local = qname.rpartition(":")
    return prefix, local


def _bindings(raw_attrs: bytes, offset: int) -> Dict[str, str]:
    found = {}
    for attr in _ATTRIBUTE.finditer(raw_attrs):
        key = _decode(attr.group(1), offset)
        value = attr.group(2) if attr.group(2) is not None else attr.group(3)
        if key == "xmlns":
            found[""] = unescape_text(_decode(value, offset), offset)
        elif key.startswith("xmlns:"):
            found[key[6:]] = unescape_text(_decode(value, offset), offset)
    return found


def _truncated_or_malformed(data: bytes, pos: int) -> ParseError:
    for opening, terminator in _TERMINATORS:
        if data.startswith(opening, pos) and data.find(terminator, pos) == -1:
            return UnexpectedEOF("unterminated markup", offset=pos)
    if data.find(b">", pos) == -1:
        return UnexpectedEOF("unterminated tag", offset=pos)
    return ParseError("malformed markup", offset=pos)


def iter_markup(data: bytes) -> Iterator[MarkupToken]:
    """
    Yields the tokens of an XML document in input order.

    Tokens are contiguous: the `end` of one token is the `start` of the next,
    and the last `end` is len(data). A self-closing tag yields a START token
    spanning the tag followed by a zero-length END token.

    Raises ParseError on malformed markup and UnexpectedEOF when the input
    stops while elements are still open (or in the middle of a tag).
    """
    scopes: List[Dict[str, str]] = [{"xml": XML_NS}]
    open_tags: List[Tuple[bytes, Tuple[str, str]]] = []
    root_closed = False
    pos = 0
    size = len(data)

    while pos < size:
        if data[pos] != 0x3C:  # '<'
            match = _CHARS.match(data, pos)
            raw = _decode(match.group(0), pos)
            if not open_tags and raw.lstrip("\ufeff").strip():
                raise ParseError("character data outside the root element", offset=pos)
            yield MarkupToken(TEXT, pos, match.end(), text=unescape_text(raw, pos))
            pos = match.end()
            continue

        if data.startswith(b"</", pos):
            match = _END_TAG.match(data, pos)
            if match is None:
                raise _truncated_or_malformed(data, pos)
            if not open_tags:
                raise ParseError("end tag without matching start tag", offset=pos)
            raw_name, name = open_tags.pop()
            if match.group(1) != raw_name:
                raise ParseError(
                    f"mismatched end tag: expected </{raw_name.decode('utf-8', 'replace')}>",
                    offset=pos,
                )
            scopes.pop()
            if not open_tags:
                root_closed = True
            yield MarkupToken(END, pos, match.end(), name=name)
            pos = match.end()
            continue

        if data.startswith(b"<!--", pos):
            match = _COMMENT.match(data, pos)
            kind = COMMENT
        elif data.startswith(b"<![CDATA[", pos):
            match = _CDATA.match(data, pos)
            kind = CDATA
        elif data.startswith(b"<?", pos):
            match = _PI.match(data, pos)
            kind = PI
        elif data.startswith(b"<!DOCTYPE", pos):
            match = _DOCTYPE.match(data, pos)
            kind = DOCTYPE
        else:
            match = _START_TAG.match(data, pos)
            kind = START

        if match is None:
            raise _truncated_or_malformed(data, pos)

        if kind == CDATA:
            if not open_tags:
                raise ParseError("CDATA section outside the root element", offset=pos)
            yield MarkupToken(CDATA, pos, match.end(), text=_decode(match.group(1), pos))
        elif kind != START:
            yield MarkupToken(kind, pos, match.end())
        else:
            if root_closed:
                raise ParseError("content after the root element", offset=pos)
            raw_name = match.group(1)
            new = _bindings(match.group(2), pos)
            scope = dict(scopes[-1], **new) if new else scopes[-1]
            prefix, local = _split_qname(_decode(raw_name, pos))
            if prefix not in scope and prefix:
                raise ParseError(f"unbound namespace prefix '{prefix}'", offset=pos)
            name = (scope.get(prefix, ""), local)
            yield MarkupToken(START, pos, match.end(), name=name, empty=bool(match.group(3)))
            if match.group(3):
                if not open_tags:
                    root_closed = True
                yield MarkupToken(END, match.end(), match.end(), name=name)
            else:
                open_tags.append((raw_name, name))
                scopes.append(scope)
        pos = match.end()

    if open_tags:
        raw_name = open_tags[-1][0].decode("utf-8", "replace")
        raise UnexpectedEOF(f"unexpected end of input inside <{raw_name}>", offset=size)
