"""
C Tokenizer — lexical scanning for the BARR-C style checker.

Turns raw C source text into a lazy, restartable stream of positioned tokens:
  • Comments (// and /* */) and whitespace are skipped, positions stay exact
  • Preprocessor lines become a single DIRECTIVE token (with continuations)
  • Reserved words → KEYWORD, fixed-width typedef names (uint8_t …) → TYPE_NAME
  • Unknown characters become OTHER tokens instead of failing

Only an unterminated block comment or string/char literal raises LexError.
"""

import re
import logging
from enum import Enum
from typing import Iterator, List
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class TokenKind(str, Enum):
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    TYPE_NAME = "type-name"
    PUNCTUATION = "punctuation"
    LITERAL = "literal"
    DIRECTIVE = "directive"
    OTHER = "other"


C_KEYWORDS = frozenset({
    "auto", "break", "case", "char", "const", "continue", "default", "do",
    "double", "else", "enum", "extern", "float", "for", "goto", "if",
    "inline", "int", "long", "register", "restrict", "return", "short",
    "signed", "sizeof", "static", "struct", "switch", "typedef", "union",
    "unsigned", "void", "volatile", "while", "_Bool", "_Complex",
    "_Noreturn", "_Static_assert", "_Thread_local", "_Alignas", "_Alignof",
})

# Identifiers that name types without being keywords (stdint.h, stdbool.h …)
_TYPE_NAME_RE = re.compile(r"^(?:[A-Za-z_][A-Za-z0-9_]*_t|bool)$")

_PUNCTUATORS = (
    "...", "<<=", ">>=",
    "->", "++", "--", "<<", ">>", "<=", ">=", "==", "!=", "&&", "||",
    "*=", "/=", "%=", "+=", "-=", "&=", "^=", "|=", "##",
    "[", "]", "(", ")", "{", "}", ".", "&", "*", "+", "-", "~", "!",
    "/", "%", "<", ">", "^", "|", "?", ":", ";", "=", ",", "#",
)

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(
    r"(?:0[xX][0-9A-Fa-f]+|0[bB][01]+|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)"
    r"[uUlLfF]*"
)
_WHITESPACE_RE = re.compile(r"[ \t\r\f\v]+")
_PREFIX_RE = re.compile(r"(?:u8|[LuU])(?=[\"'])")


class LexError(ValueError):
    """Unterminated comment or literal — fatal for the file being scanned."""

    def __init__(self, message: str, file_path: str = "", line: int = 0, column: int = 0):
        self.message = message
        self.file_path = file_path
        self.line = line
        self.column = column
        super().__init__(f"{file_path or '<source>'}:{line}:{column}: {message}")


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    line: int       # 1-indexed
    column: int     # 1-indexed
    offset: int     # 0-indexed character offset into the source

    @property
    def end_offset(self) -> int:
        return self.offset + len(self.text)

    def is_punct(self, text: str) -> bool:
        return self.kind is TokenKind.PUNCTUATION and self.text == text


class TokenStream:
    """Restartable lazy token sequence over one source text.

    Each iteration re-scans the source, so the stream can be consumed any
    number of times without holding the tokens in memory.
    """

    def __init__(self, source: str, file_path: str = ""):
        self.source = source
        self.file_path = file_path

    def __iter__(self) -> Iterator[Token]:
        return _scan(self.source, self.file_path)

    def to_list(self) -> List[Token]:
        return list(self)


def tokenize(source: str, file_path: str = "") -> TokenStream:
    """Return a lazy token stream over ``source``."""
    return TokenStream(source, file_path)


def _scan(source: str, file_path: str) -> Iterator[Token]:
    pos = 0
    line = 1
    line_start = 0          # offset of the first character of the current line
    at_line_start = True    # only whitespace seen since the last newline
    length = len(source)

    while pos < length:
        ch = source[pos]

        if ch == "\n":
            pos += 1
            line += 1
            line_start = pos
            at_line_start = True
            continue

        m = _WHITESPACE_RE.match(source, pos)
        if m:
            pos = m.end()
            continue

        # Line continuation outside a directive
        skip = _continuation(source, pos)
        if skip:
            pos += skip
            line += 1
            line_start = pos
            continue

        column = pos - line_start + 1

        if source.startswith("//", pos):
            end = source.find("\n", pos)
            pos = length if end == -1 else end
            continue

        if source.startswith("/*", pos):
            end = source.find("*/", pos + 2)
            if end == -1:
                raise LexError("unterminated block comment", file_path, line, column)
            body = source[pos:end + 2]
            newlines = body.count("\n")
            if newlines:
                line += newlines
                line_start = pos + body.rfind("\n") + 1
            pos = end + 2
            continue

        if ch == "#" and at_line_start:
            end, newlines, last_nl = _directive_end(source, pos, file_path, line, column)
            yield Token(TokenKind.DIRECTIVE, source[pos:end], line, column, pos)
            if newlines:
                line += newlines
                line_start = last_nl + 1
            pos = end
            continue

        at_line_start = False

        if ch == '"' or ch == "'":
            end, newlines, last_nl = _literal_end(source, pos, ch, file_path, line, column)
            yield Token(TokenKind.LITERAL, source[pos:end], line, column, pos)
            if newlines:
                line += newlines
                line_start = last_nl + 1
            pos = end
            continue

        # Wide / UTF string and char prefixes: L"..", u8"..", U'..'
        m = _PREFIX_RE.match(source, pos)
        if m:
            quote = source[m.end()]
            end, newlines, last_nl = _literal_end(source, m.end(), quote, file_path, line, column)
            yield Token(TokenKind.LITERAL, source[pos:end], line, column, pos)
            if newlines:
                line += newlines
                line_start = last_nl + 1
            pos = end
            continue

        m = _IDENT_RE.match(source, pos)
        if m:
            text = m.group()
            if text in C_KEYWORDS:
                kind = TokenKind.KEYWORD
            elif _TYPE_NAME_RE.match(text):
                kind = TokenKind.TYPE_NAME
            else:
                kind = TokenKind.IDENTIFIER
            yield Token(kind, text, line, column, pos)
            pos = m.end()
            continue

        if ch.isdigit() or (ch == "." and pos + 1 < length and source[pos + 1].isdigit()):
            m = _NUMBER_RE.match(source, pos)
            end = m.end() if m else pos + 1
            # Swallow trailing identifier characters of malformed numbers (12abc)
            while end < length and (source[end].isalnum() or source[end] == "_"):
                end += 1
            yield Token(TokenKind.LITERAL, source[pos:end], line, column, pos)
            pos = end
            continue

        for punct in _PUNCTUATORS:
            if source.startswith(punct, pos):
                yield Token(TokenKind.PUNCTUATION, punct, line, column, pos)
                pos += len(punct)
                break
        else:
            yield Token(TokenKind.OTHER, ch, line, column, pos)
            pos += 1


def _continuation(source: str, pos: int) -> int:
    """Length of a backslash-newline at ``pos`` (LF, CRLF or bare CR), else 0."""
    if source[pos] != "\\":
        return 0
    if source.startswith("\r\n", pos + 1):
        return 3
    if source.startswith("\n", pos + 1) or source.startswith("\r", pos + 1):
        return 2
    return 0


def _quoted_end(source: str, start: int, quote: str):
    """Scan the literal opening at ``start``.

    Returns (end_offset, newlines_consumed, offset_of_last_newline);
    end_offset is None when the literal is not closed on its logical line.
    """
    pos = start + 1
    length = len(source)
    newlines = 0
    last_nl = -1
    while pos < length:
        ch = source[pos]
        if ch == "\\":
            skip = _continuation(source, pos)
            if skip:
                newlines += 1
                last_nl = pos + skip - 1
                pos += skip
            else:
                pos += 2
            continue
        if ch == quote:
            return pos + 1, newlines, last_nl
        if ch == "\n":
            break
        pos += 1
    return None, newlines, last_nl


def _literal_end(source: str, start: int, quote: str, file_path: str, line: int, column: int):
    """Offset just past the closing quote, plus the newlines spliced inside."""
    end, newlines, last_nl = _quoted_end(source, start, quote)
    if end is None:
        kind = "string" if quote == '"' else "character"
        raise LexError(f"unterminated {kind} literal", file_path, line, column)
    return end, newlines, last_nl


def _directive_end(source: str, start: int, file_path: str, line: int, column: int):
    """Scan a preprocessor line, honouring continuations and comments.

    Returns (end_offset, newlines_consumed, offset_of_last_newline).
    """
    pos = start
    length = len(source)
    newlines = 0
    last_nl = -1
    while pos < length:
        ch = source[pos]
        skip = _continuation(source, pos)
        if skip:
            newlines += 1
            last_nl = pos + skip - 1
            pos += skip
            continue
        if ch == "\n":
            break
        if source.startswith("//", pos):
            end = source.find("\n", pos)
            return (length if end == -1 else end), newlines, last_nl
        if source.startswith("/*", pos):
            end = source.find("*/", pos + 2)
            if end == -1:
                raise LexError("unterminated block comment", file_path, line + newlines,
                               pos - (last_nl + 1 if newlines else start - column + 1) + 1)
            body = source[pos:end + 2]
            if "\n" in body:
                newlines += body.count("\n")
                last_nl = pos + body.rfind("\n")
            pos = end + 2
            continue
        if ch == '"' or ch == "'":
            # #include <...> and #error text may hold stray quotes; only
            # well-formed literals are skipped as a unit
            close, spliced, spliced_nl = _quoted_end(source, pos, ch)
            if close is not None:
                if spliced:
                    newlines += spliced
                    last_nl = spliced_nl
                pos = close
                continue
        pos += 1
    return pos, newlines, last_nl
