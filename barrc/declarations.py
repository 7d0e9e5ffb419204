"""
Declaration Extractor — a partial C parser scoped to declarations.

Consumes the token stream and recognises only the shapes the style rules
need, ignoring everything else:
  • Function definitions and prototypes (name, return type, parameters)
  • Parameters (qualifiers, base type, pointer markers, const placement)
  • File-scope and block-scope variable declarations at statement starts

Malformed input never raises: an unterminated construct is dropped and
extraction continues (or stops at end of input) with what was well formed.
"""

import logging
from enum import Enum
from typing import Iterable, List, Optional, Tuple
from dataclasses import dataclass, field

from barrc.tokenizer import Token, TokenKind

logger = logging.getLogger(__name__)

QUALIFIERS = frozenset({"const", "volatile", "restrict"})
STORAGE_CLASSES = frozenset({
    "static", "extern", "register", "auto", "inline", "_Noreturn", "_Thread_local",
})
TYPE_KEYWORDS = frozenset({
    "void", "char", "short", "int", "long", "float", "double",
    "signed", "unsigned", "_Bool", "_Complex",
})
TAG_KEYWORDS = frozenset({"struct", "union", "enum"})

_OPENERS = {"(": ")", "[": "]", "{": "}"}


class DeclarationKind(str, Enum):
    FUNCTION = "function"
    VARIABLE = "variable"
    PARAMETER = "parameter"


@dataclass(frozen=True)
class Declaration:
    """One recognised function, variable or parameter."""
    kind: DeclarationKind
    name: str
    base_type: str          # type words as written, e.g. "unsigned char"
    line: int               # 1-indexed, position of the name token
    column: int             # 1-indexed
    file_path: str = ""
    is_pointer: bool = False
    is_const_qualified: bool = False    # pointee is const (pointers only)
    is_declared_const: bool = False     # the object itself is const
    is_array: bool = False
    is_function_pointer: bool = False     # (*name)(...) or a function-typed parameter
    qualifiers: Tuple[str, ...] = ()
    initializer: str = ""
    enclosing_function: Optional[int] = None   # index into the declaration list
    is_definition: bool = False                # functions: body present
    type_start: int = -1    # source offsets spanning the base-type tokens
    type_end: int = -1

    @property
    def is_file_scope(self) -> bool:
        return self.enclosing_function is None


# ═══════════════════════════════════════════════════════════════════════
#  Token-window matchers
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class _Specifiers:
    base_words: List[str] = field(default_factory=list)
    qualifiers: List[str] = field(default_factory=list)
    has_const: bool = False
    type_start: int = -1
    type_end: int = -1

    @property
    def base_type(self) -> str:
        return " ".join(self.base_words)


@dataclass
class _Declarator:
    name: Token
    stars: int = 0
    const_after_last_star: bool = False
    is_array: bool = False
    is_function: bool = False       # declarator ends in a parameter list: (*f)(...)
    params: Optional[Tuple[int, int]] = None    # (open, close) indices of "( ... )"
    initializer: List[Token] = field(default_factory=list)


def _matching(tokens: List[Token], start: int, end: int) -> Optional[int]:
    """Index of the bracket closing tokens[start], searching before ``end``."""
    stack = []
    for k in range(start, end):
        tok = tokens[k]
        if tok.kind is not TokenKind.PUNCTUATION:
            continue
        if tok.text in _OPENERS:
            stack.append(_OPENERS[tok.text])
        elif stack and tok.text == stack[-1]:
            stack.pop()
            if not stack:
                return k
        elif tok.text in (")", "]", "}"):
            return None
    return None


def _split_commas(tokens: List[Token], start: int, end: int) -> List[Tuple[int, int]]:
    """Split tokens[start:end] on commas outside any brackets."""
    parts = []
    depth = 0
    part_start = start
    for k in range(start, end):
        tok = tokens[k]
        if tok.kind is not TokenKind.PUNCTUATION:
            continue
        if tok.text in _OPENERS:
            depth += 1
        elif tok.text in (")", "]", "}"):
            depth = max(depth - 1, 0)
        elif tok.text == "," and depth == 0:
            parts.append((part_start, k))
            part_start = k + 1
    parts.append((part_start, end))
    return parts


def _parse_specifiers(tokens: List[Token], i: int, end: int) -> Tuple[Optional[_Specifiers], int]:
    spec = _Specifiers()
    while i < end:
        tok = tokens[i]
        if tok.kind is TokenKind.KEYWORD and tok.text in QUALIFIERS | STORAGE_CLASSES:
            spec.qualifiers.append(tok.text)
            if tok.text == "const":
                spec.has_const = True
            i += 1
            continue
        if tok.kind is TokenKind.KEYWORD and tok.text in TYPE_KEYWORDS:
            _add_base(spec, tok)
            i += 1
            continue
        if tok.kind is TokenKind.KEYWORD and tok.text in TAG_KEYWORDS:
            if spec.base_words:
                return None, i
            _add_base(spec, tok)
            i += 1
            if i < end and tokens[i].kind in (TokenKind.IDENTIFIER, TokenKind.TYPE_NAME):
                _add_base(spec, tokens[i])
                i += 1
            if i < end and tokens[i].is_punct("{"):
                close = _matching(tokens, i, end)
                if close is None:
                    return None, i
                i = close + 1
            continue
        if tok.kind in (TokenKind.IDENTIFIER, TokenKind.TYPE_NAME) and not spec.base_words:
            _add_base(spec, tok)
            i += 1
            continue
        break
    if not spec.base_words:
        return None, i
    return spec, i


def _add_base(spec: _Specifiers, tok: Token):
    spec.base_words.append(tok.text)
    if spec.type_start < 0:
        spec.type_start = tok.offset
    spec.type_end = tok.end_offset


def _parse_declarator(tokens: List[Token], i: int, end: int, allow_abstract: bool = False):
    """Parse one declarator in tokens[i:end].

    Returns a _Declarator, ``None`` for a well-formed abstract declarator
    (only when ``allow_abstract``), or ``False`` when the shape is not a
    declarator at all.
    """
    stars = 0
    const_after = False
    while i < end:
        tok = tokens[i]
        if tok.is_punct("*"):
            stars += 1
            const_after = False
        elif tok.kind is TokenKind.KEYWORD and tok.text in QUALIFIERS:
            if tok.text == "const" and stars:
                const_after = True
        else:
            break
        i += 1

    if i >= end:
        return None if allow_abstract else False

    tok = tokens[i]
    if tok.is_punct("("):
        # Parenthesised declarator: (*name)(...) or (*name)[...]. Requiring
        # the leading '*' and a trailing suffix keeps calls like foo(bar);
        # and foo(*p); from reading as declarations.
        close = _matching(tokens, i, end)
        if close is None or i + 1 >= close or not tokens[i + 1].is_punct("*"):
            return False
        if close + 1 >= end or tokens[close + 1].text not in ("(", "["):
            return False
        inner = _parse_declarator(tokens, i + 1, close, allow_abstract)
        if not inner:
            if inner is None and allow_abstract:
                return None
            return False
        decl = inner
        decl.stars += stars
        decl.is_function = decl.is_function or tokens[close + 1].text == "("
        i = close + 1
        while i < end and tokens[i].kind is TokenKind.PUNCTUATION and tokens[i].text in ("(", "["):
            close = _matching(tokens, i, end)
            if close is None:
                return False
            i = close + 1
        if i < end and tokens[i].is_punct("="):
            decl.initializer = tokens[i + 1:end]
            i = end
        return decl if i == end else False

    if tok.kind not in (TokenKind.IDENTIFIER, TokenKind.TYPE_NAME):
        if allow_abstract and (tok.is_punct("[") or tok.is_punct("(")):
            return None
        return False

    decl = _Declarator(name=tok, stars=stars, const_after_last_star=const_after)
    i += 1
    while i < end:
        tok = tokens[i]
        if tok.is_punct("["):
            close = _matching(tokens, i, end)
            if close is None:
                return False
            decl.is_array = True
            i = close + 1
        elif tok.is_punct("(") and decl.params is None and not decl.is_array:
            close = _matching(tokens, i, end)
            if close is None:
                return False
            decl.params = (i, close)
            i = close + 1
        elif tok.is_punct("=") and decl.params is None:
            decl.initializer = tokens[i + 1:end]
            i = end
        else:
            return False
    return decl


# ═══════════════════════════════════════════════════════════════════════
#  Extractor
# ═══════════════════════════════════════════════════════════════════════

class DeclarationExtractor:
    """Recognise function, parameter and variable declarations in a token list."""

    def __init__(self, tokens: Iterable[Token], file_path: str = ""):
        self.tokens: List[Token] = [t for t in tokens if t.kind is not TokenKind.DIRECTIVE]
        self.file_path = file_path
        self.declarations: List[Declaration] = []

    def extract(self) -> List[Declaration]:
        self.declarations = []
        i = 0
        n = len(self.tokens)
        while i < n:
            i = self._top_level(i)
        logger.debug("Extracted %d declarations from %s",
                     len(self.declarations), self.file_path or "<source>")
        return self.declarations

    # ────────────────────────────────────────────────────────────────
    #  File scope
    # ────────────────────────────────────────────────────────────────

    def _top_level(self, start: int) -> int:
        tokens = self.tokens
        n = len(tokens)

        if tokens[start].is_punct("}") or tokens[start].is_punct(";"):
            return start + 1

        end, terminator = self._statement_end(start)
        if terminator is None:
            logger.debug("Unterminated declaration at line %d — skipped", tokens[start].line)
            return n

        if terminator == ";":
            if not (tokens[start].kind is TokenKind.KEYWORD and tokens[start].text == "typedef"):
                self._declaration_statement(start, end, enclosing=None)
            return end + 1

        if terminator == "}":
            # stray closing brace, drop the run before it
            return end

        # terminator == "{": function definition or an unknown braced construct
        fn_index = self._function_header(start, end, is_definition=True)
        if fn_index is None:
            close = _matching(tokens, end, n)
            return n if close is None else close + 1
        return self._scan_body(end, fn_index)

    def _statement_end(self, start: int):
        """Find the token ending the statement that begins at ``start``.

        Returns (index, terminator) where terminator is ";", "{", "}" or
        ``None`` at end of input. Initializer braces and struct/union/enum
        bodies are stepped over.
        """
        tokens = self.tokens
        n = len(tokens)
        depth = 0
        has_assign = False
        k = start
        while k < n:
            tok = tokens[k]
            if tok.kind is not TokenKind.PUNCTUATION:
                k += 1
                continue
            if tok.text in ("(", "["):
                depth += 1
            elif tok.text in (")", "]"):
                depth = max(depth - 1, 0)
            elif tok.text == "=" and depth == 0:
                has_assign = True
            elif tok.text == "{":
                if depth > 0 or has_assign or self._is_tag_body(start, k):
                    close = _matching(tokens, k, n)
                    if close is None:
                        return k, None
                    k = close + 1
                    continue
                return k, "{"
            elif tok.text == "}":
                return k, "}"
            elif tok.text == ";" and depth == 0:
                return k, ";"
            k += 1
        return k, None

    def _is_tag_body(self, start: int, brace: int) -> bool:
        tokens = self.tokens
        prev = brace - 1
        if prev >= start and tokens[prev].kind in (TokenKind.IDENTIFIER, TokenKind.TYPE_NAME):
            prev -= 1
        return prev >= start and tokens[prev].kind is TokenKind.KEYWORD \
            and tokens[prev].text in TAG_KEYWORDS

    # ────────────────────────────────────────────────────────────────
    #  Functions and parameters
    # ────────────────────────────────────────────────────────────────

    def _function_header(self, start: int, end: int, is_definition: bool) -> Optional[int]:
        spec, i = _parse_specifiers(self.tokens, start, end)
        if spec is None:
            return None
        decl = _parse_declarator(self.tokens, i, end)
        if not decl or decl.params is None or decl.initializer:
            return None
        return self._add_function(spec, decl, is_definition)

    def _add_function(self, spec: _Specifiers, decl: _Declarator, is_definition: bool) -> int:
        fn_index = len(self.declarations)
        self.declarations.append(Declaration(
            kind=DeclarationKind.FUNCTION,
            name=decl.name.text,
            base_type=spec.base_type,
            line=decl.name.line,
            column=decl.name.column,
            file_path=self.file_path,
            is_pointer=decl.stars > 0,
            is_const_qualified=decl.stars > 0 and spec.has_const,
            qualifiers=tuple(spec.qualifiers),
            is_definition=is_definition,
            type_start=spec.type_start,
            type_end=spec.type_end,
        ))
        open_idx, close_idx = decl.params
        self._parameters(open_idx + 1, close_idx, fn_index)
        return fn_index

    def _parameters(self, start: int, end: int, fn_index: int):
        tokens = self.tokens
        if start >= end:
            return
        if end - start == 1 and tokens[start].kind is TokenKind.KEYWORD \
                and tokens[start].text == "void":
            return
        for part_start, part_end in _split_commas(tokens, start, end):
            if part_start >= part_end or tokens[part_start].is_punct("..."):
                continue
            spec, i = _parse_specifiers(tokens, part_start, part_end)
            if spec is None:
                logger.debug("Unrecognised parameter at line %d", tokens[part_start].line)
                continue
            decl = _parse_declarator(tokens, i, part_end, allow_abstract=True)
            if not decl or decl.initializer:
                continue
            # array and function parameters decay to pointers
            is_function_pointer = decl.is_function or decl.params is not None
            is_pointer = decl.stars > 0 or decl.is_array or is_function_pointer
            self.declarations.append(Declaration(
                kind=DeclarationKind.PARAMETER,
                name=decl.name.text,
                base_type=spec.base_type,
                line=decl.name.line,
                column=decl.name.column,
                file_path=self.file_path,
                is_pointer=is_pointer,
                is_const_qualified=is_pointer and spec.has_const,
                is_declared_const=decl.const_after_last_star if decl.stars else spec.has_const,
                is_array=decl.is_array,
                is_function_pointer=is_function_pointer,
                qualifiers=tuple(spec.qualifiers),
                enclosing_function=fn_index,
                type_start=spec.type_start,
                type_end=spec.type_end,
            ))

    # ────────────────────────────────────────────────────────────────
    #  Function bodies
    # ────────────────────────────────────────────────────────────────

    def _scan_body(self, open_brace: int, fn_index: int) -> int:
        """Walk a function body, extracting declarations at statement starts.

        Returns the index after the closing brace, or the end of input when
        the body is unbalanced.
        """
        tokens = self.tokens
        n = len(tokens)
        depth = 1
        k = open_brace + 1
        while k < n:
            tok = tokens[k]
            if tok.is_punct("{"):
                depth += 1
                k += 1
                continue
            if tok.is_punct("}"):
                depth -= 1
                k += 1
                if depth == 0:
                    return k
                continue
            if tok.is_punct(";"):
                k += 1
                continue

            end, terminator = self._statement_end(k)
            if terminator is None:
                break
            if terminator == ";":
                self._declaration_statement(k, end, enclosing=fn_index)
                k = end + 1
            else:
                k = end

        logger.debug("Unbalanced body for function '%s' — stopped at end of input",
                     self.declarations[fn_index].name)
        return n

    # ────────────────────────────────────────────────────────────────
    #  Variables
    # ────────────────────────────────────────────────────────────────

    def _declaration_statement(self, start: int, end: int, enclosing: Optional[int]):
        tokens = self.tokens
        spec, i = _parse_specifiers(tokens, start, end)
        if spec is None:
            return

        parts = _split_commas(tokens, i, end)
        declarators = []
        for part_start, part_end in parts:
            decl = _parse_declarator(tokens, part_start, part_end)
            if not decl:
                return
            declarators.append(decl)

        if enclosing is None and len(declarators) == 1 and declarators[0].params is not None:
            self._add_function(spec, declarators[0], is_definition=False)
            return

        for decl in declarators:
            if decl.params is not None:
                # block-scope prototype or function-pointer typedef shape
                continue
            is_pointer = decl.stars > 0
            self.declarations.append(Declaration(
                kind=DeclarationKind.VARIABLE,
                name=decl.name.text,
                base_type=spec.base_type,
                line=decl.name.line,
                column=decl.name.column,
                file_path=self.file_path,
                is_pointer=is_pointer,
                is_const_qualified=is_pointer and spec.has_const,
                is_declared_const=decl.const_after_last_star if is_pointer else spec.has_const,
                is_array=decl.is_array,
                is_function_pointer=decl.is_function,
                qualifiers=tuple(spec.qualifiers),
                initializer=" ".join(t.text for t in decl.initializer),
                enclosing_function=enclosing,
                type_start=spec.type_start,
                type_end=spec.type_end,
            ))


def extract_declarations(tokens: Iterable[Token], file_path: str = "") -> List[Declaration]:
    """Convenience wrapper: extract all declarations from a token sequence."""
    return DeclarationExtractor(tokens, file_path).extract()
