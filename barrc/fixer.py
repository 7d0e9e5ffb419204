"""
Style Fixer — deterministic auto-fixes for BARR-C violations.

Only two kinds of violation are rewritten automatically:
  • TYPE_PRIMITIVE with a single unambiguous stdint.h replacement
  • NAMING_FUNCTION, renaming every identifier token of the old name

Variable renames, platform-dependent widths and const correctness need a
human decision and are left alone.

Edits are {start, end, text} character ranges applied bottom-up so earlier
offsets stay valid; overlapping edits are skipped.
"""

import re
import logging
from typing import Dict, List, Sequence, Tuple

from barrc.declarations import extract_declarations
from barrc.rules import (
    RULE_FUNCTION_NAMING, RULE_PRIMITIVE_TYPES, Violation, get_rule,
    is_unambiguous_replacement, stdint_replacement,
)
from barrc.tokenizer import TokenKind, tokenize

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_STDINT_INCLUDE = "#include <stdint.h>"


class StyleFixer:
    """Propose and apply source edits for fixable violations."""

    # types first: renames never touch type tokens, so order is stable
    FIX_ORDER = (RULE_PRIMITIVE_TYPES, RULE_FUNCTION_NAMING)

    def propose_edits(self, violations: Sequence[Violation], source: str,
                      file_path: str = "") -> List[Dict]:
        """Build edits for the fixable violations against ``source``."""
        tokens = tokenize(source, file_path).to_list()
        edits: List[Dict] = []

        type_violations = [v for v in violations if v.rule_code == RULE_PRIMITIVE_TYPES]
        if type_violations:
            declarations = extract_declarations(tokens, file_path)
            by_position = {(d.line, d.column): d for d in declarations}
            seen_spans = set()
            for v in type_violations:
                decl = by_position.get((v.line, v.column))
                if decl is None or decl.type_start < 0:
                    continue
                replacement = stdint_replacement(decl.base_type)
                if not is_unambiguous_replacement(replacement):
                    continue
                span = (decl.type_start, decl.type_end)
                if span in seen_spans:
                    continue
                seen_spans.add(span)
                edits.append({
                    "start": decl.type_start,
                    "end": decl.type_end,
                    "text": replacement,
                    "violation": v,
                })

        renamed = set()
        for v in violations:
            if v.rule_code != RULE_FUNCTION_NAMING or v.symbol in renamed:
                continue
            if not v.suggestion or not _IDENTIFIER.match(v.suggestion):
                continue
            renamed.add(v.symbol)
            first = True
            for tok in tokens:
                if tok.kind is TokenKind.IDENTIFIER and tok.text == v.symbol:
                    edits.append({
                        "start": tok.offset,
                        "end": tok.end_offset,
                        "text": v.suggestion,
                        "violation": v if first else None,
                    })
                    first = False

        return edits

    @staticmethod
    def apply_edits(source: str, edits: Sequence[Dict]) -> Tuple[str, List[Dict]]:
        """Apply edits bottom-up; returns (new_source, applied_edits)."""
        sorted_edits = sorted(edits, key=lambda e: e["start"], reverse=True)
        last_start = float("inf")
        result = source
        applied = []
        for edit in sorted_edits:
            start, end = edit["start"], edit["end"]
            if end > last_start:
                logger.warning("Overlapping edit at offset %d-%d skipped", start, end)
                continue
            result = result[:start] + edit["text"] + result[end:]
            last_start = start
            applied.append(edit)
        return result, applied

    def apply_fixes(self, violations: Sequence[Violation], source: str,
                    file_path: str = "") -> Tuple[str, List[str]]:
        """Apply all auto-fixes; returns (fixed_source, descriptions of fixes)."""
        current = source
        fixed: List[str] = []
        types_fixed = False

        for code in self.FIX_ORDER:
            batch = [v for v in violations if v.rule_code == code]
            if not batch:
                continue
            edits = self.propose_edits(batch, current, file_path)
            current, applied = self.apply_edits(current, edits)
            rule = get_rule(code)
            if code == RULE_PRIMITIVE_TYPES and applied:
                types_fixed = True
            for edit in reversed(applied):
                v = edit.get("violation")
                if v is not None:
                    fixed.append(f"{v.file_path or file_path}:{v.line}:{v.column} - "
                                 f"Fixed: {rule.title} ({v.symbol})")

        if types_fixed:
            current = self.ensure_stdint_header(current)

        logger.info("Applied %d fix(es) to %s", len(fixed), file_path or "<source>")
        return current, fixed

    @staticmethod
    def ensure_stdint_header(source: str) -> str:
        """Add #include <stdint.h> after the last include when missing."""
        if re.search(r"^\s*#\s*include\s*<stdint\.h>", source, re.MULTILINE):
            return source

        lines = source.split("\n")
        last_include = -1
        for i, line in enumerate(lines):
            if line.lstrip().startswith("#include"):
                last_include = i

        if last_include >= 0:
            insert_at = last_include + 1
        else:
            insert_at = 0
            for i, line in enumerate(lines):
                stripped = line.strip()
                if stripped and not stripped.startswith(("//", "/*", "*")):
                    insert_at = i
                    break

        lines.insert(insert_at, _STDINT_INCLUDE)
        return "\n".join(lines)
