"""
Style Checker — the rule engine.

Runs the pipeline for one source text:

    text → tokens → declarations → violations

Only LexError escapes; extraction and rule evaluation are best-effort.
The checker holds nothing but its immutable policy, so one instance may be
shared across files and threads.
"""

import logging
from typing import List, Optional, Sequence

from barrc.declarations import Declaration, extract_declarations
from barrc.policy import StylePolicy
from barrc.rules import Rule, RuleContext, Violation, get_all_rules
from barrc.tokenizer import Token, tokenize
from barrc.write_analysis import PointerWriteAnalyzer

logger = logging.getLogger(__name__)


class StyleChecker:
    """Apply the enabled BARR-C rules to C source."""

    def __init__(self, policy: Optional[StylePolicy] = None):
        self.policy = policy or StylePolicy()

    @property
    def rules(self) -> List[Rule]:
        """Enabled rules in catalog order."""
        return [r for r in get_all_rules().values() if self.policy.is_enabled(r.code)]

    def check_source(self, source: str, file_path: str = "") -> List[Violation]:
        """Check C source text.  Raises LexError on unterminated comments/literals."""
        tokens = tokenize(source, file_path).to_list()
        declarations = extract_declarations(tokens, file_path)
        return self.evaluate(declarations, tokens, source, file_path)

    def check_file(self, file_path: str) -> List[Violation]:
        """Read and check a C file.  I/O errors and LexError propagate."""
        with open(file_path, "r", encoding="utf-8", errors="replace") as f:
            source = f.read()
        return self.check_source(source, file_path)

    def evaluate(self, declarations: Sequence[Declaration], tokens: Sequence[Token] = (),
                 source: str = "", file_path: str = "") -> List[Violation]:
        """Run every enabled rule and return violations sorted by position."""
        written = None
        if self.policy.analyze_writes and source:
            written = PointerWriteAnalyzer().analyze(source)

        context = RuleContext(
            declarations=declarations,
            policy=self.policy,
            tokens=tokens,
            source=source,
            file_path=file_path,
            written_params=written,
        )

        violations: List[Violation] = []
        for rule in self.rules:
            try:
                violations.extend(rule.check(context))
            except Exception as e:
                logger.error("Rule %s failed on %s: %s", rule.code, file_path or "<source>", e)

        violations.sort(key=Violation.sort_key)
        logger.debug("%s: %d declarations, %d violations",
                     file_path or "<source>", len(declarations), len(violations))
        return violations
