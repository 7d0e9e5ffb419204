"""
BARR-C Style Checker — MCP Server

Exposes the style checker to MCP clients (GitHub Copilot, Claude Desktop …):

  1. configure          — choose enabled rules, naming patterns, write analysis
  2. style_check        — check a .c/.h file or every C file under a directory
  3. style_check_source — check C source passed as text
  4. style_fix          — auto-fix deterministic violations and re-check
  5. list_rules         — list the rule catalog with enabled status
  6. explain_rule       — rationale, examples and fix strategy for a rule

Tools never raise; failures are returned as text.  A file with an
unterminated comment or literal is reported and the remaining files are
still checked.
"""

from mcp.server.fastmcp import FastMCP
import os
import sys
import logging
from typing import List, Tuple

# Ensure barrc is importable when run as a script
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from pydantic import ValidationError

from barrc.checker import StyleChecker
from barrc.fixer import StyleFixer
from barrc.policy import (
    DEFAULT_CONSTANT_PATTERN, DEFAULT_FUNCTION_PATTERN, DEFAULT_VARIABLE_PATTERN,
    StylePolicy,
)
from barrc.rules import Violation, format_rule_explanation, get_all_rules
from barrc.tokenizer import LexError

logger = logging.getLogger(__name__)

C_EXTENSIONS = (".c", ".h")

# ═══════════════════════════════════════════════════════════════════════
#  Server Setup
# ═══════════════════════════════════════════════════════════════════════

mcp = FastMCP("BARR-C Style Checker")

policy = StylePolicy()
checker = StyleChecker(policy)
fixer = StyleFixer()


def _collect_files(path: str) -> List[str]:
    """Return the C files named by ``path`` (a file or a directory tree)."""
    if os.path.isfile(path):
        return [path]
    files = []
    for root, dirs, names in os.walk(path):
        dirs.sort()
        for name in sorted(names):
            if name.endswith(C_EXTENSIONS):
                files.append(os.path.join(root, name))
    return files


def _format_violations(file_path: str, violations: List[Violation]) -> str:
    """Render one file's violations as `line:col severity [CODE] message`."""
    out = f"\n{file_path}:\n"
    for v in violations:
        out += f"  {v.line}:{v.column} {v.severity.value} [{v.rule_code}] {v.message}\n"
        if v.suggestion:
            out += f"    → {v.suggestion}\n"
    return out


def _check_paths(files: List[str]) -> Tuple[str, int, int, int]:
    """Check files; returns (report, total_violations, files_with_violations, errors)."""
    report = ""
    total = 0
    dirty = 0
    errors = 0
    for file_path in files:
        try:
            violations = checker.check_file(file_path)
        except LexError as e:
            errors += 1
            report += f"\nError checking {file_path}: {e}\n"
            continue
        except OSError as e:
            errors += 1
            logger.error("Cannot read %s: %s", file_path, e)
            report += f"\nError reading {file_path}: {e}\n"
            continue
        if violations:
            dirty += 1
            total += len(violations)
            report += _format_violations(file_path, violations)
    return report, total, dirty, errors


def _summary(total: int, dirty: int, errors: int) -> str:
    if total == 0 and errors == 0:
        return "\n✅ No style violations found. Code is BARR-C compliant."
    out = ""
    if total:
        out += f"\n⚠️  {total} violation(s) in {dirty} file(s)."
    if errors:
        out += f"\n❌ {errors} file(s) could not be analysed."
    return out


# ═══════════════════════════════════════════════════════════════════════
#  Tool 1 — Configure
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def configure(enabled_rules: str = "", function_pattern: str = "",
              variable_pattern: str = "", constant_pattern: str = "",
              analyze_writes: bool = False) -> str:
    """
    Reconfigure the style policy used by every subsequent check.

    Args:
        enabled_rules:    Comma-separated rule codes to run.  Empty = all rules.
                          Example: "NAMING_FUNCTION,POINTER_CONST"
        function_pattern: Regex a function name must fully match (Module_Action).
        variable_pattern: Regex a variable/parameter name must fully match.
        constant_pattern: Regex a file-scope const name must fully match.
        analyze_writes:   Skip POINTER_CONST for parameters the body writes through.
    """
    global policy, checker

    codes = [c.strip() for c in enabled_rules.split(",") if c.strip()]
    try:
        new_policy = StylePolicy(
            enabled_rules=codes or None,
            function_pattern=function_pattern or DEFAULT_FUNCTION_PATTERN,
            variable_pattern=variable_pattern or DEFAULT_VARIABLE_PATTERN,
            constant_pattern=constant_pattern or DEFAULT_CONSTANT_PATTERN,
            analyze_writes=analyze_writes,
        )
    except ValidationError as e:
        return f"Error: invalid configuration: {e}"

    policy = new_policy
    checker = StyleChecker(policy)
    active = ", ".join(r.code for r in checker.rules)
    return (
        f"Configuration updated.\n"
        f"Enabled rules: {active}\n"
        f"Pointer write analysis: {'on' if policy.analyze_writes else 'off'}"
    )


# ═══════════════════════════════════════════════════════════════════════
#  Tool 2 — Check files
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def style_check(path: str) -> str:
    """
    Check a C file, or every .c/.h file under a directory, for BARR-C compliance.

    Args:
        path: Absolute path to a .c/.h file or a directory.
    """
    if not os.path.exists(path):
        return f"Error: path not found: {path}"

    files = _collect_files(path)
    if not files:
        return "No C files found."

    report, total, dirty, errors = _check_paths(files)
    return report + _summary(total, dirty, errors)


# ═══════════════════════════════════════════════════════════════════════
#  Tool 3 — Check source text
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def style_check_source(source: str, filename: str = "<source>") -> str:
    """
    Check C source code passed directly as text.

    Args:
        source:   The C source code.
        filename: Name used when reporting positions.
    """
    try:
        violations = checker.check_source(source, filename)
    except LexError as e:
        return f"Error checking {filename}: {e}"
    if not violations:
        return _summary(0, 0, 0).strip()
    return (_format_violations(filename, violations) + _summary(len(violations), 1, 0)).strip()


# ═══════════════════════════════════════════════════════════════════════
#  Tool 4 — Auto-fix
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def style_fix(path: str, dry_run: bool = False) -> str:
    """
    Auto-fix deterministic violations (function names, stdint types) and
    report what remains.  Variable renames and const correctness need review.

    Args:
        path:    Absolute path to a .c/.h file or a directory.
        dry_run: Report the fixes without writing files.
    """
    if not os.path.exists(path):
        return f"Error: path not found: {path}"

    files = _collect_files(path)
    if not files:
        return "No C files found."

    out = ""
    total_fixed = 0
    for file_path in files:
        try:
            with open(file_path, "r", encoding="utf-8", errors="replace") as f:
                source = f.read()
            violations = checker.check_source(source, file_path)
        except (LexError, OSError) as e:
            out += f"\nError checking {file_path}: {e}\n"
            continue
        if not violations:
            continue

        fixed_source, fixed = fixer.apply_fixes(violations, source, file_path)
        if not fixed:
            continue
        total_fixed += len(fixed)

        if not dry_run:
            try:
                with open(file_path, "w", encoding="utf-8") as f:
                    f.write(fixed_source)
            except OSError as e:
                logger.error("Failed to write %s: %s", file_path, e)
                out += f"\nError writing {file_path}: {e}\n"
                continue

        out += f"\n{'Would fix' if dry_run else 'Fixed'} in {file_path}:\n"
        for line in fixed:
            out += f"  ✓ {line}\n"

    if dry_run:
        out += f"\n[Dry Run] {total_fixed} violation(s) can be fixed automatically.\n"
        return out.strip()

    report, total, dirty, errors = _check_paths(files)
    out += f"\n✅ Fixed {total_fixed} violation(s) automatically.\n"
    if total:
        out += "\nRemaining violations require manual review:\n" + report
    out += _summary(total, dirty, errors)
    return out.strip()


# ═══════════════════════════════════════════════════════════════════════
#  Tools 5, 6 — Rule catalog
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def list_rules() -> str:
    """List every BARR-C rule with its severity, category and enabled status."""
    out = "| Rule | Title | Severity | Category | Enabled |\n"
    out += "|------|-------|----------|----------|---------|\n"
    for code, rule in get_all_rules().items():
        enabled = "yes" if policy.is_enabled(code) else "no"
        out += f"| {code} | {rule.title} | {rule.severity.value} | {rule.category} | {enabled} |\n"
    return out


@mcp.tool()
def explain_rule(rule_code: str) -> str:
    """
    Explain a BARR-C rule: rationale, non-compliant and compliant examples,
    and how to fix it.

    Args:
        rule_code: Rule code, e.g. "NAMING_FUNCTION" or "POINTER_CONST".
    """
    return format_rule_explanation(rule_code.strip().upper())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    mcp.run()
