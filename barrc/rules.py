"""
BARR-C Rule Catalog

Each rule is a plain value: stable code, metadata (title, severity,
category, rationale, compliant / non-compliant examples, fix strategy) and a
pure ``check`` function mapping a RuleContext to Violations.  Rules are
independent; the catalog order is the evaluation order.

Based on the Barr Group Embedded C Coding Standard:
  • Rule 6/7 naming — Module_Function() functions, snake_case data,
    UPPER_SNAKE file-scope constants
  • Rule 5.2 — fixed-width stdint.h types instead of imprecise primitives
  • Rule 8.2/1.7 — const-qualify pointers that are only read through
"""

import re
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Set
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

from barrc.declarations import Declaration, DeclarationKind
from barrc.tokenizer import Token

if TYPE_CHECKING:
    from barrc.policy import StylePolicy

logger = logging.getLogger(__name__)

RULE_FUNCTION_NAMING = "NAMING_FUNCTION"
RULE_VARIABLE_NAMING = "NAMING_VARIABLE"
RULE_CONSTANT_NAMING = "NAMING_CONSTANT"
RULE_PRIMITIVE_TYPES = "TYPE_PRIMITIVE"
RULE_CONST_POINTERS = "POINTER_CONST"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Violation(BaseModel):
    model_config = ConfigDict(frozen=True)

    rule_code: str
    message: str
    line: int
    column: int
    file_path: str = ""
    severity: Severity = Severity.WARNING
    symbol: str = ""            # offending identifier
    suggestion: str = ""

    def sort_key(self):
        return (self.line, self.column, self.rule_code)


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule may inspect for one source file."""
    declarations: Sequence[Declaration]
    policy: "StylePolicy"
    tokens: Sequence[Token] = ()
    source: str = ""
    file_path: str = ""
    written_params: Optional[Dict[str, Set[str]]] = None   # function → params written through

    def enclosing(self, decl: Declaration) -> Optional[Declaration]:
        idx = decl.enclosing_function
        if idx is None or not 0 <= idx < len(self.declarations):
            return None
        return self.declarations[idx]


@dataclass(frozen=True)
class Rule:
    code: str
    title: str
    severity: Severity
    category: str                   # "naming" | "types" | "safety"
    rationale: str
    non_compliant: str              # code example
    compliant: str                  # fixed code example
    fix_strategy: str
    check: Callable[[RuleContext], List[Violation]]


# ═══════════════════════════════════════════════════════════════════════
#  Suggestions
# ═══════════════════════════════════════════════════════════════════════

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def suggest_function_name(name: str) -> str:
    """Convert a name to Module_Function format."""
    if "_" in name.strip("_"):
        parts = [p for p in name.split("_") if p]
        return "_".join(p[:1].upper() + p[1:] for p in parts)
    bare = name.strip("_")
    return f"Module_{bare[:1].upper()}{bare[1:]}"


def suggest_variable_name(name: str) -> str:
    """Convert camelCase / PascalCase to snake_case."""
    snake = _CAMEL_BOUNDARY.sub("_", name).lower()
    snake = re.sub(r"_+", "_", snake).strip("_")
    return snake or name.lower()


def suggest_constant_name(name: str) -> str:
    return suggest_variable_name(name).upper()


# ═══════════════════════════════════════════════════════════════════════
#  Primitive type classification
# ═══════════════════════════════════════════════════════════════════════

_INTEGER_WORDS = frozenset({"unsigned", "signed", "char", "short", "int", "long"})
_PLATFORM_DEPENDENT = "depends on platform"

_STDINT_REPLACEMENTS = {
    ("unsigned", "char"): "uint8_t",
    ("signed", "char"): "int8_t",
    ("unsigned", "short"): "uint16_t",
    ("signed", "short"): "int16_t",
    ("", "short"): "int16_t",
    ("unsigned", "int"): "uint32_t",
    ("signed", "int"): "int32_t",
    ("", "int"): f"int16_t or int32_t ({_PLATFORM_DEPENDENT})",
    ("unsigned", "long"): f"uint32_t or uint64_t ({_PLATFORM_DEPENDENT})",
    ("signed", "long"): f"int32_t or int64_t ({_PLATFORM_DEPENDENT})",
    ("", "long"): f"int32_t or int64_t ({_PLATFORM_DEPENDENT})",
    ("unsigned", "long long"): "uint64_t",
    ("signed", "long long"): "int64_t",
    ("", "long long"): "int64_t",
    ("", "char"): "int8_t or uint8_t (choose the signedness the value needs)",
}

_INTEGER_LITERAL = re.compile(r"^[-+]?\s*(?:0[xX][0-9A-Fa-f]+|0[bB][01]+|\d+)[uUlL]*$")


def classify_primitive(base_type: str):
    """Return (signedness, width word) for an integer primitive, else None.

    ``unsigned long int`` → ("unsigned", "long"); ``uint8_t`` → None.
    """
    words = base_type.split()
    if not words or any(w not in _INTEGER_WORDS for w in words):
        return None
    signedness = "unsigned" if "unsigned" in words else ("signed" if "signed" in words else "")
    if "char" in words:
        width = "char"
    elif "short" in words:
        width = "short"
    elif words.count("long") >= 2:
        width = "long long"
    elif "long" in words:
        width = "long"
    else:
        width = "int"
    return signedness, width


def stdint_replacement(base_type: str) -> Optional[str]:
    """Recommended fixed-width type for a banned primitive, or None."""
    key = classify_primitive(base_type)
    if key is None:
        return None
    return _STDINT_REPLACEMENTS.get(key)


def is_unambiguous_replacement(replacement: Optional[str]) -> bool:
    """True when the replacement is a single type name safe to auto-apply."""
    return bool(replacement) and " " not in replacement


def _is_banned_primitive(decl: Declaration) -> bool:
    key = classify_primitive(decl.base_type)
    if key is None:
        return False
    if key == ("", "char"):
        # plain char is fine for text; only numeric storage is banned
        return (not decl.is_pointer and not decl.is_array
                and bool(_INTEGER_LITERAL.match(decl.initializer.strip())))
    return True


# ═══════════════════════════════════════════════════════════════════════
#  Checks
# ═══════════════════════════════════════════════════════════════════════

def _violation(ctx: RuleContext, rule: "Rule", decl: Declaration, message: str,
               suggestion: str = "") -> Violation:
    return Violation(
        rule_code=rule.code,
        message=message,
        line=decl.line,
        column=decl.column,
        file_path=ctx.file_path or decl.file_path,
        severity=rule.severity,
        symbol=decl.name,
        suggestion=suggestion,
    )


def _check_function_naming(ctx: RuleContext) -> List[Violation]:
    rule = get_rule(RULE_FUNCTION_NAMING)
    violations = []
    seen = set()
    for decl in ctx.declarations:
        if decl.kind is not DeclarationKind.FUNCTION:
            continue
        # prototype and definition share one name: report its first declaration
        if decl.name in seen:
            continue
        seen.add(decl.name)
        if decl.name in ctx.policy.exempt_functions:
            continue
        if re.fullmatch(ctx.policy.function_pattern, decl.name):
            continue
        suggestion = suggest_function_name(decl.name)
        violations.append(_violation(
            ctx, rule, decl,
            f"Function '{decl.name}' should use Module_Function format "
            f"(e.g. {suggestion})",
            suggestion,
        ))
    return violations


def _is_file_scope_constant(decl: Declaration) -> bool:
    return (decl.kind is DeclarationKind.VARIABLE and decl.is_file_scope
            and decl.is_declared_const)


def _check_variable_naming(ctx: RuleContext) -> List[Violation]:
    rule = get_rule(RULE_VARIABLE_NAMING)
    violations = []
    for decl in ctx.declarations:
        if decl.kind not in (DeclarationKind.VARIABLE, DeclarationKind.PARAMETER):
            continue
        if _is_file_scope_constant(decl):
            continue
        if re.fullmatch(ctx.policy.variable_pattern, decl.name):
            continue
        what = "Parameter" if decl.kind is DeclarationKind.PARAMETER else "Variable"
        suggestion = suggest_variable_name(decl.name)
        violations.append(_violation(
            ctx, rule, decl,
            f"{what} '{decl.name}' should use snake_case format (e.g. {suggestion})",
            suggestion,
        ))
    return violations


def _check_constant_naming(ctx: RuleContext) -> List[Violation]:
    rule = get_rule(RULE_CONSTANT_NAMING)
    violations = []
    for decl in ctx.declarations:
        if not _is_file_scope_constant(decl):
            continue
        if re.fullmatch(ctx.policy.constant_pattern, decl.name):
            continue
        suggestion = suggest_constant_name(decl.name)
        violations.append(_violation(
            ctx, rule, decl,
            f"Global constant '{decl.name}' should use UPPER_SNAKE format (e.g. {suggestion})",
            suggestion,
        ))
    return violations


def _check_primitive_types(ctx: RuleContext) -> List[Violation]:
    rule = get_rule(RULE_PRIMITIVE_TYPES)
    violations = []
    for decl in ctx.declarations:
        if decl.kind not in (DeclarationKind.VARIABLE, DeclarationKind.PARAMETER):
            continue
        if not _is_banned_primitive(decl):
            continue
        replacement = stdint_replacement(decl.base_type)
        if is_unambiguous_replacement(replacement):
            suggestion = f"Replace '{decl.base_type} {decl.name}' with '{replacement} {decl.name}'"
        else:
            suggestion = f"Replace '{decl.base_type} {decl.name}' with a fixed-width type ({replacement})"
        violations.append(_violation(
            ctx, rule, decl,
            f"'{decl.name}' uses type '{decl.base_type}'; use a fixed-width "
            f"stdint.h type instead ({replacement})",
            suggestion,
        ))
    return violations


def _parameter_slots(ctx: RuleContext):
    """Yield (function, (function name, position), parameter) for every parameter."""
    for index, decl in enumerate(ctx.declarations):
        if decl.kind is not DeclarationKind.PARAMETER:
            continue
        fn = ctx.enclosing(decl)
        if fn is None:
            yield None, None, decl
            continue
        # parameters directly follow their function, so the offset is the position
        yield fn, (fn.name, index - decl.enclosing_function), decl


def _written_slots(ctx: RuleContext) -> Set:
    """Parameter positions the function's definition writes through.

    Only definitions appear in written_params; a prototype shares the
    positions of its definition even when its parameter names differ.
    """
    if not ctx.policy.analyze_writes or ctx.written_params is None:
        return set()
    slots = set()
    for fn, slot, decl in _parameter_slots(ctx):
        if fn is not None and fn.is_definition \
                and decl.name in ctx.written_params.get(fn.name, ()):
            slots.add(slot)
    return slots


def _check_const_pointers(ctx: RuleContext) -> List[Violation]:
    rule = get_rule(RULE_CONST_POINTERS)
    violations = []
    written = _written_slots(ctx)
    seen = set()
    for fn, slot, decl in _parameter_slots(ctx):
        # const on a function pointer would qualify the callee's return type
        if not decl.is_pointer or decl.is_const_qualified or decl.is_function_pointer:
            continue
        if slot is not None:
            if slot in written or slot in seen:
                continue
            seen.add(slot)
        fn_name = fn.name if fn is not None else "<unknown>"
        violations.append(_violation(
            ctx, rule, decl,
            f"Pointer parameter '{decl.name}' of '{fn_name}' is not const-qualified; "
            f"use 'const {decl.base_type}*' when the pointee is only read",
            f"const {decl.base_type}* {decl.name}",
        ))
    return violations


# ═══════════════════════════════════════════════════════════════════════
#  Catalog
# ═══════════════════════════════════════════════════════════════════════

_RULES: Dict[str, Rule] = {}


def _add(rule: Rule):
    _RULES[rule.code] = rule


_add(Rule(
    code=RULE_FUNCTION_NAMING,
    title="Function Naming Convention",
    severity=Severity.ERROR,
    category="naming",
    rationale=(
        "Prefixing every function with the module it belongs to makes the "
        "owner of any call obvious at the call site and keeps the global "
        "namespace of a C program free of collisions."
    ),
    non_compliant="void initLED(void);",
    compliant="void LED_Init(void);",
    fix_strategy=(
        "Rename to Module_Action form: an uppercase-led module prefix, an "
        "underscore, then a PascalCase action (LED_Init, UART_SendByte). "
        "Rename every call site and prototype together."
    ),
    check=_check_function_naming,
))

_add(Rule(
    code=RULE_VARIABLE_NAMING,
    title="Variable Naming Convention",
    severity=Severity.ERROR,
    category="naming",
    rationale=(
        "Lowercase, underscore-separated names for data objects distinguish "
        "variables from functions, macros and constants at a glance."
    ),
    non_compliant="int ledPin = 13;",
    compliant="uint8_t led_pin = 13;",
    fix_strategy="Rename to snake_case (ledPin → led_pin) in the declaration and every use.",
    check=_check_variable_naming,
))

_add(Rule(
    code=RULE_CONSTANT_NAMING,
    title="Constant Naming Convention",
    severity=Severity.ERROR,
    category="naming",
    rationale=(
        "File-scope constants behave like macros to the reader; UPPER_SNAKE "
        "names flag them as read-only configuration values."
    ),
    non_compliant="const uint16_t maxSize = 100U;",
    compliant="const uint16_t MAX_SIZE = 100U;",
    fix_strategy="Rename the file-scope const object to UPPER_SNAKE (maxSize → MAX_SIZE).",
    check=_check_constant_naming,
))

_add(Rule(
    code=RULE_PRIMITIVE_TYPES,
    title="Stdint Type Usage",
    severity=Severity.ERROR,
    category="types",
    rationale=(
        "The width of char, short, int and long is compiler dependent.  "
        "Fixed-width stdint.h types make storage size and overflow behaviour "
        "portable and explicit."
    ),
    non_compliant="unsigned char brightness = 255;",
    compliant="uint8_t brightness = 255U;",
    fix_strategy=(
        "Replace the primitive with the fixed-width type of the intended "
        "width (unsigned char → uint8_t, short → int16_t).  For int and long "
        "choose the width the value range needs.  Include <stdint.h>."
    ),
    check=_check_primitive_types,
))

_add(Rule(
    code=RULE_CONST_POINTERS,
    title="Const Pointer Correctness",
    severity=Severity.WARNING,
    category="safety",
    rationale=(
        "A pointer parameter that is only read through should point to const. "
        "The qualifier documents read-only intent and lets the compiler reject "
        "accidental writes."
    ),
    non_compliant="void processData(uint8_t* data);",
    compliant="void Data_Process(const uint8_t* data);",
    fix_strategy=(
        "Add const to the pointed-to type (const uint8_t* data) unless the "
        "function writes through the pointer."
    ),
    check=_check_const_pointers,
))


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

def get_rule(code: str) -> Optional[Rule]:
    """Look up a single rule by its code (e.g. 'POINTER_CONST')."""
    return _RULES.get(code)


def get_all_rules() -> Dict[str, Rule]:
    """Return the whole catalog in evaluation order."""
    return dict(_RULES)


def format_rule_explanation(code: str) -> str:
    """Return a human-readable explanation of a rule."""
    rule = get_rule(code)
    if rule is None:
        return f"Unknown rule: {code}"

    return f"""## {rule.code} — {rule.title}
**Severity**: {rule.severity.value}  **Category**: {rule.category}

### Rationale
{rule.rationale}

### Non-Compliant Example
```c
{rule.non_compliant}
```

### Compliant Example
```c
{rule.compliant}
```

### How to Fix
{rule.fix_strategy}"""
