"""
Style policy — which rules run and which naming conventions they enforce.

The Module_Action grammar is only loosely pinned down by BARR-C, so the
naming patterns are policy, not constants.  Patterns are matched against the
whole identifier.
"""

import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from barrc.rules import get_all_rules

# Module_Function: uppercase-led segments joined by single underscores
DEFAULT_FUNCTION_PATTERN = r"[A-Z][a-zA-Z0-9]*(_[A-Z][a-zA-Z0-9]*)+"
# snake_case data objects
DEFAULT_VARIABLE_PATTERN = r"[a-z][a-z0-9_]*"
# UPPER_SNAKE file-scope constants
DEFAULT_CONSTANT_PATTERN = r"[A-Z][A-Z0-9_]*"


class StylePolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled_rules: Optional[List[str]] = None      # None → every rule in the catalog
    function_pattern: str = DEFAULT_FUNCTION_PATTERN
    variable_pattern: str = DEFAULT_VARIABLE_PATTERN
    constant_pattern: str = DEFAULT_CONSTANT_PATTERN
    exempt_functions: List[str] = ["main"]
    analyze_writes: bool = False   # suppress POINTER_CONST when the body writes through

    @field_validator("function_pattern", "variable_pattern", "constant_pattern")
    @classmethod
    def _pattern_compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid naming pattern {value!r}: {e}") from e
        return value

    @field_validator("enabled_rules")
    @classmethod
    def _rules_known(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        known = get_all_rules()
        unknown = [code for code in value if code not in known]
        if unknown:
            raise ValueError(
                f"unknown rule code(s): {', '.join(unknown)}; "
                f"expected any of {', '.join(known)}"
            )
        return value

    def is_enabled(self, code: str) -> bool:
        return self.enabled_rules is None or code in self.enabled_rules
