"""
Pointer write-through analysis using tree-sitter.

Answers one question for the POINTER_CONST rule: which pointer parameters
does a function body modify the pointee of?  A parameter ``p`` counts as
written through when it is the target of

  • ``*p = …`` / ``*p += …`` / ``(*p)++``
  • ``p[i] = …`` / ``p[i]--``
  • ``p->field = …``
  • a call that passes ``p`` to a non-const parameter (or to an unknown
    callee — conservative)

Parse failures yield an empty result, which keeps the rule conservative.
"""

import logging
from typing import Dict, List, Optional, Set

import tree_sitter_c as tsc
from tree_sitter import Language, Parser, Node

logger = logging.getLogger(__name__)

C_LANGUAGE = Language(tsc.language())

# Standard library functions that never write through their pointer arguments
CONST_SAFE_FUNCS = frozenset({
    "printf", "fprintf", "sprintf", "snprintf", "puts", "fputs",
    "strlen", "strcmp", "strncmp", "memcmp", "strchr", "strstr",
    "fwrite", "sizeof", "assert", "free",
})

# Functions known to write through their first argument
WRITING_FUNCS = frozenset({
    "memcpy", "memmove", "memset", "strcpy", "strncpy", "strcat", "strncat",
    "fread", "fgets", "sscanf",
})


class PointerWriteAnalyzer:
    """Find pointer parameters that function bodies write through."""

    def __init__(self):
        self._parser = Parser(C_LANGUAGE)

    def analyze(self, source: str) -> Dict[str, Set[str]]:
        """Map each defined function name to its written-through pointer params."""
        try:
            data = source.encode("utf-8")
            tree = self._parser.parse(data)
        except Exception as e:
            logger.warning("Write analysis failed to parse source: %s", e)
            return {}

        result: Dict[str, Set[str]] = {}
        root = tree.root_node
        for fn_node in self._walk_type(root, "function_definition"):
            name = self._function_name(fn_node, data)
            if not name:
                continue
            params = self._pointer_params(fn_node, data)
            body = fn_node.child_by_field_name("body")
            if body is None or not params:
                result.setdefault(name, set())
                continue
            result.setdefault(name, set()).update(
                self._written_params(params, body, root, data)
            )
        return result

    # ────────────────────────────────────────────────────────────────
    #  Signature helpers
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def _inner_declarator(node: Node) -> Optional[Node]:
        # parenthesized_declarator has no "declarator" field, only its child
        if node.type == "parenthesized_declarator":
            return next((c for c in node.named_children if c.type != "ms_call_modifier"), None)
        return node.child_by_field_name("declarator")

    def _function_declarator(self, fn_node: Node) -> Optional[Node]:
        declarator = fn_node.child_by_field_name("declarator")
        while declarator is not None and declarator.type in ("pointer_declarator",
                                                             "parenthesized_declarator"):
            declarator = self._inner_declarator(declarator)
        if declarator is not None and declarator.type == "function_declarator":
            return declarator
        return None

    def _function_name(self, fn_node: Node, source: bytes) -> str:
        declarator = self._function_declarator(fn_node)
        if declarator is None:
            return ""
        name_node = declarator.child_by_field_name("declarator")
        if name_node is None or name_node.type != "identifier":
            return ""
        return self._node_text(name_node, source)

    def _param_declarations(self, fn_node: Node) -> List[Node]:
        declarator = self._function_declarator(fn_node)
        if declarator is None:
            return []
        param_list = declarator.child_by_field_name("parameters")
        if param_list is None:
            return []
        return [c for c in param_list.children if c.type == "parameter_declaration"]

    def _pointer_params(self, fn_node: Node, source: bytes) -> Set[str]:
        names = set()
        for param in self._param_declarations(fn_node):
            # Follow the declarator chain to the name: array sizes and the
            # parameter lists of function pointers hold other identifiers
            is_ptr = False
            node = param.child_by_field_name("declarator")
            while node is not None and node.type != "identifier":
                if node.type in ("pointer_declarator", "array_declarator", "function_declarator"):
                    is_ptr = True
                node = self._inner_declarator(node)
            if is_ptr and node is not None:
                names.add(self._node_text(node, source))
        return names

    # ────────────────────────────────────────────────────────────────
    #  Body analysis
    # ────────────────────────────────────────────────────────────────

    def _written_params(self, params: Set[str], body: Node, root: Node, source: bytes) -> Set[str]:
        written = set()
        for node in self._walk_all(body):
            if node.type != "identifier":
                continue
            name = self._node_text(node, source)
            if name not in params or name in written:
                continue
            if self._is_write_through(node):
                written.add(name)
            elif self._is_passed_as_nonconst_arg(node, root, source):
                written.add(name)
        return written

    def _is_write_through(self, node: Node) -> bool:
        """Check whether an identifier is dereferenced on the left of a write."""
        parent = node.parent
        if parent is None:
            return False

        # *p++ = … dereferences the post-incremented pointer
        if parent.type == "update_expression" and parent.parent is not None \
                and parent.parent.type == "pointer_expression":
            node, parent = parent, parent.parent

        target = None
        if parent.type == "pointer_expression" and parent.children \
                and parent.children[0].type == "*":
            target = parent
        elif parent.type == "subscript_expression" and parent.children \
                and parent.children[0] == node:
            target = parent
        elif parent.type == "field_expression" and parent.children \
                and parent.children[0] == node \
                and any(c.type == "->" for c in parent.children):
            target = parent
        if target is None:
            return False

        # Climb through parentheses and nested member / subscript access:
        # (*p).x = …, p->a.b = …, p[i][j] = …
        while target.parent is not None and target.parent.type in (
                "parenthesized_expression", "field_expression", "subscript_expression"):
            if target.parent.children and target.parent.children[0] != target \
                    and target.parent.type != "parenthesized_expression":
                break
            target = target.parent

        holder = target.parent
        if holder is None:
            return False
        if holder.type == "assignment_expression":
            return bool(holder.children) and holder.children[0] == target
        if holder.type == "update_expression":
            return True
        return False

    def _is_passed_as_nonconst_arg(self, node: Node, root: Node, source: bytes) -> bool:
        """Check if a pointer identifier is passed directly as a call argument.

        If the callee's matching parameter is not const-qualified, the pointer
        may be written through, so it is treated as a write.  Unknown callees
        are assumed to write.
        """
        arg_list = node.parent
        if arg_list is None or arg_list.type != "argument_list":
            return False
        call_expr = arg_list.parent
        if call_expr is None or call_expr.type != "call_expression":
            return False

        callee_node = call_expr.child_by_field_name("function")
        if callee_node is None:
            return True
        callee_name = self._node_text(callee_node, source)

        args = [c for c in arg_list.children if c.type not in (",", "(", ")")]
        arg_index = next((i for i, a in enumerate(args) if a == node), -1)

        if callee_name in WRITING_FUNCS:
            return arg_index == 0
        if callee_name in CONST_SAFE_FUNCS:
            return False

        callee_fn = self._find_function_node(root, callee_name, source)
        if callee_fn is None:
            return True
        params = self._param_declarations(callee_fn)
        if 0 <= arg_index < len(params):
            param = params[arg_index]
            if any(c.type == "type_qualifier" and self._node_text(c, source) == "const"
                   for c in param.children):
                return False
        return True

    # ────────────────────────────────────────────────────────────────
    #  Tree utilities
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def _node_text(node: Node, source: bytes) -> str:
        return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    @staticmethod
    def _walk_all(node: Node):
        stack = [node]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def _walk_type(self, node: Node, type_name: str):
        for n in self._walk_all(node):
            if n.type == type_name:
                yield n

    def _find_function_node(self, root: Node, name: str, source: bytes) -> Optional[Node]:
        for fn_node in self._walk_type(root, "function_definition"):
            if self._function_name(fn_node, source) == name:
                return fn_node
        return None
