"""
KEYSTONE CONSTRAINT VALIDATOR - CEL Expressions on Nodes

Each node may declare constraints:

    constraints:
      - expr: "size(tags) > 0"
        message: "Every mechanic needs at least one tag"
        scope: mechanic

Scope selects the nodes a constraint applies to:
- "" or "all"                  every node
- an exact kind                "mechanic"
- a glob against the node ID   "systems/*" ('*' does not cross '/')

Expressions are evaluated with cel-python over read-only variables taken
from the node: id, kind, version, status, title, summary, tags,
emits_events, vocabulary.

Outcomes:
- true: nothing reported
- false: E041 with the constraint's message
- compile error, evaluation error or non-boolean result: E042, and the
  run continues with the next constraint
"""
import fnmatch
from typing import Any, Dict, Optional

import celpy
from celpy import celtypes
from celpy.celparser import CELParseError
from celpy.evaluation import CELEvalError

from core.schemas import Constraint, Diagnostic, NodeData
from infrastructure.diagnostics import Collector
from validation.base import NodeValidator, where


class ConstraintError(Exception):
    """A constraint expression could not be compiled or evaluated."""
    pass


def matches_scope(scope: str, node: NodeData) -> bool:
    if scope in ("", "all"):
        return True
    if scope == node.kind:
        return True
    if "*" in scope or "?" in scope:
        pattern_parts = scope.split("/")
        id_parts = node.id.split("/")
        if len(pattern_parts) != len(id_parts):
            return False
        return all(fnmatch.fnmatchcase(part, pat) for part, pat in zip(id_parts, pattern_parts))
    return False


def _string_list(values) -> celtypes.ListType:
    return celtypes.ListType([celtypes.StringType(v) for v in values])


def node_activation(node: NodeData) -> Dict[str, Any]:
    """CEL variables for one node."""
    return {
        "id": celtypes.StringType(node.id),
        "kind": celtypes.StringType(node.kind),
        "version": celtypes.IntType(node.version),
        "status": celtypes.StringType(node.status),
        "title": celtypes.StringType(node.title),
        "summary": celtypes.StringType(node.summary),
        "tags": _string_list(node.tags),
        "emits_events": _string_list(node.refs.emits_events),
        "vocabulary": _string_list(node.refs.vocabulary),
    }


class ConstraintValidator(NodeValidator):
    """Evaluates each node's own constraints. Compiled programs are cached by expression."""

    name = "constraints"

    def __init__(self, environment: Optional[celpy.Environment] = None):
        super().__init__()
        self.environment = environment or celpy.Environment()
        self._programs: Dict[str, Any] = {}

    def program(self, expr: str):
        """
        Raises:
            ConstraintError: if the expression does not compile
        """
        if expr not in self._programs:
            try:
                ast = self.environment.compile(expr)
                self._programs[expr] = self.environment.program(ast)
            except (CELParseError, CELEvalError) as e:
                raise ConstraintError(f"failed to compile CEL expression: {e}") from e
        return self._programs[expr]

    def evaluate(self, constraint: Constraint, node: NodeData) -> bool:
        """
        Raises:
            ConstraintError: on compile or evaluation failure, or a non-boolean result
        """
        program = self.program(constraint.expr)
        try:
            result = program.evaluate(node_activation(node))
        except (CELEvalError, TypeError, ValueError) as e:
            raise ConstraintError(f"failed to evaluate CEL expression: {e}") from e
        if isinstance(result, CELEvalError):
            raise ConstraintError(f"failed to evaluate CEL expression: {result}")
        if not isinstance(result, (bool, celtypes.BoolType)):
            raise ConstraintError("CEL expression did not evaluate to a boolean")
        return bool(result)

    def validate(self, node: NodeData, collector: Collector) -> None:
        for i, constraint in enumerate(node.constraints):
            if not matches_scope(constraint.scope, node):
                continue
            location = self.locate(node, f"constraints[{i}].expr", f"constraints[{i}]")
            try:
                holds = self.evaluate(constraint, node)
            except ConstraintError as e:
                collector.add(Diagnostic(
                    code="E042",
                    summary=f"CEL expression error: {constraint.expr}" + where(node),
                    detail=str(e),
                    location=location,
                ))
                continue
            if not holds:
                collector.add(Diagnostic(
                    code="E041",
                    summary=f"Constraint violation: {constraint.expr}" + where(node),
                    detail=constraint.message,
                    location=location,
                ))
