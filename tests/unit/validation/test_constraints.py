"""
Unit tests for validation/constraints.py
"""
import pytest

from core.schemas import Constraint, NodeData
from infrastructure.diagnostics import Collector
from validation.constraints import ConstraintError, ConstraintValidator, matches_scope


def node_with(*constraints, **kwargs):
    kwargs.setdefault("kind", "mechanic")
    return NodeData.create(id=kwargs.pop("id", "mechanics/parry"), constraints=list(constraints), **kwargs)


def run(*nodes):
    collector = Collector()
    ConstraintValidator().validate_all(list(nodes), collector)
    return collector.errors()


@pytest.mark.parametrize("scope,node_id,kind,expected", [
    ("", "a", "k", True),
    ("all", "a", "k", True),
    ("mechanic", "a", "mechanic", True),
    ("mechanic", "a", "system", False),
    ("systems/*", "systems/combat", "k", True),
    ("systems/*", "systems/a/b", "k", False),
    ("systems/*", "items/sword", "k", False),
    ("*/sword", "items/sword", "k", True),
])
def test_matches_scope(scope, node_id, kind, expected):
    assert matches_scope(scope, NodeData.create(id=node_id, kind=kind)) is expected


def test_holding_constraint():
    assert run(node_with(Constraint(expr="size(tags) > 0"), tags=["core"])) == []


def test_violated_constraint():
    node = node_with(Constraint(expr="size(tags) > 0", message="Every mechanic needs a tag"))

    [diag] = run(node)

    assert diag.code == "E041"
    assert diag.summary == "Constraint violation: size(tags) > 0 (in mechanics/parry)"
    assert diag.detail == "Every mechanic needs a tag"


def test_node_fields_are_visible():
    node = node_with(
        Constraint(expr="status == 'draft' && version == 1"),
        Constraint(expr="kind == 'mechanic' && id.startsWith('mechanics/')"),
        Constraint(expr="'core' in tags"),
        tags=["core"],
    )
    assert run(node) == []


def test_out_of_scope_constraint_is_skipped():
    node = node_with(Constraint(expr="size(tags) > 0", scope="system"))
    assert run(node) == []


def test_compile_error_reported_and_run_continues():
    node = node_with(
        Constraint(expr="size(tags >"),
        Constraint(expr="version > 5", message="too young"),
    )

    diagnostics = run(node)

    assert [d.code for d in diagnostics] == ["E042", "E041"]
    assert diagnostics[0].summary.startswith("CEL expression error: size(tags >")


def test_non_boolean_result():
    [diag] = run(node_with(Constraint(expr="version + 1")))
    assert diag.code == "E042"
    assert "boolean" in diag.detail


def test_programs_are_cached():
    validator = ConstraintValidator()
    assert validator.program("version > 0") is validator.program("version > 0")


def test_evaluate_raises_constraint_error():
    with pytest.raises(ConstraintError):
        ConstraintValidator().evaluate(Constraint(expr="(("), node_with())
