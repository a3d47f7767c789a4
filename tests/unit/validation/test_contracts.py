"""
Unit tests for validation/contracts.py
"""
from core.schemas import Contract, NodeData
from infrastructure.diagnostics import Collector
from validation.contracts import ContractValidator


def node_with(*contracts, node_id="systems/combat"):
    return NodeData.create(id=node_id, kind="system", contracts=list(contracts))


def run(*nodes):
    collector = Collector()
    ContractValidator().validate_all(list(nodes), collector)
    return collector.errors()


def test_valid_contract():
    node = node_with(Contract(name="attack", given=["a player"], when=["they attack"], then=["damage is dealt"]))
    assert run(node) == []


def test_missing_name():
    [diag] = run(node_with(Contract(given=["x"])))
    assert diag.code == "E100"


def test_duplicate_names():
    diagnostics = run(node_with(Contract(name="a", given=["x"]), Contract(name="a", when=["y"])))
    assert [d.code for d in diagnostics] == ["E103"]


def test_contract_without_steps():
    [diag] = run(node_with(Contract(name="empty")))
    assert diag.code == "E104"
    assert diag.summary == "Contract has no steps: empty (in systems/combat)"


def test_empty_step_text():
    [diag] = run(node_with(Contract(name="attack", given=["ok"], then=["fine", "  "])))
    assert diag.code == "E101"
    assert diag.summary == "Empty contract step: attack then 2 (in systems/combat)"


def test_unknown_node_reference():
    nodes = [
        node_with(Contract(name="attack", given=["a player with @items/swrod."], then=["@systems/combat resolves"])),
        NodeData.create(id="items/sword", kind="item"),
    ]

    [diag] = run(*nodes)

    assert diag.code == "E102"
    assert diag.summary == "Unknown node reference in contract: @items/swrod (in systems/combat, contract attack)"
    assert diag.suggestion == "Did you mean '@items/sword'?"


def test_same_unknown_reference_in_two_nodes():
    diagnostics = run(
        node_with(Contract(name="c", given=["@ghost"]), node_id="a"),
        node_with(Contract(name="c", given=["@ghost"]), node_id="b"),
    )
    assert [d.code for d in diagnostics] == ["E102", "E102"]


def test_single_node_check_skips_references():
    collector = Collector()
    ContractValidator().validate(node_with(Contract(name="c", given=["@ghost"])), collector)
    assert not collector.has_errors()
