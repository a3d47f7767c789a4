"""
Unit tests for validation/crossref.py
"""
from core.schemas import Block, BlockTypeConfig, Content, FieldDef, NodeData, RefConstraint, Section
from infrastructure.diagnostics import Collector
from validation.crossref import CrossRefValidator, collect_field_values


CUSTOM = {
    "item": BlockTypeConfig(required_fields=["name"]),
    "drop": BlockTypeConfig(
        required_fields=["item"],
        fields={
            "item": FieldDef(refs=[RefConstraint(block_type="item", field="name")]),
            "sources": FieldDef(refs=[
                RefConstraint(block_type="npc", field="name"),
                RefConstraint(block_type="chest", field="id"),
            ]),
        },
    ),
}


def node(node_id, *blocks):
    return NodeData.create(
        id=node_id,
        kind="k",
        content=Content(sections=[Section(name="Main", blocks=list(blocks))]),
    )


def item(name):
    return Block(type="item", data={"name": name})


def run(*nodes, custom=None):
    collector = Collector()
    CrossRefValidator(custom or CUSTOM).validate_all(list(nodes), collector)
    return collector.errors()


def test_collect_field_values():
    values = collect_field_values([node("a", item("sword"), item("shield"), Block(type="drop", data={"item": "sword", "n": 3}))])
    assert values["item.name"] == {"sword", "shield"}
    assert values["drop.item"] == {"sword"}
    assert "drop.n" not in values


def test_value_defined_in_another_node():
    assert run(node("items", item("sword")), node("loot", Block(type="drop", data={"item": "sword"}))) == []


def test_unknown_value_with_suggestion():
    [diag] = run(node("items", item("sword")), node("loot", Block(type="drop", data={"item": "swrod"})))

    assert diag.code == "E054"
    assert diag.summary == (
        'Cross-reference not found: drop block field "item" contains "swrod" which is not a known value '
        '(checked item.name) (in loot, section "Main", block 0)'
    )
    assert diag.suggestion == "Did you mean 'sword'?"


def test_any_target_satisfies_list_values():
    nodes = [
        node("world", Block(type="npc", data={"name": "goblin"}), Block(type="chest", data={"id": "c1"})),
        node("loot", Block(type="drop", data={"item": "x", "sources": ["goblin", "c1", "dragon"]})),
    ]

    diagnostics = run(*nodes)

    assert [d.summary.split('contains "')[1].split('"')[0] for d in diagnostics] == ["x", "dragon"]


def test_target_without_values_fails_everything():
    [diag] = run(node("loot", Block(type="drop", data={"item": "sword"})))
    assert diag.code == "E054"
    assert diag.suggestion == ""


def test_no_ref_fields_configured():
    custom = {"drop": BlockTypeConfig(required_fields=["item"])}
    assert run(node("loot", Block(type="drop", data={"item": "anything"})), custom=custom) == []
