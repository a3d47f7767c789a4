"""
KEYSTONE CONTRACT VALIDATOR - Given/When/Then Scenarios

Per node:
- E100  contract without a name
- E103  two contracts in one node share a name
- E101  empty step text
- E104  contract without any step

Across the graph (validate_all):
- E102  a step mentions @some/node that does not exist
"""
from typing import Iterable, List, Optional

from core.scenarios import parse_contract
from core.schemas import Diagnostic, NodeData
from infrastructure.diagnostics import Collector
from infrastructure.suggestions import Suggester
from validation.base import NodeValidator, where


class ContractValidator(NodeValidator):

    name = "contracts"

    def __init__(self, suggester: Optional[Suggester] = None):
        super().__init__()
        self.suggester = suggester or Suggester()

    def validate(self, node: NodeData, collector: Collector) -> None:
        seen = set()
        for i, contract in enumerate(node.contracts):
            path = f"contracts[{i}]"
            if not contract.name.strip():
                collector.add(Diagnostic(
                    code="E100",
                    summary="Contract has no name" + where(node, f"contract {i}"),
                    detail=f"in node {node.id}, contract at index {i}: name is required",
                    location=self.locate(node, path),
                ))
            elif contract.name in seen:
                collector.add(Diagnostic(
                    code="E103",
                    summary=f"Duplicate contract name: {contract.name}" + where(node, f"contract {i}"),
                    detail=f"in node {node.id}, contract at index {i}: names must be unique within a node",
                    location=self.locate(node, f"{path}.name", path),
                ))
            seen.add(contract.name)

            label = contract.name or f"#{i}"
            steps = (("given", contract.given), ("when", contract.when), ("then", contract.then))
            if not any(texts for _, texts in steps):
                collector.add(Diagnostic(
                    code="E104",
                    summary=f"Contract has no steps: {label}" + where(node),
                    detail=f'in node {node.id}, contract "{label}": add given, when or then steps',
                    location=self.locate(node, path),
                ))
                continue

            for step_type, texts in steps:
                for j, text in enumerate(texts):
                    if text.strip():
                        continue
                    collector.add(Diagnostic(
                        code="E101",
                        summary=f"Empty contract step: {label} {step_type} {j + 1}" + where(node),
                        detail=f'in node {node.id}, contract "{label}", {step_type} step {j + 1}: step text is empty',
                        location=self.locate(node, f"{path}.{step_type}[{j}]", path),
                    ))

    def validate_all(self, nodes: Iterable[NodeData], collector: Collector) -> None:
        nodes = list(nodes)
        known: List[str] = [n.id for n in nodes if n.id]
        known_set = set(known)

        for node in nodes:
            self.validate(node, collector)
            for i, contract in enumerate(node.contracts):
                scenario = parse_contract(contract)
                for ref in scenario.node_refs():
                    if ref in known_set:
                        continue
                    best = self.suggester.best(ref, known)
                    collector.add(Diagnostic(
                        code="E102",
                        summary=f"Unknown node reference in contract: @{ref}" + where(node, f"contract {contract.name or i}"),
                        detail=f'in node {node.id}, contract "{contract.name or i}": node "{ref}" does not exist',
                        location=self.locate(node),
                        suggestion=f"Did you mean '@{best}'?" if best else "",
                    ))
