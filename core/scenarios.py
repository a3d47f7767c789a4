"""
KEYSTONE SCENARIOS - Parsed Contract Steps

A Contract stores its given/when/then steps as plain strings. This module
turns them into Step records and pulls out the @node references a step
mentions, e.g. "player uses @systems/combat" references "systems/combat".
"""
import re
from typing import List

import msgspec

from core.ontology import StepType
from core.schemas import Contract


NODE_REF_PATTERN = re.compile(r"@([a-zA-Z0-9_/.-]+)")


class Step(msgspec.Struct, kw_only=True, frozen=True):
    type: str                  # StepType.value
    text: str
    node_refs: List[str] = msgspec.field(default_factory=list)


class Scenario(msgspec.Struct, kw_only=True, frozen=True):
    name: str
    description: str = ""
    steps: List[Step] = msgspec.field(default_factory=list)

    def steps_of(self, step_type: StepType) -> List[Step]:
        return [s for s in self.steps if s.type == step_type.value]

    def node_refs(self) -> List[str]:
        """Unique @references across all steps, in first-seen order."""
        seen = []
        for step in self.steps:
            for ref in step.node_refs:
                if ref not in seen:
                    seen.append(ref)
        return seen


def extract_node_refs(text: str) -> List[str]:
    """
    Find @node references in step text.

    A trailing period is treated as sentence punctuation, not part of the ID.
    """
    refs = []
    for match in NODE_REF_PATTERN.finditer(text):
        ref = match.group(1).rstrip(".")
        if ref:
            refs.append(ref)
    return refs


def parse_contract(contract: Contract) -> Scenario:
    steps = []
    for step_type, texts in (
        (StepType.GIVEN, contract.given),
        (StepType.WHEN, contract.when),
        (StepType.THEN, contract.then),
    ):
        for text in texts:
            steps.append(Step(type=step_type.value, text=text, node_refs=extract_node_refs(text)))
    return Scenario(name=contract.name, description=contract.scenario, steps=steps)
