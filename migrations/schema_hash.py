"""
KEYSTONE SCHEMA FINGERPRINT

A short hash of the configured schema: custom block types (the effective
required and optional field sets, typed `fields` included) and per-kind
schema rules. The fingerprint stored in
the config (`schema_version`) is compared with the freshly computed one to
decide whether nodes need migrating.

Properties:
- Key order and field-list order in the config do not matter
- Any change to a field set changes the fingerprint
- A project with neither block types nor rules has the empty fingerprint
"""
import hashlib
from typing import Any, Dict

import msgspec

from core.schemas import ProjectConfig

FINGERPRINT_LENGTH = 16

_canonical_encoder = msgspec.json.Encoder(order="sorted")


def canonical_schema(config: ProjectConfig) -> Dict[str, Any]:
    """The schema subset of a config, with every list sorted."""
    return {
        "custom_block_types": {
            name: {
                "optional_fields": sorted(bt.effective_optional()),
                "required_fields": sorted(bt.effective_required()),
            }
            for name, bt in config.custom_block_types.items()
        },
        "schema_rules": {
            kind: {"required_fields": sorted(rule.required_fields)}
            for kind, rule in config.schema_rules.items()
        },
    }


def compute_schema_fingerprint(config: ProjectConfig) -> str:
    """16 hex characters (first 64 bits of SHA-256), or "" for no schema."""
    if not config.custom_block_types and not config.schema_rules:
        return ""
    encoded = _canonical_encoder.encode(canonical_schema(config))
    return hashlib.sha256(encoded).hexdigest()[:FINGERPRINT_LENGTH]


def schema_version_matches(config: ProjectConfig) -> bool:
    """True when the stored fingerprint equals the computed one."""
    return config.schema_version == compute_schema_fingerprint(config)
