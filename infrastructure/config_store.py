"""
KEYSTONE CONFIG STORE - Project Settings on Disk

Loads and saves <root>/.keystone/config.yaml as a ProjectConfig.

Block-type field definitions may name the values they draw from with a
`ref:` key, either as one object or as a list:

    custom_block_types:
      drop:
        required_fields: [item]
        fields:
          item:
            type: string
            ref: {block_type: item, field: name}

In memory this is always FieldDef.refs, a list.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Union

import msgspec
import yaml

from core.schemas import Diagnostic, Location, ProjectConfig, to_plain
from infrastructure.diagnostics import StoreError

logger = logging.getLogger(__name__)

CONFIG_DIR = ".keystone"
CONFIG_FILE = "config.yaml"


def _normalize_refs(data: Dict[str, Any]) -> None:
    for block_type in (data.get("custom_block_types") or {}).values():
        if not isinstance(block_type, dict):
            continue
        for field_def in (block_type.get("fields") or {}).values():
            if not isinstance(field_def, dict) or "ref" not in field_def:
                continue
            ref = field_def.pop("ref")
            if isinstance(ref, dict):
                field_def["refs"] = [ref]
            elif isinstance(ref, list):
                field_def["refs"] = ref
            elif ref is not None:
                raise TypeError(f"field 'ref' must be a mapping or a list, got {type(ref).__name__}")


def _denormalize_refs(data: Dict[str, Any]) -> None:
    for block_type in (data.get("custom_block_types") or {}).values():
        for field_def in (block_type.get("fields") or {}).values():
            refs = field_def.pop("refs", None)
            if refs:
                field_def["ref"] = refs[0] if len(refs) == 1 else refs


class YamlConfigStore:
    """
    File-based config store rooted at a project directory.

    Usage:
        store = YamlConfigStore("/path/to/project")
        config = store.load()
        nodes_dir = store.resolve_nodes_path(config)
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.path = self.root / CONFIG_DIR / CONFIG_FILE

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> ProjectConfig:
        """
        Raises:
            StoreError: E060 missing file, E066 bad YAML, E009 wrong field types
        """
        location = Location(file=str(self.path))
        if not self.path.exists():
            raise StoreError(Diagnostic(
                code="E060",
                summary="Config file not found",
                detail=f"No config at {self.path}",
                location=location,
                suggestion="Initialise the project first",
            ))
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise StoreError(Diagnostic(code="E066", summary="YAML parse error", detail=str(e), location=location)) from e

        data = to_plain(data) if data is not None else {}
        if not isinstance(data, dict):
            raise StoreError(Diagnostic(
                code="E067",
                summary="Invalid config format",
                detail="config must be a mapping",
                location=location,
            ))
        try:
            _normalize_refs(data)
            config = msgspec.convert(data, type=ProjectConfig)
        except (TypeError, msgspec.ValidationError) as e:
            raise StoreError(Diagnostic(code="E009", summary="Invalid field type", detail=str(e), location=location)) from e

        logger.debug("Loaded config from %s", self.path)
        return config

    def save(self, config: ProjectConfig) -> None:
        data = msgspec.to_builtins(config)
        _denormalize_refs(data)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.path.write_text(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8")
        except OSError as e:
            raise StoreError(Diagnostic(
                code="E062",
                summary="File write error",
                detail=str(e),
                location=Location(file=str(self.path)),
            )) from e
        logger.debug("Saved config to %s", self.path)

    def _resolve(self, configured: str) -> Path:
        path = Path(configured)
        return path if path.is_absolute() else self.root / path

    def resolve_nodes_path(self, config: ProjectConfig) -> Path:
        return self._resolve(config.nodes_path)

    def resolve_history_path(self, config: ProjectConfig) -> Path:
        return self._resolve(config.history_path)
