from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import jsonschema
import yaml

from .resources import contracts_schemas_dir


@dataclass(frozen=True)
class SchemaRef:
    name: str
    path: Path
    schema: Dict[str, Any]


class ContractStore:
    """
    Loads `contracts/schemas/*.json` and provides validation helpers.

    Notes:
    - Schemas are self-contained (no cross-file $ref), so each validator is built from its own schema.
    - Validators are cached per schema name.
    """

    def __init__(self, schemas_dir: Path):
        self._schemas_dir = schemas_dir
        self._schemas: Dict[str, SchemaRef] = {}
        self._validators: Dict[str, jsonschema.Draft202012Validator] = {}

    @property
    def schemas_dir(self) -> Path:
        return self._schemas_dir

    def load(self) -> None:
        if not self._schemas_dir.exists():
            raise FileNotFoundError(str(self._schemas_dir))

        for p in sorted(self._schemas_dir.glob("*.json")):
            schema = json.loads(p.read_text(encoding="utf-8"))
            self._schemas[p.name] = SchemaRef(name=p.name, path=p, schema=schema)
        self._validators.clear()

    def list_schema_names(self) -> List[str]:
        return sorted(self._schemas.keys())

    def _get(self, schema_name: str) -> SchemaRef:
        ref = self._schemas.get(schema_name)
        if ref is None:
            raise KeyError(schema_name)
        return ref

    def _validator(self, schema_name: str) -> jsonschema.Draft202012Validator:
        v = self._validators.get(schema_name)
        if v is None:
            v = jsonschema.Draft202012Validator(self._get(schema_name).schema)
            self._validators[schema_name] = v
        return v

    def check_schemas(self) -> List[Tuple[str, str]]:
        """
        Returns a list of (schema_name, error_message) for invalid schemas.
        """
        errors: List[Tuple[str, str]] = []
        for name in self.list_schema_names():
            ref = self._get(name)
            try:
                jsonschema.Draft202012Validator.check_schema(ref.schema)
            except jsonschema.SchemaError as e:
                errors.append((name, e.message))
        return errors

    def validate(self, schema_name: str, instance: Any) -> List[str]:
        """
        Validates an instance and returns a list of error strings (empty means valid).
        """
        validator = self._validator(schema_name)
        return [e.message for e in sorted(validator.iter_errors(instance), key=str)]

    def validate_json_file(self, schema_name: str, path: Path) -> List[str]:
        instance = json.loads(path.read_text(encoding="utf-8"))
        return self.validate(schema_name, instance)

    def validate_yaml_file(self, schema_name: str, path: Path) -> List[str]:
        instance = yaml.safe_load(path.read_text(encoding="utf-8"))
        return self.validate(schema_name, instance)

    def validate_jsonl_file(self, schema_name: str, path: Path) -> List[str]:
        errors: List[str] = []
        with path.open("r", encoding="utf-8") as f:
            for i, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    obj = json.loads(line)
                except json.JSONDecodeError as e:
                    errors.append("line {}: invalid json: {}".format(i, e.msg))
                    continue
                for msg in self.validate(schema_name, obj):
                    errors.append("line {}: {}".format(i, msg))
        return errors


_SHIPPED: Optional[ContractStore] = None


def shipped_contracts() -> ContractStore:
    """
    The contract store for schemas shipped inside the package (loaded once).
    """
    global _SHIPPED
    if _SHIPPED is None:
        store = ContractStore(contracts_schemas_dir())
        store.load()
        _SHIPPED = store
    return _SHIPPED
