from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from .contract_store import ContractStore
from .resources import contracts_examples_dir, contracts_schemas_dir

# (example file, schema it must validate against)
SHIPPED_EXAMPLES: Tuple[Tuple[str, str], ...] = (
    ("compact_root.example.json", "compact_root.schema.json"),
    ("config.example.yml", "config.schema.json"),
    ("trace.sample.jsonl", "trace_event.schema.json"),
)


@dataclass(frozen=True)
class ContractReport:
    schema_errors: List[Tuple[str, str]]
    example_failures: List[Tuple[str, List[str]]]

    @property
    def ok(self) -> bool:
        return not self.schema_errors and not self.example_failures


def _validate_example(store: ContractStore, schema_name: str, path: Path) -> List[str]:
    if not path.exists():
        return ["missing example file: {}".format(path.name)]
    suffix = path.suffix.lower()
    if suffix == ".jsonl":
        return store.validate_jsonl_file(schema_name, path)
    if suffix in (".yml", ".yaml"):
        return store.validate_yaml_file(schema_name, path)
    return store.validate_json_file(schema_name, path)


def check_contracts(schemas_dir: Optional[Path] = None, examples_dir: Optional[Path] = None) -> ContractReport:
    """
    Check every schema is a valid Draft 2020-12 schema, then every shipped example against its schema.
    """
    store = ContractStore(schemas_dir or contracts_schemas_dir())
    store.load()
    schema_errors = store.check_schemas()
    if schema_errors:
        return ContractReport(schema_errors=schema_errors, example_failures=[])

    base = examples_dir or contracts_examples_dir()
    failures: List[Tuple[str, List[str]]] = []
    for example, schema_name in SHIPPED_EXAMPLES:
        errs = _validate_example(store, schema_name, base / example)
        if errs:
            failures.append((example, errs))
    return ContractReport(schema_errors=[], example_failures=failures)


def print_report(report: ContractReport) -> int:
    if report.schema_errors:
        print("Schema validation failed:")
        for name, err in report.schema_errors:
            print("- {}: {}".format(name, err))
        return 1
    for name, errs in report.example_failures:
        print("Example {} failed validation:".format(name))
        for e in errs:
            print("  - {}".format(e))
    if report.example_failures:
        return 1
    print("Contracts OK")
    return 0
