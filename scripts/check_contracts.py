from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from launchtidy.contract_checks import check_contracts, print_report  # noqa: E402


def main() -> int:
    contracts = ROOT / "launchtidy" / "contracts"
    report = check_contracts(contracts / "schemas", contracts / "examples")
    return print_report(report)


if __name__ == "__main__":
    raise SystemExit(main())
