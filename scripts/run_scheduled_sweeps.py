import argparse
import json
import sys
from pathlib import Path

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description=(
            "Run the proposal expiry sweep, matured-funds release and notification retry "
            "against the configured sync ledger store. Every job judges time by the "
            "service clock."
        )
    )
    parser.add_argument(
        "--job",
        choices=["expire", "release", "notifications", "all"],
        default="all",
        help="Sweep to run.",
    )
    args = parser.parse_args(argv)

    from syncledger.api.observability import configure_logging
    from syncledger.api.persistence_profile import validate_persistence_profile_guardrails
    from syncledger.api.routers.runtime import (
        get_dispatcher,
        get_ledger_service,
        get_proposal_workflow_service,
    )

    configure_logging()
    validate_persistence_profile_guardrails()

    summary: dict[str, object] = {}
    if args.job in {"expire", "all"}:
        summary["expire"] = get_proposal_workflow_service().expire_overdue().model_dump(
            mode="json"
        )
    if args.job in {"release", "all"}:
        summary["release"] = get_ledger_service().release_matured_funds().model_dump(
            mode="json"
        )
    if args.job in {"notifications", "all"}:
        summary["notifications"] = get_dispatcher().retry_pending().model_dump(mode="json")
    print(json.dumps(summary, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
