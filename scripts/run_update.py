"""
Run a manual multi-source update from CLI.
"""

from __future__ import annotations

import argparse
import json

from tcgsync.bootstrap import build_application
from tcgsync.logging_utils import configure_logging


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a manual multi-source data update.")
    parser.add_argument(
        "--source",
        dest="sources",
        action="append",
        default=None,
        help="Source key such as 'pricing.tcgplayer'; repeat for several. Omit to run every due source.",
    )
    parser.add_argument(
        "--list-sources",
        action="store_true",
        help="Print configured sources and exit.",
    )
    args = parser.parse_args()

    configure_logging()
    application = build_application()
    try:
        application.service.initialize()
        if args.list_sources:
            print(json.dumps(application.service.get_data_source_status(), indent=2))
            return 0

        outcome = application.service.trigger_manual_update(args.sources)
    finally:
        application.close()

    payload = {
        "success": outcome.success,
        "skipped": outcome.skipped,
        "run_id": outcome.run_id,
        "error": outcome.error,
        "results": {key: result.to_dict() for key, result in outcome.results.items()},
    }
    print(json.dumps(payload, indent=2))
    return 0 if outcome.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
