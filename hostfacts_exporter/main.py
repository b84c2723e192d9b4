import json
import logging
import sys
from typing import Optional, Sequence

from .config import load_config
from .errors import ConfigurationError
from .runner import Runner

logger = logging.getLogger("hostfacts.main")


def setup_logging(debug: bool):
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        config = load_config(argv)
        setup_logging(config.debug)

        runner = Runner(config)
        outcome = runner.execute()
    except ConfigurationError as e:
        print(f"CONFIGURATION ERROR: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"FATAL ERROR: {e}", file=sys.stderr)
        return 1

    # stdout carries the emitted data when requested
    if config.emit_records or config.emit_table:
        payload = {}
        if outcome.records is not None:
            payload["records"] = [r.to_plain() for r in outcome.records]
        if outcome.table is not None:
            payload["table"] = outcome.table.to_dict()
        payload["failures"] = [f.to_dict() for f in outcome.execution.failures]
        json.dump(payload, sys.stdout, indent=2, default=str)
        sys.stdout.write("\n")
        logger.info(f"Run summary: {runner.report['summary']}")
    else:
        runner.print_summary(outcome)

    if outcome.all_failed:
        return 2
    return 0


def main_cli():
    sys.exit(main())


if __name__ == "__main__":
    main_cli()
