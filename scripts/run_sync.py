"""Run a single feed synchronization from the command line.

The run result is printed as JSON. The exit status is non-zero when the
feed could not be fetched, an item failed, or the run was truncated.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from feedsync.logging import configure_logging  # noqa: E402
from feedsync.tasks.sync import run_sync  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--deadline", type=float, default=None, help="Run budget in seconds")
    args = parser.parse_args(argv)

    configure_logging()
    result = run_sync(deadline=args.deadline)
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
