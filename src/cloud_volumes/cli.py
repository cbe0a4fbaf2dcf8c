"""
Command-line entry point.

Runs one lifecycle action for a named volume, persisting the resulting
state between runs:

    cloud-volumes create data --size 10 --max-snapshots 5
    cloud-volumes attach data
    cloud-volumes snapshot data --snapshot-name nightly
    cloud-volumes cleanup data
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .client.base import CloudVolumeClient
from .client.rightscale import RightScaleClient
from .config import VolumeConfig
from .controller import ACTIONS, VolumeLifecycleController
from .errors import VolumeError
from .state import StateStore
from .types import ActionResult, VolumeSpec, VolumeState
from .utils.logger import configure_logging

logger = logging.getLogger(__name__)


def _parse_options(pairs: List[str]) -> Dict[str, str]:
    options = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Invalid option '{pair}', expected KEY=VALUE")
        options[key] = value
    return options


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Manage the lifecycle of a cloud block-storage volume",
        prog="cloud-volumes"
    )
    parser.add_argument("action", choices=ACTIONS, help="Lifecycle action to run")
    parser.add_argument("name", help="Volume name")
    parser.add_argument("--size", type=int, default=1, help="Volume size in GB (default: 1)")
    parser.add_argument("--description", default=None, help="Volume description")
    parser.add_argument("--snapshot-id", default=None, help="Create the volume from this snapshot")
    parser.add_argument("--snapshot-name", default=None, help="Name of the snapshot to take")
    parser.add_argument("--max-snapshots", type=int, default=None, help="Snapshots to keep on cleanup")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Deadline for the action in minutes (default: from config)"
    )
    parser.add_argument(
        "--option",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Provider-specific option (repeatable), e.g. volume_type=SSD"
    )
    parser.add_argument("--config", default=None, help="YAML or JSON config file")
    parser.add_argument("--state-file", default=None, help="Persisted state file (default: from config)")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["debug", "info", "warning", "error"],
        help="Logging level"
    )
    return parser


async def run_action(
    action: str,
    spec: VolumeSpec,
    current: VolumeState,
    config: VolumeConfig,
    client: Optional[CloudVolumeClient] = None,
) -> ActionResult:
    """Run one action with a client built from ``config`` unless one is given."""
    client = client or RightScaleClient.from_config(config)
    try:
        controller = VolumeLifecycleController(client, config=config)
        return await controller.run(action, spec, current)
    finally:
        await client.close()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the cloud-volumes command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = VolumeConfig.load(args.config)
        options: Dict[str, Any] = _parse_options(args.option)
        spec = VolumeSpec(
            name=args.name,
            size=args.size,
            description=args.description,
            snapshot_id=args.snapshot_id,
            snapshot_name=args.snapshot_name,
            max_snapshots=args.max_snapshots,
            timeout_minutes=args.timeout or config.default_timeout_minutes,
            options=options,
        )
    except (OSError, ValueError, argparse.ArgumentTypeError) as e:
        parser.error(str(e))

    configure_logging(level=args.log_level or config.log_level)

    store = StateStore(args.state_file or config.state_file)

    try:
        current = store.load(spec.name)
        result = asyncio.run(run_action(args.action, spec, current, config))
    except VolumeError as e:
        logger.error(f"Action '{args.action}' on volume '{spec.name}' failed: {e}")
        if e.partial_state is not None and e.partial_state.exists:
            store.save(spec.name, e.partial_state)
        print(json.dumps({"error": e.error_code, "message": e.message, "details": e.details}, default=str))
        return 1

    if result.state is not None and result.state.exists:
        store.save(spec.name, result.state)
    else:
        store.delete(spec.name)
    print(json.dumps(result.to_dict(), default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
