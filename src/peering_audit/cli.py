"""Command line front end for the peering audit."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

from peering_audit import __version__
from peering_audit.audit.walker import TopologyWalker, WalkResult, WalkTarget
from peering_audit.config import load_settings
from peering_audit.directory.errors import CredentialBootstrapError
from peering_audit.domain.models import ValidationRecord
from peering_audit.logging_utils import configure_logging
from peering_audit.utils.serialization import json_default

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="peering-audit",
        description=(
            "Validate that every declared VNet peering points at a remote VNet that "
            "exists and is visible to the caller."
        ),
    )
    parser.add_argument("--subscription", help="Subscription id of a single VNet to check")
    parser.add_argument("--resource-group", help="Resource group of the VNet to check")
    parser.add_argument("--vnet", help="Name of the VNet to check")
    parser.add_argument(
        "--location",
        action="append",
        default=None,
        help="Only scan VNets in this location (repeatable; exhaustive mode only)",
    )
    parser.add_argument("--format", choices=("json", "text"), default="text")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write one JSON record per peering to this file",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def target_from_args(
    args: argparse.Namespace,
    parser: argparse.ArgumentParser,
) -> WalkTarget | None:
    values = (args.subscription, args.resource_group, args.vnet)
    if not any(values):
        return None
    if not all(values):
        parser.error("--subscription, --resource-group and --vnet must be given together")
    return WalkTarget(
        account_id=args.subscription,
        resource_group=args.resource_group,
        container_name=args.vnet,
    )


def write_records(result: WalkResult, stream: TextIO) -> None:
    for record in result.records:
        stream.write(json.dumps(record.to_row(), default=json_default))
        stream.write("\n")


def render_json(result: WalkResult, include_records: bool = True) -> str:
    payload: dict[str, object] = {
        "summary": result.summary().as_dict(),
        "accounts_scanned": result.accounts_scanned,
        "containers_scanned": result.containers_scanned,
        "failures": result.failures,
    }
    if include_records:
        payload["records"] = [record.to_row() for record in result.records]
    return json.dumps(payload, indent=2, default=json_default)


def _labels(records: Iterable[ValidationRecord]) -> list[str]:
    return [f"  {r.source_container}:{r.peering_name}" for r in records]


def render_text(result: WalkResult, include_records: bool = True) -> str:
    summary = result.summary()
    lines: list[str] = []
    if include_records:
        for record in result.records:
            lines.append(
                f"{record.status.value:<13} {record.source_container} -> "
                f"{record.remote_account_id}/{record.remote_resource_group}/"
                f"{record.remote_container} ({record.peering_name}): "
                f"{record.outcome.message}"
            )
        if lines:
            lines.append("")

    lines.append(
        f"Scanned {result.accounts_scanned} subscriptions, "
        f"{result.containers_scanned} VNets, {summary.total} peerings "
        f"({summary.cross_account} cross-subscription)"
    )
    for status, count in summary.status_counts().items():
        lines.append(f"  {status:<13} {count}")

    if summary.gateway_dependencies:
        lines.append("Gateway transit dependencies (review before migration):")
        lines.extend(_labels(summary.gateway_dependencies))
    if summary.stale_candidates:
        lines.append("Stale link candidates (remote VNet not found):")
        lines.extend(_labels(summary.stale_candidates))
    if summary.needs_confirmation:
        lines.append("Needs manual cross-subscription confirmation:")
        lines.extend(_labels(summary.needs_confirmation))
    if result.failures:
        lines.append("Enumeration failures:")
        lines.extend(f"  {f.account_id} [{f.stage}]: {f.message}" for f in result.failures)
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    target = target_from_args(args, parser)

    try:
        settings = load_settings()
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_FATAL

    configure_logging(level_override="DEBUG" if args.verbose else None)

    from peering_audit.directory.azure import AzureResourceDirectory

    directory = AzureResourceDirectory.from_settings(settings)
    walker = TopologyWalker.from_settings(directory, settings, locations=args.location)

    try:
        result = asyncio.run(walker.walk(target))
    except CredentialBootstrapError as exc:
        logger.error("Aborting: %s", exc)
        return EXIT_FATAL

    include_records = args.output is None
    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with args.output.open("w", encoding="utf-8") as handle:
            write_records(result, handle)
        logger.info("Wrote %d records to %s", len(result.records), args.output)

    if args.format == "json":
        print(render_json(result, include_records=include_records))
    else:
        print(render_text(result, include_records=include_records))
    return EXIT_OK


def run_entrypoint() -> None:
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
