# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
import threading
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from inventory_sync.app import list_records, sync_inventory
from inventory_sync.config import configure_logging
from inventory_sync.domain.model import SourceKind

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from inventory_sync.domain.model import CanonicalRecord
    from inventory_sync.domain.reconciliation import RunResult

log = logging.getLogger(__name__)

type SignalHandler = Callable[[int, FrameType | None], None]


def _parse_kind(value: str) -> SourceKind:
    """Accept a kind by value (``"Cloud Flow"``) or by name (``cloud_flow``)."""

    normalized = value.strip()
    for kind in SourceKind:
        if normalized.casefold() in {kind.value.casefold(), kind.name.casefold()}:
            return kind
    choices = ", ".join(kind.name.lower() for kind in SourceKind)
    raise argparse.ArgumentTypeError(f"Unknown source kind {value!r} (choose from {choices})")


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile Power Platform inventory")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log at DEBUG level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Reconcile every scope into the record store")
    sync.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Number of scopes reconciled concurrently (defaults to config)",
    )
    sync.add_argument(
        "--only",
        action="append",
        default=[],
        metavar="NAME",
        help="Only reconcile environments whose display name contains NAME (repeatable)",
    )
    sync.add_argument(
        "--skip-kind",
        action="append",
        type=_parse_kind,
        default=[],
        metavar="KIND",
        help="Do not fetch records of KIND (repeatable)",
    )
    sync.add_argument(
        "--no-global",
        action="store_true",
        help="Skip the tenant-wide governance pass",
    )

    records = subparsers.add_parser("records", help="List stored records")
    records.add_argument(
        "--scope",
        type=str,
        help="Only list records of this scope key",
    )
    records.add_argument(
        "--kind",
        type=_parse_kind,
        help="Only list records of this source kind",
    )

    return parser.parse_args(list(argv))


def _validate(args: argparse.Namespace) -> None:
    if args.command == "sync" and args.max_workers is not None and args.max_workers < 1:
        raise ValueError("--max-workers must be at least 1")


def _format_record(record: CanonicalRecord) -> str:
    return "\t".join(
        (
            str(record.record_key),
            record.scope_key,
            record.kind.value,
            record.display_name,
            record.state,
            record.health.value,
        )
    )


def _report(result: RunResult) -> int:
    for outcome in result.passes:
        if outcome.clean:
            continue
        log.warning(
            "Scope %s finished with issues: state=%s, feed_failures=%s, upsert_failures=%d, "
            "purge_failures=%d, error=%s",
            outcome.scope_key,
            outcome.state,
            [failure.kind.value for failure in outcome.feed_failures],
            len(outcome.upsert_failures),
            len(outcome.purge_failures),
            outcome.error,
        )
    if result.enumeration_error is not None:
        log.error("Scope enumeration failed: %s", result.enumeration_error)
    if result.cancelled:
        log.info("Run cancelled; skipped %d scopes", len(result.skipped_scopes))
    return 0 if result.clean else 1


def sigint_handler(stop: threading.Event) -> SignalHandler:
    """Build a SIGINT handler that requests a graceful stop, then exits on a second press."""

    def _handle(_signal_received: int, _frame: FrameType | None) -> None:
        if stop.is_set():
            log.info("Closed by user (Ctrl+C)")
            sys.exit(130)
        log.info("Stopping after the running scope passes (Ctrl+C again to abort)")
        stop.set()

    return _handle


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        _validate(parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    exit_code = 0
    try:
        if parsed_args.command == "sync":
            stop = threading.Event()
            signal(SIGINT, sigint_handler(stop))
            result = sync_inventory(
                max_workers=parsed_args.max_workers,
                only=parsed_args.only,
                skip_kinds=parsed_args.skip_kind,
                include_global=not parsed_args.no_global,
                stop=stop,
            )
            exit_code = _report(result)
        elif parsed_args.command == "records":
            for record in list_records(scope_key=parsed_args.scope, kind=parsed_args.kind):
                print(_format_record(record))
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
