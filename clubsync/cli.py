"""Command-line interface for running and inspecting clubsync.

Usage:
    clubsync serve                    # Run the webhook receiver
    clubsync watch learners.xlsx      # Monitor a spreadsheet and dispatch changes
    clubsync check learners.xlsx      # Parse once and report counters
    clubsync generate-key             # Print a fresh API key or HMAC secret

Environment variables:
    CLUBSYNC_EXCEL_FILE_PATH - Spreadsheet to monitor when no path is given
    CLUBSYNC_WEBHOOK_URL     - Destination for outbound change events
    CLUBSYNC_DATABASE_URL    - Optional async SQLAlchemy URL for the learner store
    CLUBSYNC_TENANT_ID       - School the imported learners belong to
    CLUBSYNC_REGISTRATION_URL - School server endpoint used by watch --register
    CLUBSYNC_CALLBACK_URL    - URL the school server should POST events to
    CLUBSYNC_LOG_LEVEL       - Log level (default: INFO)
"""

from __future__ import annotations

import asyncio
import contextlib
import sys
import threading
import typing as typ
from pathlib import Path

from cyclopts import App, Parameter

from clubsync.logging import configure_logging_from_env, get_logger, log_debug, log_info
from clubsync.models import Snapshot
from clubsync.spreadsheet import SpreadsheetReadError, read_snapshot
from clubsync.sync import (
    MonitorConfig,
    MonitorConfigError,
    MonitorStartError,
    SpreadsheetMonitor,
    SyncContext,
    SyncPipeline,
    diff_snapshots,
)
from clubsync.webhooks import (
    WebhookConfigError,
    WebhookDispatcher,
    WebhookDispatcherConfig,
    generate_api_key,
    register_webhook,
    unregister_webhook,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from clubsync.storage import SqlAlchemyLearnerStore

app = App(
    name="clubsync",
    help="Synchronize a learner spreadsheet with downstream systems",
    version="0.1.0",
)

logger = get_logger(__name__)

_STATUS_INTERVAL_S = 1.0


@contextlib.contextmanager
def _learner_store(
    database_url: str | None, tenant_id: str
) -> cabc.Iterator[SqlAlchemyLearnerStore | None]:
    if not database_url:
        yield None
        return

    from clubsync.storage import create_learner_store, init_learner_storage

    store, engine = create_learner_store(database_url, tenant_id=tenant_id)
    asyncio.run(init_learner_storage(engine))
    try:
        yield store
    finally:
        asyncio.run(engine.dispose())


@contextlib.contextmanager
def _callback_registration(
    registration_url: str, callback_url: str, secret: str
) -> cabc.Iterator[bool]:
    registered = register_webhook(registration_url, callback_url, secret=secret)
    try:
        yield registered
    finally:
        if registered:
            unregister_webhook(registration_url, callback_url)


@app.command
def serve() -> int:
    """Run the inbound webhook receiver with Granian.

    Returns:
        Exit code (0 for success, non-zero for failure).

    """
    from clubsync.runtime import main as run_receiver

    run_receiver()
    return 0


@app.command
def watch(
    path: Path | None = None,
    *,
    database_url: typ.Annotated[
        str | None, Parameter(env_var="CLUBSYNC_DATABASE_URL")
    ] = None,
    tenant_id: typ.Annotated[str, Parameter(env_var="CLUBSYNC_TENANT_ID")] = "default",
    actor: typ.Annotated[str | None, Parameter(env_var="CLUBSYNC_ACTOR")] = None,
    webhooks: bool = True,
    register: bool = False,
    registration_url: typ.Annotated[
        str | None, Parameter(env_var="CLUBSYNC_REGISTRATION_URL")
    ] = None,
    callback_url: typ.Annotated[
        str | None, Parameter(env_var="CLUBSYNC_CALLBACK_URL")
    ] = None,
) -> int:
    """Monitor a spreadsheet and forward every change until interrupted.

    Args:
        path: Spreadsheet to monitor (defaults to CLUBSYNC_EXCEL_FILE_PATH).
        database_url: Async SQLAlchemy URL for the learner store.
        tenant_id: School the imported learners belong to.
        actor: Identifier recorded with import attempts.
        webhooks: Dispatch change events to CLUBSYNC_WEBHOOK_URL.
        register: Register callback_url with the school server while watching.
        registration_url: School server endpoint that accepts registrations.
        callback_url: URL the school server should send its events to.

    Returns:
        Exit code (0 for success, non-zero for failure).

    """
    configure_logging_from_env()
    try:
        monitor_config = MonitorConfig.from_env(file_path=path)
        dispatcher_config = WebhookDispatcherConfig.from_env() if webhooks else None
    except (MonitorConfigError, WebhookConfigError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    if register and not (registration_url and callback_url):
        print(
            "Configuration error: --register needs CLUBSYNC_REGISTRATION_URL "
            "and CLUBSYNC_CALLBACK_URL",
            file=sys.stderr,
        )
        return 1

    dispatcher = WebhookDispatcher(dispatcher_config) if dispatcher_config else None
    with (
        dispatcher or contextlib.nullcontext(),
        _learner_store(database_url, tenant_id) as store,
    ):
        context = SyncContext(actor=actor, tenant_id=tenant_id, store=store)
        pipeline = SyncPipeline(context, dispatcher=dispatcher)
        monitor = SpreadsheetMonitor(
            monitor_config, context=context, on_changes=pipeline.handle_changes
        )
        try:
            monitor.start()
        except MonitorStartError as exc:
            print(f"Could not start monitor: {exc}", file=sys.stderr)
            return 1
        if not monitor.is_running:
            log_debug(logger, "Import not authorized for actor %s", context.actor)
            return 1

        registration = (
            _callback_registration(
                registration_url,
                callback_url,
                dispatcher_config.hmac_secret if dispatcher_config else "",
            )
            if register and registration_url and callback_url
            else contextlib.nullcontext()
        )
        idle = threading.Event()
        try:
            with registration:
                while not idle.wait(_STATUS_INTERVAL_S):
                    pass
        except KeyboardInterrupt:
            log_info(logger, "Interrupted, stopping monitor")
        finally:
            monitor.stop()
    return 0


@app.command
def check(path: Path) -> int:
    """Parse a spreadsheet once and report what a first sync would do.

    Args:
        path: Spreadsheet to parse.

    Returns:
        Exit code (0 when the file could be read, 1 otherwise).

    """
    try:
        parsed = read_snapshot(path)
    except SpreadsheetReadError as exc:
        print(f"Could not read {path}: {exc}", file=sys.stderr)
        return 1

    result = diff_snapshots(
        Snapshot.empty(), parsed.snapshot, parsed_duplicates=parsed.duplicate_records
    )
    print(
        f"{path}: {parsed.total_rows} rows, {parsed.valid_records} records, "
        f"{parsed.duplicate_records} duplicates, {parsed.skipped_rows} skipped"
    )
    if parsed.duplicate_keys:
        print(f"Duplicate admission numbers: {', '.join(parsed.duplicate_keys)}")
    print(f"First sync: {result.summary()}")
    return 0


@app.command(name="generate-key")
def generate_key() -> int:
    """Print a random key suitable for the API key or HMAC secret.

    Returns:
        Exit code (always 0).

    """
    print(generate_api_key())
    return 0


def main() -> int:
    """Entry point for the CLI."""
    return app()


if __name__ == "__main__":
    sys.exit(main())
