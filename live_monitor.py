"""
Live survey status monitor.

Startup: read the status sheet, resume from its latest "Last Updated" value,
fetch everything newer, merge, save, draw.
Then every few seconds: fetch what changed since the previous poll, merge it
into the table, save, redraw. A failed poll is logged and the next one runs
on schedule; polls never overlap because each one finishes before the wait
for the next starts.
"""

import threading
import time
from datetime import datetime

from rich.console import Console
from rich.table import Table

from errors import SurveyOpsError
from logger_config import get_logger
from plaza_lookup import known_state
from report_sync import (
    Column, FetchWindow, ReportSchema, extract_tracking_state, merge_rows, parse_timestamp,
)
from report_table import ReportTable, merge_header, read_report, write_report

logger = get_logger(__name__)

DEFAULT_SHEET = "Status"
MAX_DISPLAY_ROWS = 20


def _created_date(record):
    created = record.get("created_at")
    return created.strftime("%Y-%m-%d") if created else None


STATUS_SCHEMA = ReportSchema(
    columns=[
        Column("Plaza Name", lambda r: r.get("plaza_name"), "-"),
        Column("State", lambda r: known_state(r.get("plaza_name")), "-"),
        Column("Plaza Code", lambda r: r.get("plaza_code"), "-"),
        Column("Surveyor Name", lambda r: r.get("surveyor_name"), "-"),
        Column("Mobile Number", lambda r: r.get("mob_num"), "-"),
        Column("Pending", lambda r: r.get("pending"), 0),
        Column("Completed", lambda r: r.get("completed"), 0),
        Column("Latest Status", lambda r: r.get("latest_status"), "-"),
        Column("Created Date", _created_date, "-"),
        Column("Last Updated", lambda r: r.get("updated_at") or datetime.utcnow()),
        Column("documentId", lambda r: str(r["document_id"])),
    ],
    identity="documentId",
    timestamp="Last Updated",
)


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def render_status_table(rows, console, now=None, max_rows=MAX_DISPLAY_ROWS):
    """Redraw the whole terminal view: latest rows first, totals over every row."""
    now = now or datetime.now()
    ordered = sorted(
        rows,
        key=lambda row: parse_timestamp(row.get("Last Updated")) or datetime.min,
        reverse=True,
    )
    visible = ordered[:max_rows]

    table = Table(show_footer=False)
    for heading, justify in (
        ("Plaza Name", "left"), ("State", "left"), ("Plaza Code", "left"),
        ("Surveyor", "left"), ("Mobile", "left"), ("Pending", "right"),
        ("Completed", "right"), ("Latest Status", "left"), ("Last Updated", "left"),
    ):
        table.add_column(heading, justify=justify)

    for row in visible:
        updated = parse_timestamp(row.get("Last Updated"))
        table.add_row(
            str(row.get("Plaza Name") or "-"),
            str(row.get("State") or "-"),
            str(row.get("Plaza Code") or "-"),
            str(row.get("Surveyor Name") or "-"),
            str(row.get("Mobile Number") or "-"),
            str(_as_int(row.get("Pending"))),
            str(_as_int(row.get("Completed"))),
            str(row.get("Latest Status") or "-"),
            updated.strftime("%H:%M:%S") if updated else "-",
        )

    total_pending = sum(_as_int(row.get("Pending")) for row in rows)
    total_completed = sum(_as_int(row.get("Completed")) for row in rows)
    table.add_section()
    table.add_row("TOTAL", "", "", "", "", str(total_pending), str(total_completed), "", "", style="bold")

    console.clear()
    console.print(f"📊 Survey Status Monitor (Live) - {now:%Y-%m-%d %H:%M:%S}")
    console.print(f"Showing latest {len(visible)} of {len(rows)} entries")
    console.print(table)
    return total_pending, total_completed


class LiveMonitor:
    def __init__(self, store, path, sheet_name=DEFAULT_SHEET, interval=5.0,
                 excluded_surveyors=(), console=None, clock=datetime.utcnow):
        self.store = store
        self.path = path
        self.sheet_name = sheet_name
        self.interval = interval
        self.excluded_surveyors = tuple(excluded_surveyors)
        self.console = console or Console()
        self.clock = clock
        self.schema = STATUS_SCHEMA

        self.table = ReportTable(header=self.schema.column_names)
        self.since = None
        self.cycles = 0

    def _fetch(self, window):
        return self.store.status_by_assignment(window=window, excluded_surveyors=self.excluded_surveyors)

    def _validate_schema(self, table):
        """Raises SchemaError when the sheet lost its identity or timestamp column."""
        extract_tracking_state(table, self.schema)

    def _merge_and_save(self, records):
        incoming = [self.schema.shape(record) for record in records]

        # read-modify-write so columns added to the sheet by hand survive
        persisted = read_report(self.path, self.sheet_name)
        self._validate_schema(persisted)
        base = persisted if persisted is not None else self.table

        header = merge_header(base.header, self.schema.column_names)
        rows = merge_rows(base.rows, incoming, self.schema.identity)
        write_report(self.path, self.sheet_name, header, rows)
        self.table = ReportTable(header=header, rows=rows)

    def _render(self):
        """Redraw the table; returns (pending, completed) or None when drawing failed."""
        try:
            return render_status_table(self.table.rows, self.console)
        except Exception as e:
            # a broken terminal must not stop the polling loop
            logger.error(f"Error drawing status table: {e}")
            return None

    def initial_load(self):
        existing = read_report(self.path, self.sheet_name)
        state = extract_tracking_state(existing, self.schema)
        if existing is not None:
            self.table = existing

        if state.watermark:
            logger.info(f"Resuming from last update: {state.watermark.isoformat()}")
        else:
            logger.info("First run - will fetch all survey data")

        poll_started = self.clock()
        records = self._fetch(FetchWindow(state.watermark))
        if records or existing is None:
            self._merge_and_save(records)
        self.since = poll_started

        if not self.table.rows:
            logger.info("No initial data found")
            return
        totals = self._render()
        if totals:
            pending, completed = totals
            logger.info(
                f"Initial data loaded: {len(self.table.rows)} entries ({pending} pending, {completed} completed)"
            )

    def poll_once(self):
        """One refresh cycle. Returns False when the cycle failed."""
        self.cycles += 1
        poll_started = self.clock()
        try:
            records = self._fetch(FetchWindow(self.since))
            if records:
                self._merge_and_save(records)
        except (SurveyOpsError, OSError) as e:
            logger.error(f"Error in refresh: {e}")
            return False

        # only advance once the changes are safely on disk
        self.since = poll_started
        totals = self._render()
        if totals:
            pending, completed = totals
            logger.info(
                f"Updated with {len(records)} new entries "
                f"(Total: {len(self.table.rows)}, Pending: {pending}, Completed: {completed})"
            )
        return True

    def run(self, stop_event=None, max_cycles=None):
        stop_event = stop_event or threading.Event()
        self.initial_load()

        while not stop_event.is_set():
            if max_cycles is not None and self.cycles >= max_cycles:
                break
            started = time.monotonic()
            self.poll_once()
            elapsed = time.monotonic() - started
            stop_event.wait(max(0.0, self.interval - elapsed))
