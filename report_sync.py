"""
Incremental report synchronizer.

Every report script follows the same cycle:
  1. read the report it produced last time
  2. derive the identities already present and the watermark (latest timestamp)
  3. fetch only records newer than the watermark
  4. upsert them by identity: replace in place, or append
  5. write the merged table back

Rows that are not part of the current fetch are never touched, so a report
keeps its full history no matter how narrow the fetch window is.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone

import pandas as pd
from sqlalchemy import or_
from tqdm import tqdm

from errors import ErrorLog, PerRecordError, SchemaError
from logger_config import get_logger
from report_table import merge_header, read_report, write_report

logger = get_logger(__name__)

# ============================================================================
# ROW SCHEMA
# ============================================================================

@dataclass(frozen=True)
class Column:
    name: str
    extractor: object          # callable(record) -> value
    default: object = None


class ReportSchema:
    """Ordered columns plus the identity column(s) and optional watermark column."""

    def __init__(self, columns, identity, timestamp=None):
        self.columns = list(columns)
        self.identity = (identity,) if isinstance(identity, str) else tuple(identity)
        self.timestamp = timestamp

        names = self.column_names
        missing = [c for c in self.identity + ((timestamp,) if timestamp else ()) if c not in names]
        if missing:
            raise ValueError(f"Schema does not define columns {missing}")

    @property
    def column_names(self):
        return [column.name for column in self.columns]

    def shape(self, record):
        """Build a row with every schema column present, defaults filled in."""
        row = {}
        for column in self.columns:
            value = column.extractor(record)
            if value is None or (isinstance(value, str) and value == ""):
                value = column.default
            row[column.name] = value
        return row

    def identity_of(self, row):
        return identity_key(row, self.identity)


def _normalize_identity_value(value):
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def identity_key(row, identity):
    identity = (identity,) if isinstance(identity, str) else tuple(identity)
    return tuple(_normalize_identity_value(row.get(column)) for column in identity)

# ============================================================================
# IDENTITY & WATERMARK
# ============================================================================

@dataclass
class TrackingState:
    identities: set = field(default_factory=set)
    watermark: datetime = None


def _naive_utc(value):
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value):
    """Best effort conversion to a naive datetime; None when unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    parsed = pd.to_datetime(value, errors="coerce")
    if parsed is None or pd.isna(parsed):
        return None
    return _naive_utc(parsed.to_pydatetime())


def extract_tracking_state(table, schema):
    """
    Identities already in the report plus the max timestamp seen.
    table is None when no report exists yet.
    """
    if table is None:
        return TrackingState()

    missing = [column for column in schema.identity if column not in table.header]
    if missing:
        raise SchemaError(f"Invalid report format: identity column(s) {missing} not found")
    if schema.timestamp and schema.timestamp not in table.header:
        raise SchemaError(f"Invalid report format: timestamp column '{schema.timestamp}' not found")

    state = TrackingState()
    for row in table.rows:
        key = schema.identity_of(row)
        if all(part is None for part in key):
            continue
        state.identities.add(key)

        if schema.timestamp:
            ts = parse_timestamp(row.get(schema.timestamp))
            if ts is not None and (state.watermark is None or ts > state.watermark):
                state.watermark = ts
    return state

# ============================================================================
# FETCH WINDOW
# ============================================================================

@dataclass(frozen=True)
class FetchWindow:
    watermark: datetime = None

    @property
    def is_unbounded(self):
        return self.watermark is None

    def apply(self, query, *columns):
        """Restrict query to rows strictly newer than the watermark on any of columns."""
        if self.is_unbounded:
            return query
        return query.filter(or_(*[column > self.watermark for column in columns]))

    def describe(self):
        if self.is_unbounded:
            return "all records"
        return f"records newer than {self.watermark:%Y-%m-%d %H:%M:%S}"

# ============================================================================
# UPSERT MERGE
# ============================================================================

def merge_rows(existing_rows, incoming_rows, identity):
    """
    Upsert incoming_rows into existing_rows by identity.

    A match is updated at its original position (columns the incoming row does
    not carry keep their old values); anything else is appended in input order.
    The input lists are not modified.
    """
    merged = list(existing_rows)
    positions = {}
    for index, row in enumerate(merged):
        # first occurrence wins if an old report already holds duplicates
        positions.setdefault(identity_key(row, identity), index)

    for row in incoming_rows:
        key = identity_key(row, identity)
        index = positions.get(key)
        if index is None:
            positions[key] = len(merged)
            merged.append(dict(row))
        else:
            updated = dict(merged[index])
            updated.update(row)
            merged[index] = updated
    return merged

# ============================================================================
# BATCH RUN
# ============================================================================

@dataclass
class SyncResult:
    path: str
    watermark: datetime = None
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    total_rows: int = 0
    written: bool = False
    errors: ErrorLog = field(default_factory=ErrorLog)


class IncrementalReportSync:
    """
    One read -> fetch -> merge -> write pass over a report.

    fetch(window) returns an iterable of source records.
    shape(record) turns one record into a row; raising PerRecordError skips it.
    """

    def __init__(self, path, sheet_name, schema, fetch, shape=None, progress_label="⏳ Processing"):
        self.path = path
        self.sheet_name = sheet_name
        self.schema = schema
        self.fetch = fetch
        self.shape = shape or schema.shape
        self.progress_label = progress_label

    def run(self, show_progress=True):
        existing = read_report(self.path, self.sheet_name)
        state = extract_tracking_state(existing, self.schema)

        if existing is not None:
            logger.info(f"🔍 Found {len(state.identities)} existing entries in {self.path}")
        if state.watermark:
            logger.info(f"📅 Last entry date: {state.watermark.isoformat()}")

        window = FetchWindow(state.watermark)
        logger.info(f"📦 Fetching {window.describe()}...")

        result = SyncResult(path=self.path, watermark=state.watermark)
        records = self.fetch(window)
        total = len(records) if hasattr(records, "__len__") else None

        incoming = []
        for record in tqdm(records, total=total, desc=self.progress_label, disable=not show_progress):
            result.fetched += 1
            try:
                row = self.shape(record)
            except PerRecordError as e:
                result.errors.record_failure(e)
                continue
            incoming.append(row)
            result.errors.record_processed()

        if not incoming:
            logger.info("✅ No new records to merge.")
            result.total_rows = len(existing.rows) if existing else 0
            return result

        existing_rows = existing.rows if existing else []
        for row in incoming:
            if self.schema.identity_of(row) in state.identities:
                result.updated += 1
            else:
                result.inserted += 1
                state.identities.add(self.schema.identity_of(row))

        header = merge_header(existing.header if existing else [], self.schema.column_names)
        merged = merge_rows(existing_rows, incoming, self.schema.identity)
        write_report(self.path, self.sheet_name, header, merged)

        result.total_rows = len(merged)
        result.written = True
        logger.info(
            f"💾 Saved {self.path}: {result.inserted} new, {result.updated} updated, {result.total_rows} total rows"
        )
        return result
