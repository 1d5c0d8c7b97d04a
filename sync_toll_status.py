#!/usr/bin/env python
"""
Toll-wise survey status
Per day / plaza / surveyor counts of Pending, Completed and Drafted surveys,
enriched with NHAI plaza details and upserted into surveyData.xlsx.
"""

import argparse
import sys

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from rich.console import Console
from rich.table import Table

from config import Config
from errors import SurveyOpsError
from logger_config import get_logger
from plaza_lookup import PlazaLookup
from report_sync import Column, IncrementalReportSync, ReportSchema
from survey_store import open_store

logger = get_logger(__name__)

SHEET_NAME = "Status"


def _day(ctx):
    day = ctx["group"]["day"]
    return day.strftime("%d-%m-%Y") if day else None


TOLL_STATUS_SCHEMA = ReportSchema(
    columns=[
        Column("Plaza Name", lambda c: c["group"]["plaza_name"], "-"),
        Column("State", lambda c: c["plaza"].state, "-"),
        Column("NH-No.", lambda c: c["plaza"].nh_no, "-"),
        Column("Plaza Code", lambda c: c["group"]["plaza_code"], "-"),
        Column("Location", lambda c: c["plaza"].location, "-"),
        Column("Section/Stretch", lambda c: c["plaza"].section_stretch, "-"),
        Column("Surveyor Name", lambda c: c["group"]["surveyor_name"], "-"),
        Column("Mobile Number", lambda c: c["group"]["mob_num"], "-"),
        Column("Pending", lambda c: c["group"]["pending"], 0),
        Column("Completed", lambda c: c["group"]["completed"], 0),
        Column("Drafted", lambda c: c["group"]["drafted"], 0),
        Column("CreatedAt", _day, "-"),
    ],
    identity=("Plaza Name", "Plaza Code", "Surveyor Name", "Mobile Number", "CreatedAt"),
)


def show_on_terminal(rows, console=None):
    console = console or Console()
    table = Table(title="📊 Survey Status Monitor")
    for heading in ("Plaza", "State", "NH-No.", "Location", "Section/Stretch", "Surveyor",
                    "Mobile", "Pending", "Completed", "Drafted", "Date"):
        table.add_column(heading)

    totals = {"Pending": 0, "Completed": 0, "Drafted": 0}
    for row in rows:
        table.add_row(*[str(row.get(column, "-")) for column in (
            "Plaza Name", "State", "NH-No.", "Location", "Section/Stretch", "Surveyor Name",
            "Mobile Number", "Pending", "Completed", "Drafted", "CreatedAt",
        )])
        for key in totals:
            totals[key] += int(row.get(key) or 0)

    table.add_section()
    table.add_row("TOTAL", "", "", "", "", "", "",
                  str(totals["Pending"]), str(totals["Completed"]), str(totals["Drafted"]), "",
                  style="bold")
    console.print(table)
    return totals


def run_toll_status(store, path, plaza_lookup=None, excluded_surveyors=(), console=None, show_progress=True):
    plaza_lookup = plaza_lookup or PlazaLookup()
    groups = store.status_by_day(excluded_surveyors=excluded_surveyors)

    shaped = []

    def shape(group):
        row = TOLL_STATUS_SCHEMA.shape({"group": group, "plaza": plaza_lookup.details(group["plaza_name"])})
        shaped.append(row)
        return row

    # No timestamp column: every run is a full refresh upserted over the old counts
    sync = IncrementalReportSync(
        path=path,
        sheet_name=SHEET_NAME,
        schema=TOLL_STATUS_SCHEMA,
        fetch=lambda window: groups,
        shape=shape,
        progress_label="🔎 Plaza details",
    )
    result = sync.run(show_progress=show_progress)
    show_on_terminal(shaped, console=console)
    return result


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Toll-wise pending/completed/drafted counts")
    parser.add_argument("--excel", default="./surveyData.xlsx")
    parser.add_argument("--no-progress", action="store_true")
    return parser.parse_args(argv)


def main(argv=None, app=None, plaza_lookup=None, console=None):
    args = parse_args(argv)
    try:
        with open_store(app) as store:
            logger.info("✅ Connected to database")
            run_toll_status(
                store,
                args.excel,
                plaza_lookup=plaza_lookup,
                excluded_surveyors=Config.EXCLUDED_SURVEYORS,
                console=console,
                show_progress=not args.no_progress,
            )
    except SurveyOpsError as e:
        logger.error(f"❌ Error: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
