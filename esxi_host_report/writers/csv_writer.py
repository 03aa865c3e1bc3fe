import csv
import logging
from pathlib import Path
from typing import Any

from ..models import ReportCollection

logger = logging.getLogger("esxi_report.writers.csv")


def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "True" if value else "False"
    return str(value)


class CsvReportWriter:
    """One CSV file per report kind, header row taken from the record schema."""

    def __init__(self, prefix: str = "esxi-host-report", delimiter: str = ","):
        self.prefix = prefix
        self.delimiter = delimiter

    def filename(self, collection: ReportCollection, stamp: str) -> str:
        return f"{self.prefix}-{collection.kind.value}-{stamp}.csv"

    def write(self, collection: ReportCollection, dest: Path, stamp: str) -> Path:
        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)
        path = dest / self.filename(collection, stamp)
        with path.open("w", newline="", encoding="utf-8") as fh:
            writer = csv.DictWriter(fh, fieldnames=collection.columns, delimiter=self.delimiter)
            writer.writeheader()
            for row in collection.rows():
                writer.writerow({k: format_value(v) for k, v in row.items()})
        logger.info("Wrote %d row(s) to %s", len(collection), path)
        return path
