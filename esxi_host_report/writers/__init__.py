from __future__ import annotations

import importlib.util
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ..models import ReportCollection
from .csv_writer import CsvReportWriter
from .screen import ScreenWriter, format_table

logger = logging.getLogger("esxi_report.writers")

__all__ = [
    "CsvReportWriter",
    "OutputMode",
    "ReportSink",
    "ScreenWriter",
    "format_table",
    "resolve_destination",
    "resolve_output_mode",
]


class OutputMode(str, Enum):
    SCREEN = "screen"
    CSV = "csv"
    XLSX = "xlsx"
    RETURN = "return"


def resolve_destination(folder: Optional[str]) -> Path:
    """Export folder, or the current directory when none is given or it does not exist."""
    if not folder:
        logger.warning("No destination folder given, writing to %s", Path.cwd())
        return Path.cwd()
    path = Path(folder).expanduser()
    if not path.is_dir():
        logger.warning("Destination folder %s does not exist, writing to %s", path, Path.cwd())
        return Path.cwd()
    return path


def xlsx_available() -> bool:
    return importlib.util.find_spec("openpyxl") is not None


def resolve_output_mode(mode) -> OutputMode:
    mode = OutputMode(mode)
    if mode == OutputMode.XLSX and not xlsx_available():
        logger.warning("openpyxl is not installed, exporting CSV instead of XLSX")
        return OutputMode.CSV
    return mode


class ReportSink:
    """Hands finished collections to the writer for the selected output mode."""

    def __init__(self, mode, folder: Optional[str] = None, stamp: Optional[str] = None, screen: ScreenWriter = None):
        self.mode = resolve_output_mode(mode)
        self.folder = folder
        self.stamp = stamp or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.screen = screen or ScreenWriter()

    def emit(self, collections: List[ReportCollection]) -> List[Path]:
        if self.mode == OutputMode.RETURN:
            return []
        if self.mode == OutputMode.SCREEN:
            for collection in collections:
                self.screen.write(collection)
            return []

        dest = resolve_destination(self.folder)
        if self.mode == OutputMode.XLSX:
            from .xlsx_writer import XlsxReportWriter

            summaries = XlsxReportWriter().write(collections, dest, self.stamp)
            for s in summaries:
                logger.info("Sheet %s: %d row(s)", s["sheet"], s["rows"])
            return [summaries[0]["path"]] if summaries else []

        writer = CsvReportWriter()
        return [writer.write(c, dest, self.stamp) for c in collections]
