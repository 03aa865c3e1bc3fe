from pathlib import Path
from typing import Any, Dict, List

from openpyxl import Workbook

from ..models import ReportCollection


class XlsxReportWriter:
    def __init__(self, prefix: str = "esxi-host-report"):
        self.prefix = prefix

    def write(self, collections: List[ReportCollection], dest: Path, stamp: str) -> List[Dict[str, Any]]:
        """
        Create one workbook with a worksheet per report kind.
        Returns a list of summaries per sheet.
        """
        wb = Workbook()
        # Remove default sheet to keep ordering exact
        default = wb.active
        wb.remove(default)

        path = Path(dest) / f"{self.prefix}-{stamp}.xlsx"
        summaries = []

        for collection in collections:
            columns = collection.columns
            ws = wb.create_sheet(title=collection.kind.title)
            ws.append(columns)

            for row in collection.rows():
                ws.append(["" if row.get(col) is None else row.get(col) for col in columns])

            summaries.append({
                "sheet": collection.kind.title,
                "columns": len(columns),
                "rows": len(collection),
                "path": path,
            })

        path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(path)
        return summaries
