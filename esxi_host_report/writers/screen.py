from typing import Callable, List, Sequence

from ..models import ReportCollection

MAX_CELL = 40


def _cell(value) -> str:
    text = "" if value is None else str(value)
    return text if len(text) <= MAX_CELL else text[: MAX_CELL - 3] + "..."


def format_table(columns: Sequence[str], rows: Sequence[Sequence]) -> List[str]:
    cells = [[_cell(v) for v in row] for row in rows]
    widths = [max([len(c)] + [len(r[i]) for r in cells]) for i, c in enumerate(columns)]
    lines = [
        "  ".join(c.ljust(w) for c, w in zip(columns, widths)).rstrip(),
        "  ".join("-" * w for w in widths),
    ]
    for row in cells:
        lines.append("  ".join(v.ljust(w) for v, w in zip(row, widths)).rstrip())
    return lines


class ScreenWriter:
    def __init__(self, out: Callable[[str], None] = print):
        self.out = out

    def write(self, collection: ReportCollection):
        self.out(f"\n=== {collection.kind.title} ({len(collection)} host(s)) ===")
        columns = collection.columns
        rows = [[row.get(c) for c in columns] for row in collection.rows()]
        for line in format_table(columns, rows):
            self.out(line)
