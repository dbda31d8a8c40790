"""Spreadsheet ingestion for displacement-monitoring workbooks.

Each workbook holds one acquisition epoch for many monitoring points. The
epoch's date and hour come from the file name (``2025.7.1-00<project>.xlsx``,
see :class:`~dispfix.core.models.SourceFile`); data rows hold, by column:

====  ==========================
0     point name
1     mileage
2-4   current period X / Y / Z
5-7   cumulative X / Y / Z
8-10  daily rate X / Y / Z
====  ==========================

Column positions and the data row window are configurable through
``config.reader``.
"""

import logging
from pathlib import Path
from typing import List, TYPE_CHECKING

import pandas as pd
from openpyxl import load_workbook

from dispfix.core.models import AXES, PeriodData, SourceFile
from dispfix.monitoring.validator import ComparisonIndex

if TYPE_CHECKING:
    from dispfix.schemas import InternalConfig

__all__ = ['SpreadsheetLoader']

logger = logging.getLogger(__name__)


def _cell_text(value) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


class SpreadsheetLoader:
    """Read monitoring workbooks into :class:`PeriodData` records.

    Parameters
    ----------
    config : InternalConfig
        Uses ``config.reader`` (file pattern, sheet, row window, columns).
    """

    def __init__(self, config: "InternalConfig"):
        self.config = config
        self.reader = config.reader

    def discover(self, directory) -> List[SourceFile]:
        """List workbooks in ``directory`` in acquisition order.

        Office lock files (``~$...``) are skipped.

        Raises
        ------
        FileNotFoundError
            If ``directory`` does not exist.
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise FileNotFoundError(f"Input directory not found: {directory}")

        files = [
            SourceFile.from_path(path)
            for path in directory.glob(self.reader.file_pattern)
            if path.is_file() and not path.name.startswith("~$")
        ]
        files.sort(key=lambda f: (f.date, f.hour, f.name))
        logger.info("Found %d workbooks in %s", len(files), directory)
        return files

    def _read_rows(self, source: SourceFile) -> pd.DataFrame:
        """Data row window as a DataFrame indexed by 1-based worksheet row."""
        first = self.reader.data_start_row
        wb = load_workbook(source.path, data_only=True)
        try:
            ws = wb.worksheets[self.reader.sheet_index]
            last = min(self.reader.data_end_row, ws.max_row)
            rows = [list(row) for row in ws.iter_rows(min_row=first, max_row=last, values_only=True)]
        finally:
            wb.close()

        width = max((len(row) for row in rows), default=0)
        rows = [row + [None] * (width - len(row)) for row in rows]
        return pd.DataFrame(rows, index=range(first, first + len(rows)), columns=range(width))

    def load_file(self, source) -> List[PeriodData]:
        """Read one workbook.

        Parameters
        ----------
        source : SourceFile or str or Path
            Workbook to read.

        Returns
        -------
        list of PeriodData
            One record per non-blank data row, stamped with the file's epoch.
        """
        if not isinstance(source, SourceFile):
            source = SourceFile.from_path(source)

        window = self._read_rows(source)
        columns = self.reader.columns
        timestamp = source.timestamp

        def numeric(col: int) -> pd.Series:
            if col >= window.shape[1]:
                return pd.Series(0.0, index=window.index)
            return pd.to_numeric(window[col], errors="coerce").fillna(0.0).astype(float)

        mileage = numeric(columns.mileage)
        current = [numeric(c) for c in columns.current_period]
        cumulative = [numeric(c) for c in columns.cumulative]
        daily = [numeric(c) for c in columns.daily]

        periods = []
        for row_number in window.index:
            name = ""
            if columns.point_name < window.shape[1]:
                name = _cell_text(window.at[row_number, columns.point_name])
            if not name:
                continue
            period = PeriodData(
                point_name=name,
                timestamp=timestamp,
                row_number=int(row_number),
                source_file=source.name,
                mileage=float(mileage[row_number]),
            )
            for position, axis in enumerate(AXES):
                period.set_current_period(axis, current[position][row_number])
                period.set_cumulative(axis, cumulative[position][row_number])
                setattr(period, f"daily_{axis.value.lower()}", float(daily[position][row_number]))
            periods.append(period)

        logger.debug("Read %d rows from %s", len(periods), source.name)
        return periods

    def load_directory(self, directory) -> List[PeriodData]:
        """Read every workbook in ``directory``; unreadable files are skipped."""
        periods: List[PeriodData] = []
        files = self.discover(directory)
        for source in files:
            try:
                periods.extend(self.load_file(source))
            except Exception:
                logger.exception("Failed to read workbook %s", source.name)
        logger.info("Loaded %d period records from %d workbooks", len(periods), len(files))
        return periods

    def load_comparison(self, directory) -> ComparisonIndex:
        """Build a :class:`ComparisonIndex` from an independent source directory."""
        index = ComparisonIndex(self.load_directory(directory))
        logger.info("Comparison index holds %d records", len(index))
        return index
