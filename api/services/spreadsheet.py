# SPDX-License-Identifier: Apache-2.0

"""
Tabular import readers.

Turns an uploaded ``.xlsx`` or ``.csv`` file into a list of rows keyed by the
header cell text.
"""

import csv
import io
import logging
import zipfile
from typing import Any, Dict, List, Optional

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from domain.errors import InvalidInputError
from models.enums import ImportFormat

logger = logging.getLogger(__name__)


def detect_format(filename: Optional[str]) -> ImportFormat:
    """Pick the reader from the file extension."""
    name = (filename or "").lower()
    if name.endswith(".xlsx"):
        return ImportFormat.XLSX
    if name.endswith(".csv"):
        return ImportFormat.CSV
    raise InvalidInputError(
        f"Unsupported file type: {filename or '(unnamed)'}",
        ["Allowed extensions: .xlsx, .csv"]
    )


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def read_xlsx_rows(content: bytes) -> List[Dict[str, Any]]:
    """Rows of the first worksheet; the first row holds the headers."""
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise InvalidInputError(f"Could not read spreadsheet: {e}")

    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []

        headers = [str(cell).strip() if cell is not None else "" for cell in header]
        result = []
        for values in rows:
            if all(_is_blank(v) for v in values):
                continue
            result.append({h: v for h, v in zip(headers, values) if h})
        return result
    finally:
        workbook.close()


def read_csv_rows(content: bytes) -> List[Dict[str, Any]]:
    """Rows of a comma or semicolon separated file with a header line."""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = content.decode("latin-1")

    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=",;\t")
    except csv.Error:
        dialect = csv.excel

    reader = csv.DictReader(io.StringIO(text), dialect=dialect)
    return [
        {k.strip(): v for k, v in row.items() if k}
        for row in reader
        if not all(_is_blank(v) for v in row.values())
    ]


def read_rows(content: bytes, filename: Optional[str]) -> List[Dict[str, Any]]:
    """Read an uploaded file into header-keyed rows."""
    file_format = detect_format(filename)
    if file_format == ImportFormat.XLSX:
        rows = read_xlsx_rows(content)
    else:
        rows = read_csv_rows(content)

    logger.info(f"Read {len(rows)} rows from {file_format.value} upload {filename}")
    return rows
