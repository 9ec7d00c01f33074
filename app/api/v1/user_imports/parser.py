"""
Row parser for user import files.

The first non-blank line is the header. Every following non-blank line becomes an
ImportRow numbered by its physical position in the file, so blank lines are skipped
without shifting the numbers of the rows after them. Lines break on "\\n" only
(a trailing "\\r" is dropped); other Unicode separators stay inside the value.
"""

import csv
import logging
from typing import Iterator, List, Optional

from .schemas import ImportRow

logger = logging.getLogger(__name__)

UTF8_BOM = "\ufeff"
DELIMITER = ","


def _raise_field_limit(content: str) -> None:
    # A single cell may be as long as the whole file; length is the validator's concern.
    if csv.field_size_limit() <= len(content):
        csv.field_size_limit(len(content) + 1)


def _split_line(line: str, line_number: int) -> List[str]:
    try:
        return next(csv.reader([line], delimiter=DELIMITER, quotechar='"'), [])
    except csv.Error as e:
        logger.warning("Line %s is not valid CSV (%s); splitting on the delimiter", line_number, e)
        return line.split(DELIMITER)


def _is_blank(values: List[str]) -> bool:
    return all(not v.strip() for v in values)


def parse_rows(content: str) -> Iterator[ImportRow]:
    """
    Yield one ImportRow per non-blank data line.

    Short rows only map the columns they have (the validator rejects the missing
    fields); values beyond the header width are ignored. Malformed lines never stop
    the stream: they are still yielded and fail validation on their own.
    """
    if content.startswith(UTF8_BOM):
        content = content[len(UTF8_BOM):]
    _raise_field_limit(content)

    header: Optional[List[str]] = None
    for index, line in enumerate(content.split("\n")):
        line_number = index + 1
        if line.endswith("\r"):
            line = line[:-1]
        values = _split_line(line, line_number)
        if _is_blank(values):
            continue
        if header is None:
            header = [name.strip() for name in values]
            continue
        fields = {name: value for name, value in zip(header, values) if name}
        yield ImportRow(line_number=line_number, fields=fields)
