"""Round over-long decimal values in benchmark query output files.

Only the first row is searched for decimal columns. Later rows rewrite just
those columns, so a decimal that first appears after the first row is left
as it is.
"""

from __future__ import annotations

import enum
import os
import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import TextIO

from pbench.logger import get_logger

IN_PROGRESS_EXT = ".InProgress"
DEFAULT_PRECISION = 12
DEFAULT_EXTENSIONS = (".output",)

_SPECIAL = re.compile(r"[\"',\n]")


class FileFormat(str, enum.Enum):
    """Layout of the files being rewritten."""

    CSV = "csv"
    JSON = "json"


class FieldSplitError(ValueError):
    """A row could not be split into comma separated fields."""


@dataclass
class RoundSummary:
    """Counts of the files looked at and the files rewritten."""

    files_scanned: int = 0
    files_written: int = 0


def _next_field(data: str) -> tuple[int, str | None]:
    """Return how much of data the next field uses, and the field (None if empty)."""
    quote = ""
    pos = 0
    while pos < len(data):
        if quote:
            found = data.find(quote, pos)
            if found < 0:
                break
            if found == pos or data[found - 1] != "\\":
                quote = ""
            pos = found
        else:
            match = _SPECIAL.search(data, pos)
            if match is None:
                break
            pos = match.start()
            char = data[pos]
            if char in "\"'":
                quote = char
            else:
                return pos + 1, data[:pos].strip() or None
        pos += 1
    if quote:
        raise FieldSplitError(f"expecting {quote} but got EOF")
    return len(data), data.strip() or None


def split_fields(text: str) -> list[str]:
    """Split on commas and newlines outside quotes; fields are trimmed and empty ones dropped."""
    fields = []
    while text:
        consumed, token = _next_field(text)
        if token is not None:
            fields.append(token)
        text = text[consumed:]
    return fields


def validate_options(
    extensions: Iterable[str], file_format: str, paths: Sequence[str]
) -> FileFormat:
    """Check the command options and return the file format they name."""
    for ext in extensions:
        if not ext.startswith("."):
            raise ValueError(
                f'file extension "{ext}" not accepted, it should start with a dot (.)'
            )
    try:
        fmt = FileFormat(file_format)
    except ValueError:
        raise ValueError(
            f'file format "{file_format}" is not an accepted value, '
            'only "json" or "csv" is accepted'
        ) from None
    if len(paths) < 1:
        raise ValueError(f"requires at least 1 arg(s), only received {len(paths)}")
    return fmt


def _extension(path: str) -> str:
    base = os.path.basename(path)
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


def _strip_line_end(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


class DecimalRounder:
    """Rewrites files so that decimals keep only a fixed number of fractional digits."""

    def __init__(
        self,
        precision: int = DEFAULT_PRECISION,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        file_format: FileFormat | str = FileFormat.JSON,
        in_place: bool = False,
        recursive: bool = False,
    ) -> None:
        if precision < 0:
            raise ValueError(f"invalid decimal precision: {precision}")
        self.precision = precision
        self.extensions = tuple(extensions)
        self.file_format = FileFormat(file_format)
        self.in_place = in_place
        self.recursive = recursive
        self.summary = RoundSummary()
        self._pattern = re.compile(rf'"?(\d+\.\d{{{precision}}})\d+"?', re.ASCII)

    def accepts(self, path: str) -> bool:
        """Whether the file's name ends with one of the accepted extensions."""
        if not self.extensions:
            return True
        return any(path.endswith(ext) for ext in self.extensions)

    def process_path(self, path: str) -> None:
        """Process a file, or the files in a directory (sub-directories only when recursive)."""
        if not os.path.isdir(path):
            os.stat(path)
            self.process_file(path)
            return
        for name in sorted(os.listdir(path)):
            full_path = os.path.join(path, name)
            if os.path.isdir(full_path):
                if self.recursive:
                    self.process_path(full_path)
            else:
                self.process_file(full_path)

    def _output_path(self, path: str) -> str:
        if self.in_place:
            return path + IN_PROGRESS_EXT
        ext = _extension(path)
        return path[: len(path) - len(ext)] + ".rewrite" + ext

    def _round(self, match: re.Match) -> str:
        if self.file_format is FileFormat.CSV:
            return f'"{match.group(1)}"'
        return match.group(1)

    def _format_row(self, cols: list[str]) -> str:
        joined = ",".join(cols)
        if self.file_format is FileFormat.JSON:
            return f"[{joined}]\n"
        return joined + "\n"

    def _rounded_lines(self, source: TextIO, path: str) -> Iterator[str]:
        log = get_logger()
        decimal_cols: list[int] | None = None
        col_count = 0
        for line_num, raw in enumerate(source, start=1):
            row = _strip_line_end(raw)
            if self.file_format is FileFormat.JSON:
                row = row.strip("[]")
            try:
                cols = split_fields(row)
            except FieldSplitError as exc:
                raise FieldSplitError(f"{path} line {line_num}: {exc}") from exc
            if decimal_cols is None:
                decimal_cols = []
                for index, col in enumerate(cols):
                    match = self._pattern.search(col)
                    if match:
                        log.info(f"{path} column {index} seems to be a decimal: {col}")
                        decimal_cols.append(index)
                        cols[index] = self._round(match)
                if not decimal_cols:
                    return
                col_count = len(cols)
            else:
                if len(cols) != col_count:
                    raise ValueError(
                        f"{path}: the first line had {col_count} columns "
                        f"but line {line_num} had {len(cols)} columns"
                    )
                for index in decimal_cols:
                    match = self._pattern.search(cols[index])
                    if match:
                        cols[index] = self._round(match)
            yield self._format_row(cols)

    def process_file(self, path: str) -> bool:
        """Rewrite one file; return True if a rewritten file was produced."""
        if not self.accepts(path):
            return False
        log = get_logger()
        output_path = self._output_path(path)
        with open(path, encoding="utf-8", newline="\n") as source:
            self.summary.files_scanned += 1
            lines = self._rounded_lines(source, path)
            first = next(lines, None)
            if first is None:
                return False
            try:
                with open(output_path, "w", encoding="utf-8", newline="") as out:
                    out.write(first)
                    out.writelines(lines)
            except BaseException:
                try:
                    os.remove(output_path)
                except OSError as exc:
                    log.error(
                        "failed to remove the temporary file",
                        path=output_path,
                        error=exc,
                    )
                raise
        if not self.in_place:
            log.info("file written", path=output_path)
            self.summary.files_written += 1
            return True
        try:
            os.replace(output_path, path)
        except OSError as exc:
            raise OSError(
                f"failed to rename file {output_path} to {path}: {exc}"
            ) from exc
        self.summary.files_written += 1
        log.info("file updated", path=path)
        return True

    def run(self, paths: Iterable[str]) -> RoundSummary:
        """Process every path, logging failures, and return the running totals."""
        log = get_logger()
        for path in paths:
            path = os.path.expanduser(path)
            try:
                self.process_path(path)
            except (OSError, ValueError) as exc:
                log.error(path=path, error=exc)
        log.info(
            file_scanned=self.summary.files_scanned,
            file_written=self.summary.files_written,
        )
        return self.summary