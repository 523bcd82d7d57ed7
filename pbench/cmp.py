"""Compare the query result files of two directories and write unified diffs."""

from __future__ import annotations

import difflib
import os
import re
from dataclasses import dataclass
from typing import Union

from pbench.logger import get_logger

DEFAULT_FILE_ID_PATTERN = r".*(query_\d{2}).*\.output"
DEFAULT_OUTPUT_PATH = "./diff"

Pattern = Union[str, "re.Pattern[str]"]


@dataclass
class CompareSummary:
    """Totals of a directory comparison."""

    build_side_count: int = 0
    probe_side_count: int = 0
    file_compared: int = 0
    diff_written: int = 0


def _compile(pattern: Pattern) -> re.Pattern[str]:
    regex = re.compile(pattern, re.ASCII) if isinstance(pattern, str) else pattern
    if regex.groups < 1:
        raise ValueError(f"file ID regex {regex.pattern!r} has no capture group")
    return regex


def _file_id(regex: re.Pattern[str], name: str) -> str | None:
    match = regex.search(name)
    if match is None:
        return None
    return match.group(1) or ""


def _files(path: str) -> list[str]:
    return sorted(e.name for e in os.scandir(path) if not e.is_dir())


def build_file_id_map(path: str, pattern: Pattern = DEFAULT_FILE_ID_PATTERN) -> dict[str, str]:
    """Map the ID captured from each file name in path to that file's path."""
    regex = _compile(pattern)
    file_ids: dict[str, str] = {}
    for name in _files(path):
        file_id = _file_id(regex, name)
        if file_id is not None:
            file_ids[file_id] = os.path.join(path, name)
    return file_ids


def _read_text(path: str) -> str:
    try:
        with open(path, encoding="utf-8", newline="") as f:
            return f.read()
    except OSError as exc:
        get_logger().error("failed to read file", error=exc, path=path)
        return ""


def _unified_diff(from_name: str, to_name: str, before: str, after: str) -> str:
    lines = []
    for line in difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        from_name,
        to_name,
    ):
        if not line.endswith("\n"):
            line += "\n\\ No newline at end of file\n"
        lines.append(line)
    return "".join(lines)


def compare_directories(
    build_side: str,
    probe_side: str,
    output_path: str = DEFAULT_OUTPUT_PATH,
    pattern: Pattern = DEFAULT_FILE_ID_PATTERN,
) -> CompareSummary:
    """Diff files with the same ID in the two directories, writing <id>.diff for each that differs."""
    log = get_logger()
    file_ids = build_file_id_map(build_side, pattern)
    regex = _compile(pattern)
    output_path = os.path.expanduser(output_path)
    os.makedirs(output_path, exist_ok=True)
    summary = CompareSummary()
    for name in _files(probe_side):
        file_id = _file_id(regex, name)
        if file_id is None:
            continue
        summary.probe_side_count += 1
        build_path = file_ids.get(file_id)
        if build_path is None:
            continue
        probe_path = os.path.join(probe_side, name)
        before, after = _read_text(build_path), _read_text(probe_path)
        summary.file_compared += 1
        if before != after:
            diff_path = os.path.join(output_path, file_id + ".diff")
            try:
                with open(diff_path, "w", encoding="utf-8", newline="") as out:
                    out.write(_unified_diff(build_path, probe_path, before, after) + "\n")
            except OSError as exc:
                log.error("failed to write to output file", error=exc, output_file=diff_path)
                continue
            log.info("diff result written", build_side=build_path, probe_side=probe_path)
            summary.diff_written += 1
        del file_ids[file_id]
    summary.build_side_count = len(file_ids)
    log.info(
        build_side_count=summary.build_side_count,
        probe_side_count=summary.probe_side_count,
        file_compared=summary.file_compared,
        diff_written=summary.diff_written,
    )
    return summary