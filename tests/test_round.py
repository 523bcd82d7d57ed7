import io
import os

import pytest

from pbench.logger import Logger, get_logger, set_global_logger
from pbench.round import (
    DecimalRounder,
    FieldSplitError,
    FileFormat,
    RoundSummary,
    split_fields,
    validate_options,
)


@pytest.fixture(autouse=True)
def quiet_logger():
    previous = get_logger()
    set_global_logger(Logger(stream=io.StringIO()))
    yield
    set_global_logger(previous)


@pytest.mark.parametrize(
    "text, expected",
    [
        (
            '"abc,d",1.22332,true,"\'def\'"def   ',
            ['"abc,d"', "1.22332", "true", '"\'def\'"def'],
        ),
        (
            "1,931,1,354.0,1.071598667572002,1,931,2,201.75,1.11804961109744",
            ["1", "931", "1", "354.0", "1.071598667572002", "1", "931", "2", "201.75", "1.11804961109744"],
        ),
    ],
)
def test_split_fields(text, expected):
    assert split_fields(text) == expected


def test_split_fields_unterminated_quote():
    with pytest.raises(FieldSplitError) as info:
        split_fields("11,23,'f,f\n  ")
    assert str(info.value) == "expecting ' but got EOF"


def test_split_fields_drops_empty_and_splits_newlines():
    assert split_fields("1,,2\n3") == ["1", "2", "3"]


def test_split_fields_escaped_quote():
    assert split_fields('"a\\"b",c') == ['"a\\"b"', "c"]


def test_validate_options_ok():
    assert validate_options([".output"], "json", ["x"]) is FileFormat.JSON


def test_validate_options_bad_extension():
    with pytest.raises(ValueError, match="should start with a dot"):
        validate_options(["output"], "json", ["x"])


def test_validate_options_bad_format():
    with pytest.raises(ValueError, match="not an accepted value"):
        validate_options([".output"], "xml", ["x"])


def test_validate_options_no_paths():
    with pytest.raises(ValueError, match="at least 1"):
        validate_options([".output"], "csv", [])


def test_accepts():
    rounder = DecimalRounder(extensions=[".output", ".csv"])
    assert rounder.accepts("a/q.output")
    assert rounder.accepts("b.csv")
    assert not rounder.accepts("c.txt")
    assert DecimalRounder(extensions=[]).accepts("c.txt")


def test_process_json_file(tmp_path):
    source = tmp_path / "q.output"
    source.write_text('["a",1.234567,"x"]\n["b",2.5,"y"]\n["c",3.14159265,"z"]\n')
    rounder = DecimalRounder(precision=3)
    assert rounder.process_file(str(source)) is True
    out = tmp_path / "q.rewrite.output"
    assert out.read_text() == '["a",1.234,"x"]\n["b",2.5,"y"]\n["c",3.141,"z"]\n'
    assert rounder.summary == RoundSummary(files_scanned=1, files_written=1)


def test_process_csv_file_in_place(tmp_path):
    source = tmp_path / "r.output"
    source.write_text('"1.23456","k"\n"7.891011","m"\n')
    rounder = DecimalRounder(precision=2, file_format="csv", in_place=True)
    assert rounder.process_file(str(source)) is True
    assert source.read_text() == '"1.23","k"\n"7.89","m"\n'
    assert sorted(os.listdir(tmp_path)) == ["r.output"]


def test_no_decimal_columns_writes_nothing(tmp_path):
    source = tmp_path / "q.output"
    source.write_text('["a",1.5]\n["b",2.123456789]\n')
    rounder = DecimalRounder(precision=3)
    assert rounder.process_file(str(source)) is False
    assert sorted(os.listdir(tmp_path)) == ["q.output"]
    assert rounder.summary.files_scanned == 1
    assert rounder.summary.files_written == 0


def test_column_count_mismatch_removes_output(tmp_path):
    source = tmp_path / "q.output"
    source.write_text("1.23456,a\n1.1\n")
    rounder = DecimalRounder(precision=2, file_format="csv")
    with pytest.raises(ValueError, match="had 2 columns but line 2 had 1 columns"):
        rounder.process_file(str(source))
    assert sorted(os.listdir(tmp_path)) == ["q.output"]


def test_split_error_removes_output(tmp_path):
    source = tmp_path / "q.output"
    source.write_text("1.23456,a\n1.5555,'x\n")
    rounder = DecimalRounder(precision=2, file_format="csv", in_place=True)
    with pytest.raises(FieldSplitError, match="line 2"):
        rounder.process_file(str(source))
    assert sorted(os.listdir(tmp_path)) == ["q.output"]
    assert source.read_text() == "1.23456,a\n1.5555,'x\n"


def test_run_directory(tmp_path):
    (tmp_path / "q.output").write_text('["a",1.234567]\n')
    (tmp_path / "other.txt").write_text('["a",1.234567]\n')
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "s.output").write_text('["a",1.234567]\n')
    summary = DecimalRounder(precision=3).run([str(tmp_path)])
    assert summary == RoundSummary(files_scanned=1, files_written=1)
    assert (tmp_path / "q.rewrite.output").read_text() == '["a",1.234]\n'


def test_run_recursive(tmp_path):
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "s.output").write_text('["a",1.234567]\n')
    summary = DecimalRounder(precision=3, recursive=True).run([str(tmp_path)])
    assert summary == RoundSummary(files_scanned=1, files_written=1)
    assert (sub / "s.rewrite.output").read_text() == '["a",1.234]\n'


def test_run_missing_path_is_logged(tmp_path):
    stream = io.StringIO()
    set_global_logger(Logger(stream=stream))
    summary = DecimalRounder().run([str(tmp_path / "missing")])
    assert summary == RoundSummary(0, 0)
    assert '"level":"error"' in stream.getvalue()