import io
import json

import pytest

from pbench.cli import build_parser, main
from pbench.logger import Logger, get_logger, set_global_logger


@pytest.fixture(autouse=True)
def captured_log():
    previous = get_logger()
    buf = io.StringIO()
    set_global_logger(Logger(stream=buf))
    yield buf
    set_global_logger(previous)


def test_parser_round_defaults():
    args = build_parser().parse_args(["round", "some/path"])
    assert args.precision == 12
    assert args.format == "json"
    assert args.file_extension is None
    assert args.rewrite_in_place is False
    assert args.recursive is False
    assert args.paths == ["some/path"]


def test_parser_cmp_defaults():
    args = build_parser().parse_args(["cmp", "a", "b"])
    assert args.file_id_regex == r".*(query_\d{2}).*\.output"
    assert args.output_path == "./diff"
    assert (args.directory1, args.directory2) == ("a", "b")


def test_help_exits_zero():
    assert main(["--help"]) == 0


def test_no_command_prints_help_and_succeeds(capsys):
    assert main([]) == 0
    assert "genconfig" in capsys.readouterr().out


def test_unknown_command_fails():
    assert main(["nonexistent"]) == 1


def test_cmp_requires_two_directories():
    assert main(["cmp", "only_one"]) == 1


def test_round_requires_a_path():
    assert main(["round"]) == 1


def test_round_rejects_bad_format(tmp_path):
    assert main(["round", "-f", "xml", str(tmp_path)]) == 1


def test_round_rejects_extension_without_dot(tmp_path):
    assert main(["round", "-e", "output", str(tmp_path)]) == 1


def test_round_rewrites_file(tmp_path):
    source = tmp_path / "a.output"
    source.write_text('[1.1234567890123456,"x"]\n', encoding="utf-8")
    assert main(["round", "-p", "3", str(source)]) == 0
    rewritten = tmp_path / "a.rewrite.output"
    assert rewritten.read_text(encoding="utf-8") == '[1.123,"x"]\n'
    assert source.read_text(encoding="utf-8") == '[1.1234567890123456,"x"]\n'


def test_round_in_place(tmp_path):
    source = tmp_path / "b.output"
    source.write_text('[2.5555555555555555555]\n', encoding="utf-8")
    assert main(["round", "-p", "2", "-i", str(source)]) == 0
    assert source.read_text(encoding="utf-8") == "[2.55]\n"
    assert not (tmp_path / "b.output.InProgress").exists()


def test_round_skips_other_extensions(tmp_path):
    source = tmp_path / "c.txt"
    source.write_text("[1.1234567890123456]\n", encoding="utf-8")
    assert main(["round", "-p", "3", str(source)]) == 0
    assert sorted(p.name for p in tmp_path.iterdir()) == ["c.txt"]


def test_cmp_writes_diff(tmp_path):
    build = tmp_path / "build"
    probe = tmp_path / "probe"
    out = tmp_path / "out"
    build.mkdir()
    probe.mkdir()
    (build / "x_query_01.output").write_text("old\n", encoding="utf-8")
    (probe / "y_query_01.output").write_text("new\n", encoding="utf-8")
    (build / "x_query_02.output").write_text("same\n", encoding="utf-8")
    (probe / "y_query_02.output").write_text("same\n", encoding="utf-8")
    assert main(["cmp", str(build), str(probe), "-o", str(out)]) == 0
    assert sorted(p.name for p in out.iterdir()) == ["query_01.diff"]
    diff = (out / "query_01.diff").read_text(encoding="utf-8")
    assert "-old" in diff
    assert "+new" in diff


def test_cmp_missing_directory_fails(tmp_path):
    missing = tmp_path / "missing"
    assert main(["cmp", str(missing), str(tmp_path), "-o", str(tmp_path / "o")]) == 1


def test_genconfig_renders_templates(tmp_path):
    root = tmp_path / "clusters"
    cluster = root / "small"
    cluster.mkdir(parents=True)
    (cluster / "config.json").write_text(
        json.dumps({"cluster_size": "small", "memory_per_node_gb": 64, "number_of_workers": 2}),
        encoding="utf-8",
    )
    templates = tmp_path / "templates"
    (templates / "etc").mkdir(parents=True)
    (templates / "etc" / "node.properties").write_text(
        "name={{ name }} workers={{ number_of_workers }}\n", encoding="utf-8"
    )
    assert main(["genconfig", "-t", str(templates), str(root)]) == 0
    rendered = (cluster / "etc" / "node.properties").read_text(encoding="utf-8")
    assert rendered == "name=small workers=2\n"


def test_genconfig_without_template_dir_fails(tmp_path, captured_log):
    assert main(["genconfig", str(tmp_path)]) == 1
    assert "template directory" in captured_log.getvalue()