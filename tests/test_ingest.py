import pytest

from violation_reporter.ingest import build_argparser


def test_parse_command_prints_records(tmp_path, capsys):
    log = tmp_path / "log.txt"
    log.write_text(
        "Player: Jon Doe | UID 123456789 | ABC_1 | cheating\n"
        "not a violation\n"
        "Player: Erol | UID 987654321 | XYZ | spam\n",
        encoding="utf-8",
    )
    args = build_argparser().parse_args(["parse", str(log)])
    args.func(args)

    out, err = capsys.readouterr()
    assert out.splitlines() == ["ABC_1\t123456789\tJon Doe", "XYZ\t987654321\tErol"]
    assert "Found 2 violation line(s)" in err


def test_parse_command_missing_file(tmp_path):
    args = build_argparser().parse_args(["parse", str(tmp_path / "nope.txt")])
    with pytest.raises(SystemExit) as excinfo:
        args.func(args)
    assert excinfo.value.code == 1


def test_report_command_accepts_week_of():
    args = build_argparser().parse_args(["report", "--week-of", "2025-09-03"])
    assert args.week_of == "2025-09-03"


def test_subcommand_is_required():
    with pytest.raises(SystemExit):
        build_argparser().parse_args([])
