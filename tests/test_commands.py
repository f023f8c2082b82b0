import io
import os
from pathlib import Path

import pytest  # type: ignore

from command import (
    ChangeDirectory,
    ExternalProcess,
    Flag,
    FlagIdentity,
    HistoryCommand,
    Pipeline,
    PrintWorkingDirectory,
    format_command,
    help_info,
    is_builtin,
    render_help,
)
from errors import ExecutionError, ParseError
from history import History, save_history
from ops import execute, parse_line


def run_captured(line: str):
    cmd = parse_line(line)
    out, err = io.StringIO(), io.StringIO()
    cmd.set_output(out)
    cmd.set_error(err)
    execute(cmd)
    return out.getvalue(), err.getvalue()


class TestFlagModel:
    def test_long_identity(self):
        ident = FlagIdentity.parse("--verbose")
        assert ident.long == "--verbose" and ident.short is None

    def test_short_identity(self):
        ident = FlagIdentity.parse("-v")
        assert ident.short == "-v" and ident.long is None

    def test_invalid_identity(self):
        with pytest.raises(ParseError, match="invalid flag: verbose"):
            FlagIdentity.parse("verbose")

    def test_render_with_and_without_value(self):
        assert Flag(FlagIdentity(long="--format"), "json").render() == "--format=json"
        assert Flag(FlagIdentity(short="-l")).render() == "-l"


class TestDisplay:
    def test_arguments_and_flags_are_concatenated(self):
        assert format_command(parse_line("grep pattern -i")) == "grep pattern-i"

    def test_flags_only(self):
        assert format_command(parse_line("ls -l")) == "ls -l"

    def test_flag_values_are_not_rendered(self):
        assert format_command(parse_line("tool --mode=fast x")) == "tool x--mode"

    def test_str_matches_format(self):
        cmd = parse_line("cd /tmp")
        assert str(cmd) == "cd /tmp"

    def test_pipeline(self):
        assert str(parse_line("ls -l | wc -l")) == "ls -l | wc -l"


class TestHelp:
    @pytest.mark.parametrize("flag", ["-h", "--help"])
    def test_help_skips_domain_logic(self, sandbox, flag):
        # cd with no path would fail; help must win
        out, _ = run_captured(f"cd {flag}")
        assert out.startswith("CD\n")
        assert Path.cwd().resolve() == sandbox.resolve()

    def test_help_block_layout(self):
        text = render_help(help_info(HistoryCommand()))
        assert text.splitlines()[0] == "HISTORY"
        assert "USAGE" in text and "history [-c | --clear]" in text
        assert "-c, --clear" in text and "-h, --help" in text

    def test_external_help_does_not_spawn(self):
        out, err = run_captured("definitely_not_a_program_xyz --help")
        assert "DEFINITELY_NOT_A_PROGRAM_XYZ" in out
        assert err == ""

    def test_help_info_names_match(self):
        for cmd in (ChangeDirectory(), PrintWorkingDirectory(), HistoryCommand(),
                    ExternalProcess(name="ls"), Pipeline()):
            assert help_info(cmd).name == cmd.name


class TestChangeDirectory:
    def test_requires_path(self, sandbox):
        with pytest.raises(ExecutionError, match="no path provided"):
            execute(parse_line("cd"))

    def test_changes_directory(self, sandbox):
        target = sandbox / "sub"
        target.mkdir()
        execute(parse_line("cd sub"))
        assert Path.cwd() == target.resolve()

    def test_missing_directory_reports_os_error(self, sandbox):
        with pytest.raises(ExecutionError) as excinfo:
            execute(parse_line("cd /nonexistent/directory"))
        assert "/nonexistent/directory" in str(excinfo.value)
        assert isinstance(excinfo.value.__cause__, OSError)
        assert Path.cwd().resolve() == sandbox.resolve()

    def test_embedded_null_byte(self, sandbox):
        with pytest.raises(ExecutionError) as excinfo:
            execute(ChangeDirectory(args=["bad\x00dir"]))
        assert isinstance(excinfo.value.__cause__, ValueError)
        assert Path.cwd().resolve() == sandbox.resolve()


class TestPrintWorkingDirectory:
    def test_prints_cwd(self, sandbox):
        out, _ = run_captured("pwd")
        assert out == os.getcwd() + "\n"

    def test_default_output_is_stdout(self, sandbox, capsys):
        execute(PrintWorkingDirectory())
        assert capsys.readouterr().out.strip() == os.getcwd()

    @pytest.mark.parametrize("line", ["pwd extra", "pwd -L", "pwd --physical"])
    def test_rejects_arguments_and_flags(self, sandbox, line, capsys):
        with pytest.raises(ExecutionError, match="pwd: takes no arguments or flags"):
            execute(parse_line(line))
        assert capsys.readouterr().out == ""

    def test_help_is_still_accepted(self, sandbox):
        out, _ = run_captured("pwd --help")
        assert out.startswith("PWD")


class TestHistoryCommand:
    def test_lists_newest_first(self, history_file):
        save_history(History(["ls", "pwd", "cd /tmp"]), history_file)
        out, _ = run_captured("history")
        assert out.splitlines() == ["cd /tmp", "pwd", "ls"]

    def test_reads_storage_each_time(self, history_file):
        save_history(History(["one"]), history_file)
        assert run_captured("history")[0] == "one\n"
        save_history(History(["one", "two"]), history_file)
        assert run_captured("history")[0] == "two\none\n"

    def test_missing_file(self, history_file):
        out, _ = run_captured("history")
        assert "No history file found" in out

    @pytest.mark.parametrize("flag", ["-c", "--clear"])
    def test_clear_persists_empty_history(self, history_file, flag):
        save_history(History(["ls"]), history_file)
        out, _ = run_captured(f"history {flag}")
        assert "cleared" in out
        assert history_file.read_text() == ""


class TestExternalProcess:
    def test_argv_renders_flags_after_arguments(self):
        cmd = parse_line("tool a b -x --mode=fast --dry-run")
        assert cmd.argv() == ["tool", "a", "b", "-x", "--mode=fast", "--dry-run"]

    def test_relays_stdout(self):
        out, err = run_captured("echo hello world")
        assert out == "hello world\n"
        assert err == ""

    def test_relays_stderr_and_reports_status(self):
        cmd = ExternalProcess(name="sh", args=["-c", "echo oops 1>&2; exit 3"])
        out, err = io.StringIO(), io.StringIO()
        cmd.set_output(out)
        cmd.set_error(err)
        with pytest.raises(ExecutionError, match="status 3") as excinfo:
            execute(cmd)
        assert excinfo.value.returncode == 3
        assert err.getvalue() == "oops\n"

    def test_reads_bound_input(self):
        cmd = parse_line("cat")
        out = io.StringIO()
        cmd.set_input(io.StringIO("from slot\n"))
        cmd.set_output(out)
        execute(cmd)
        assert out.getvalue() == "from slot\n"

    def test_missing_program(self):
        with pytest.raises(ExecutionError, match="definitely_not_a_program_xyz") as excinfo:
            execute(parse_line("definitely_not_a_program_xyz"))
        assert isinstance(excinfo.value.__cause__, OSError)

    def test_embedded_null_byte_in_argument(self):
        with pytest.raises(ExecutionError) as excinfo:
            execute(ExternalProcess(name="echo", args=["a\x00b"]))
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_binary_output_stream(self):
        cmd = parse_line("echo bytes")
        buf = io.BytesIO()
        cmd.set_output(buf)
        execute(cmd)
        assert buf.getvalue() == b"bytes\n"


def test_builtin_classification():
    assert is_builtin(parse_line("cd /"))
    assert is_builtin(parse_line("pwd"))
    assert is_builtin(parse_line("history"))
    assert not is_builtin(parse_line("ls"))
    assert not is_builtin(parse_line("ls | wc"))
