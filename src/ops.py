from __future__ import annotations

import logging
import os
import subprocess
import sys
from typing import IO, Any, List, Optional

from command import (
    ChangeDirectory,
    Command,
    ExternalProcess,
    Flag,
    FlagIdentity,
    HistoryCommand,
    Pipeline,
    PrintWorkingDirectory,
    builtin_for,
    help_info,
    is_builtin,
    render_help,
)
from errors import ExecutionError, ParseError
from history import load_history, save_history, history_file_path
from lexer import Token, TokenKind, scan

logger = logging.getLogger(__name__)

BUILTIN_IN_PIPE_MESSAGE = "built-in commands cannot be used in pipes"


# --------- Resolving tokens into commands ---------

def _resolve_stage(tokens: List[Token]) -> Command:
    if not tokens:
        raise ParseError("no command provided")
    head = tokens[0]
    if head.kind is not TokenKind.COMMAND:
        raise ParseError(f"expected command, got: {head.lexeme}")

    cmd = builtin_for(head.lexeme) or ExternalProcess(name=head.lexeme)
    for t in tokens[1:]:
        if t.kind is TokenKind.ARGUMENT:
            cmd.args.append(t.lexeme)
        elif t.kind in (TokenKind.SHORT_FLAG, TokenKind.LONG_FLAG):
            cmd.flags.append(Flag(FlagIdentity.parse(t.lexeme)))
        elif t.kind is TokenKind.LONG_FLAG_WITH_VALUE:
            name, _, value = t.lexeme.partition("=")
            cmd.flags.append(Flag(FlagIdentity.parse(name), value))
        # redirection and background tokens are recognized but not acted on
    return cmd


def resolve(tokens: List[Token]) -> Command:
    """Turn a scanned token list into a single command or a Pipeline."""
    body = [t for t in tokens if t.kind is not TokenKind.EOF]
    if not body:
        raise ParseError("no command provided")

    pipes = [i for i, t in enumerate(body) if t.kind is TokenKind.PIPE]
    if not pipes:
        cmd = _resolve_stage(body)
    else:
        bounds = [-1, *pipes, len(body)]
        stages = []
        for lo, hi in zip(bounds, bounds[1:]):
            stage_tokens = body[lo + 1:hi]
            if not stage_tokens and hi < len(body):
                # `| ls` or `ls | | wc`: the pipe itself sits where a command belongs
                raise ParseError(f"expected command, got: {body[hi].lexeme}")
            stages.append(_resolve_stage(stage_tokens))
        cmd = Pipeline(stages=stages)
    logger.debug("resolved %r", cmd)
    return cmd


def parse_line(line: str) -> Command:
    return resolve(scan(line))


# --------- Executing commands ---------

def _out(cmd: Command) -> IO[Any]:
    return cmd.stdout if cmd.stdout is not None else sys.stdout


def _err(cmd: Command) -> IO[Any]:
    return cmd.stderr if cmd.stderr is not None else sys.stderr


def _relay(data: Optional[bytes], stream: IO[Any]) -> None:
    """Write captured process output to a text or binary stream."""
    if not data:
        return
    try:
        stream.write(data.decode(errors="replace"))
    except TypeError:
        stream.write(data)
    stream.flush()


def _read_input(stream: Optional[IO[Any]]) -> Optional[bytes]:
    if stream is None:
        return None
    data = stream.read()
    return data.encode() if isinstance(data, str) else data


def _change_directory(cmd: ChangeDirectory) -> None:
    if not cmd.args:
        raise ExecutionError("no path provided")
    target = cmd.args[0]
    try:
        os.chdir(target)
    except OSError as e:
        raise ExecutionError(f"cd: {target}: {e.strerror or e}") from e
    except ValueError as e:
        # e.g. an embedded NUL in the path
        raise ExecutionError(f"cd: {target!r}: {e}") from e
    logger.debug("changed directory to %s", os.getcwd())


def _print_working_directory(cmd: PrintWorkingDirectory) -> None:
    if cmd.args or cmd.flags:
        extra = " ".join([*cmd.args, *(f.render() for f in cmd.flags)])
        raise ExecutionError(f"pwd: takes no arguments or flags, got: {extra}")
    try:
        cwd = os.getcwd()
    except OSError as e:
        raise ExecutionError(f"pwd: {e.strerror or e}") from e
    out = _out(cmd)
    out.write(cwd + "\n")
    out.flush()


def _history(cmd: HistoryCommand) -> None:
    path = history_file_path()
    history = load_history(path)
    out = _out(cmd)
    if cmd.clears():
        history.clear()
        save_history(history, path)
        out.write("History cleared\n")
    elif not path.exists():
        out.write(f"No history file found at {path}\n")
    else:
        for entry in history.drain():
            out.write(entry + "\n")
    out.flush()


def _spawn(argv: List[str], payload: Optional[bytes], capture_stdout: bool) -> subprocess.CompletedProcess:
    """Run one program to completion, capturing stderr and optionally stdout."""
    logger.debug("spawning %s", argv)
    try:
        return subprocess.run(
            argv,
            input=payload,
            stdout=subprocess.PIPE if capture_stdout else None,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        raise ExecutionError(f"{argv[0]}: {e.strerror or e}") from e
    except ValueError as e:
        raise ExecutionError(f"{argv[0]!r}: {e}") from e


def _run_external(cmd: ExternalProcess) -> None:
    completed = _spawn(cmd.argv(), _read_input(cmd.stdin), capture_stdout=True)
    _relay(completed.stdout, _out(cmd))
    _relay(completed.stderr, _err(cmd))
    if completed.returncode != 0:
        raise ExecutionError(
            f"{cmd.name} exited with status {completed.returncode}",
            returncode=completed.returncode,
        )


def _run_pipeline(p: Pipeline) -> None:
    total = len(p.stages)
    if total == 0:
        return
    if total == 1:
        only = p.stages[0]
        for slot in ("stdin", "stdout", "stderr"):
            if getattr(only, slot) is None:
                setattr(only, slot, getattr(p, slot))
        execute(only)
        return

    # Checked up front so no stage is spawned for a rejected pipeline
    if any(is_builtin(stage) for stage in p.stages):
        raise ExecutionError(BUILTIN_IN_PIPE_MESSAGE)

    # Stages run one after another; each one's stdout is buffered in
    # memory and handed to the next as its stdin.
    data: Optional[bytes] = _read_input(p.stdin)
    for idx, stage in enumerate(p.stages):
        assert isinstance(stage, ExternalProcess)
        completed = _spawn(stage.argv(), data, capture_stdout=True)
        logger.debug("stage %d (%s) exited with %d", idx, stage.name, completed.returncode)
        if idx == total - 1:
            _relay(completed.stdout, _out(p))
        _relay(completed.stderr, _err(p))
        if completed.returncode != 0:
            raise ExecutionError(
                f"{stage.name} exited with status {completed.returncode} "
                f"(pipeline stage {idx + 1} of {total})",
                returncode=completed.returncode,
            )
        data = completed.stdout


def execute(cmd: Command) -> None:
    """Run `cmd`, printing its help instead when -h/--help is present.

    The help check applies to the command handed in. Stages of a pipeline
    with two or more members are spawned as-is, so `ls --help | wc` passes
    --help to ls rather than printing this shell's help block.

    Raises ExecutionError on failure; output written before the failure
    is kept.
    """
    if cmd.wants_help():
        out = _out(cmd)
        out.write(render_help(help_info(cmd)))
        out.flush()
        return

    match cmd:
        case ChangeDirectory():
            _change_directory(cmd)
        case PrintWorkingDirectory():
            _print_working_directory(cmd)
        case HistoryCommand():
            _history(cmd)
        case Pipeline():
            _run_pipeline(cmd)
        case ExternalProcess():
            _run_external(cmd)
        case _:
            raise TypeError(f"not a command: {cmd!r}")

