# Command model: flags, command variants, help text and display form

from __future__ import annotations

from dataclasses import dataclass, field
from typing import IO, Any, Optional

from errors import ParseError

HELP_FLAGS = ("-h", "--help")


# --- Flags ---

@dataclass(frozen=True)
class FlagIdentity:
    """A flag spelling, either short (`-x`) or long (`--name`), never both."""
    short: Optional[str] = None
    long: Optional[str] = None

    @classmethod
    def parse(cls, literal: str) -> FlagIdentity:
        if literal.startswith("--"):
            return cls(long=literal)
        if literal.startswith("-"):
            return cls(short=literal)
        raise ParseError(f"invalid flag: {literal}")

    def matches(self, *spellings: str) -> bool:
        return self.short in spellings or self.long in spellings

    def __str__(self) -> str:
        return self.long if self.long is not None else (self.short or "")


@dataclass(frozen=True)
class Flag:
    identity: FlagIdentity
    value: Optional[str] = None

    def render(self) -> str:
        if self.value is None:
            return str(self.identity)
        return f"{self.identity}={self.value}"


# --- Command variants ---

@dataclass
class CommandBase:
    name: str = ""
    args: list[str] = field(default_factory=list)
    flags: list[Flag] = field(default_factory=list)
    # Stream slots; None means the parent's stdin/stdout/stderr
    stdin: Optional[IO[Any]] = None
    stdout: Optional[IO[Any]] = None
    stderr: Optional[IO[Any]] = None

    def set_input(self, stream: IO[Any]) -> None:
        self.stdin = stream

    def set_output(self, stream: IO[Any]) -> None:
        self.stdout = stream

    def set_error(self, stream: IO[Any]) -> None:
        self.stderr = stream

    def has_flag(self, *spellings: str) -> bool:
        return any(f.identity.matches(*spellings) for f in self.flags)

    def wants_help(self) -> bool:
        return self.has_flag(*HELP_FLAGS)

    def __str__(self) -> str:
        return format_command(self)  # type: ignore[arg-type]


@dataclass
class ChangeDirectory(CommandBase):
    name: str = "cd"


@dataclass
class PrintWorkingDirectory(CommandBase):
    # Arguments and flags other than -h/--help are rejected when run
    name: str = "pwd"


@dataclass
class HistoryCommand(CommandBase):
    name: str = "history"

    def clears(self) -> bool:
        return self.has_flag("-c", "--clear")


@dataclass
class ExternalProcess(CommandBase):
    name: str = ""

    def argv(self) -> list[str]:
        return [self.name, *self.args, *(f.render() for f in self.flags)]


@dataclass
class Pipeline(CommandBase):
    name: str = "pipeline"
    stages: list[Command] = field(default_factory=list)


# Closed set of command kinds (discriminated by isinstance)
Command = ChangeDirectory | PrintWorkingDirectory | HistoryCommand | ExternalProcess | Pipeline
BUILTINS = (ChangeDirectory, PrintWorkingDirectory, HistoryCommand)


def is_builtin(cmd: Command) -> bool:
    return isinstance(cmd, BUILTINS)


def builtin_for(name: str) -> Optional[Command]:
    """Return a fresh built-in for `name`, or None when `name` is external."""
    match name:
        case "cd":
            return ChangeDirectory()
        case "pwd":
            return PrintWorkingDirectory()
        case "history":
            return HistoryCommand()
    return None


# --- Help ---

@dataclass(frozen=True)
class HelpInfo:
    name: str
    short: str
    long: str
    usage: str
    flags: tuple[tuple[str, str], ...] = ()


_HELP_FLAG_ENTRY = ("-h, --help", "Show this help message and exit")


def help_info(cmd: Command) -> HelpInfo:
    match cmd:
        case ChangeDirectory():
            return HelpInfo(
                name=cmd.name,
                short="Change the current working directory",
                long="Sets the working directory of the shell process to PATH. "
                     "Relative paths are resolved against the current directory.",
                usage="cd <path>",
                flags=(_HELP_FLAG_ENTRY,),
            )
        case PrintWorkingDirectory():
            return HelpInfo(
                name=cmd.name,
                short="Print the current working directory",
                long="Writes the absolute path of the shell's working directory.",
                usage="pwd",
                flags=(_HELP_FLAG_ENTRY,),
            )
        case HistoryCommand():
            return HelpInfo(
                name=cmd.name,
                short="Show saved command history",
                long="Lists the commands saved in the history file, newest first. "
                     "Commands from the running session are saved on exit.",
                usage="history [-c | --clear]",
                flags=(("-c, --clear", "Erase the saved history"), _HELP_FLAG_ENTRY),
            )
        case Pipeline():
            return HelpInfo(
                name=cmd.name,
                short="Chain external commands",
                long="Runs each stage in turn, feeding the output of one stage "
                     "to the input of the next.",
                usage="<command> | <command> [| <command> ...]",
                flags=(_HELP_FLAG_ENTRY,),
            )
    return HelpInfo(
        name=cmd.name,
        short=f"Run the external program '{cmd.name}'",
        long="Arguments and flags are passed to the program unchanged. "
             "Its output is relayed once it exits.",
        usage=f"{cmd.name} [ARGS...] [FLAGS...]",
        flags=(_HELP_FLAG_ENTRY,),
    )


def render_help(info: HelpInfo) -> str:
    lines = [
        f"{info.name.upper()}",
        f"    {info.short}",
        "",
        "DESCRIPTION",
        f"    {info.long}",
        "",
        "USAGE",
        f"    {info.usage}",
    ]
    if info.flags:
        width = max(len(spelling) for spelling, _ in info.flags)
        lines += ["", "FLAGS"]
        lines += [f"    {spelling.ljust(width)}  {desc}" for spelling, desc in info.flags]
    return "\n".join(lines) + "\n"


# --- Display ---

def format_command(cmd: Command) -> str:
    """Single-line form stored in history.

    Arguments and flags are concatenated without a separating space,
    e.g. `grep pattern-i`.
    """
    if isinstance(cmd, Pipeline):
        return " | ".join(format_command(stage) for stage in cmd.stages)
    args = " ".join(cmd.args)
    flags = " ".join(str(f.identity) for f in cmd.flags)
    return f"{cmd.name} {args}{flags}"
