from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from telnetfs.config import HELP_LINES
from telnetfs import fs
from telnetfs.session import Session

NO_ARG_COMMANDS = {"--help", "exit", "ls"}
ONE_ARG_COMMANDS = {"mkdir", "touch", "cd", "rm", "cat"}
TWO_ARG_COMMANDS = {"copy"}


@dataclass
class Command:
    name: str
    args: List[Optional[str]] = field(default_factory=list)


@dataclass
class Response:
    text: str = ""
    close: bool = False


def parse_command(line: str) -> Optional[Command]:
    """
    Turn one input line into a Command, or None for a blank line.

    The first whitespace-separated token is the name (case-sensitive).
    Single-argument verbs take the rest of the line, trimmed, so names with
    inner spaces survive. ``copy`` takes the next two tokens; missing ones
    are None.
    """
    stripped = line.strip()
    if not stripped:
        return None
    parts = stripped.split(None, 1)
    name = parts[0]
    rest = parts[1].strip() if len(parts) > 1 else ""

    if name in ONE_ARG_COMMANDS:
        return Command(name, [rest])
    if name in TWO_ARG_COMMANDS:
        tokens = rest.split()
        args: List[Optional[str]] = list(tokens[:2])
        while len(args) < 2:
            args.append(None)
        return Command(name, args)
    return Command(name)


def _help(session: Session, args: List[Optional[str]]) -> Response:
    return Response("".join(HELP_LINES))


def _exit(session: Session, args: List[Optional[str]]) -> Response:
    return Response(close=True)


def _ls(session: Session, args: List[Optional[str]]) -> Response:
    return Response(fs.list_dir(session) + "\n")


def _one_arg(operation: Callable[[Session, str], str]) -> Callable[[Session, List[Optional[str]]], Response]:
    def handler(session: Session, args: List[Optional[str]]) -> Response:
        if len(args) != 1:
            return Response()
        return Response(operation(session, args[0] or "") + "\n")
    return handler


def _copy(session: Session, args: List[Optional[str]]) -> Response:
    if len(args) != 2:
        return Response()
    return Response(fs.copy_entry(session, args[0], args[1]) + "\n")


HANDLERS: Dict[str, Callable[[Session, List[Optional[str]]], Response]] = {
    "--help": _help,
    "exit": _exit,
    "ls": _ls,
    "mkdir": _one_arg(fs.make_dir),
    "touch": _one_arg(fs.make_file),
    "cd": _one_arg(fs.change_dir),
    "rm": _one_arg(fs.remove_entry),
    "cat": _one_arg(fs.show_file),
    "copy": _copy,
}


def dispatch(session: Session, command: Optional[Command]) -> Response:
    if command is None:
        return Response()
    handler = HANDLERS.get(command.name)
    if handler is None:
        return Response()
    return handler(session, command.args)
