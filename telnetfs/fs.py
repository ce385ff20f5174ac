import os
import shutil
from pathlib import Path
from typing import Callable, Optional

from telnetfs.config import ENCODING
from telnetfs.sandbox import SandboxViolation, is_within, safe_join
from telnetfs.session import Session
from telnetfs.utils import log_error

NO_SUCH_ENTRY = "There is no such file or directory"
NO_SUCH_DIRECTORY = "There is no such directory"
SAME_FILE = "Source and destination are the same"


def _resolve(session: Session, name: Optional[str], follow_symlinks: bool = True) -> Optional[Path]:
    # None means the argument is missing, unusable on the host, or outside the root
    if not name:
        return None
    try:
        return safe_join(session.root, session.cwd, name, follow_symlinks=follow_symlinks)
    except SandboxViolation as exc:
        log_error(f"sandbox: session {session.id} ({session.address}): {exc}")
    except (ValueError, RuntimeError, OSError) as exc:
        log_error(f"bad path from session {session.id} ({session.address}): {exc}")
    return None


def _check(session: Session, path: Path, test: Callable[[Path], bool]) -> bool:
    # a lookup the host refuses (name too long, no permission) counts as missing
    try:
        return test(path)
    except (ValueError, OSError) as exc:
        log_error(f"lookup failed for session {session.id} ({session.address}): {exc}")
        return False


def _host_failure(session: Session, action: str, exc: OSError) -> str:
    log_error(f"{action} failed for session {session.id} ({session.address}): {exc}")
    return NO_SUCH_ENTRY


def list_dir(session: Session) -> str:
    try:
        return "\t".join(os.listdir(session.cwd_path))
    except FileNotFoundError:
        return NO_SUCH_DIRECTORY
    except OSError as exc:
        return _host_failure(session, "ls", exc)


def make_file(session: Session, name: str) -> str:
    path = _resolve(session, name)
    if path is None:
        return NO_SUCH_ENTRY
    try:
        if path.exists():
            return f"{name} already exists"
        path.touch(exist_ok=False)
    except FileExistsError:
        return f"{name} already exists"
    except OSError as exc:
        return _host_failure(session, "touch", exc)
    return f"{name} was created successfully"


def make_dir(session: Session, name: str) -> str:
    path = _resolve(session, name)
    if path is None:
        return NO_SUCH_ENTRY
    try:
        if path.exists():
            return f"{name} already exists"
        path.mkdir()
    except FileExistsError:
        return f"{name} already exists"
    except OSError as exc:
        return _host_failure(session, "mkdir", exc)
    return f"{name} was created successfully"


def change_dir(session: Session, target: str) -> str:
    if target and os.path.normpath(target) == "..":
        if not session.cwd:
            return f"Current directory is root - {session.display_path}"
        session.cwd = session.cwd[:-1]
        return f"Dir was changed to {session.display_path}"

    path = _resolve(session, target)
    if path is None or not _check(session, path, Path.is_dir):
        return NO_SUCH_DIRECTORY
    session.cwd = list(path.relative_to(session.root).parts)
    return f"Dir was changed to {session.display_path}"


def remove_entry(session: Session, name: str) -> str:
    """
    Delete a file or an empty directory; non-empty directories are refused.

    A symlink is removed as a link, its target is left alone.
    """
    path = _resolve(session, name, follow_symlinks=False)
    if path is None or path == session.root:
        return NO_SUCH_ENTRY
    try:
        if path.is_symlink():
            path.unlink()
        elif not path.exists():
            return NO_SUCH_ENTRY
        elif path.is_dir():
            if any(path.iterdir()):
                return "Directory is not empty"
            path.rmdir()
        else:
            path.unlink()
    except FileNotFoundError:
        return NO_SUCH_ENTRY
    except OSError as exc:
        return _host_failure(session, "rm", exc)
    return "File was deleted"


def copy_entry(session: Session, source: Optional[str], target: Optional[str]) -> str:
    """
    Copy ``source`` onto ``target`` inside the sandbox.

    The destination does not need to exist and is overwritten when it does.
    A directory source is copied as a tree, merged into an existing
    destination directory.
    """
    src_path = _resolve(session, source)
    if src_path is None or not _check(session, src_path, Path.exists):
        return "Source path does not exist"
    dst_path = _resolve(session, target)
    if dst_path is None or dst_path == session.root:
        return "Destination path does not exist"
    if dst_path == src_path:
        return SAME_FILE
    try:
        if src_path.is_dir():
            if is_within(dst_path, src_path):
                return "Destination is inside source"
            shutil.copytree(src_path, dst_path, dirs_exist_ok=True)
        elif dst_path.is_dir():
            return "Destination is a directory"
        else:
            shutil.copyfile(src_path, dst_path)
    except shutil.SameFileError:
        return SAME_FILE
    except OSError as exc:
        return _host_failure(session, "copy", exc)
    return "Copy was created"


def show_file(session: Session, name: str) -> str:
    path = _resolve(session, name)
    if path is None or not _check(session, path, Path.is_file):
        return "File does not exist"
    try:
        return path.read_bytes().decode(ENCODING, errors="replace")
    except OSError as exc:
        return _host_failure(session, "cat", exc)
