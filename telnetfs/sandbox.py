from __future__ import annotations

from pathlib import Path
from typing import Iterable


class SandboxViolation(PermissionError):
    """Raised when a requested path is outside the server root."""


def ensure_root(raw_root: str) -> Path:
    """
    Resolve the server root to an absolute directory, creating it if absent.

    The root is the only directory clients can ever reach; it is created once
    at startup and never removed by any command.
    """
    if not raw_root:
        raise SandboxViolation("server root cannot be empty")
    root = Path(raw_root).expanduser().resolve(strict=False)
    root.mkdir(parents=True, exist_ok=True)
    if not root.is_dir():
        raise SandboxViolation(f"server root is not a directory: {root}")
    return root


def is_within(path: Path, root: Path) -> bool:
    return path == root or path.is_relative_to(root)


def safe_join(
    root: Path,
    segments: Iterable[str],
    user_path: str,
    follow_symlinks: bool = True,
) -> Path:
    """
    Join ``root / segments / user_path`` and verify the result stays inside root.

    Symlinks are resolved before the check, so a link pointing outside the
    root is rejected the same way a ``..`` traversal is. With
    ``follow_symlinks=False`` only the parent is resolved and a final
    symlink component is returned as the link itself.
    """
    if not user_path:
        raise SandboxViolation("path cannot be empty")
    if "\x00" in user_path:
        raise SandboxViolation("path contains a NUL byte")
    joined = root.joinpath(*segments) / user_path
    if follow_symlinks or joined.name in ("", ".."):
        candidate = joined.resolve(strict=False)
    else:
        candidate = joined.parent.resolve(strict=False) / joined.name
    if not is_within(candidate, root):
        raise SandboxViolation(f"path '{user_path}' escapes server root")
    return candidate
