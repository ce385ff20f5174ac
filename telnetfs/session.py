import os
import socket
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from telnetfs.config import DEFAULT_MAX_LINE_BYTES, ENCODING, PROMPT_SUFFIX
from telnetfs.utils import format_address, iso_now, json_line, log_error, safe_name


class Session:
    """
    State owned by one client connection.

    Every session has its own inbound accumulation buffer and its own current
    directory; nothing here is shared between connections.
    """

    def __init__(
        self,
        session_id: int,
        sock: socket.socket,
        address: Any,
        root: Path,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        sessions_dir: Optional[str] = None,
        root_tag: str = "server",
    ):
        self.id = session_id
        self.sock = sock
        self.address = format_address(address)
        self.root = root
        self.max_line_bytes = max_line_bytes

        self.cwd: List[str] = []
        self.inbox = bytearray()
        self.outbox = bytearray()
        self.discarding = False
        self.overflowed = False
        self.closed = False

        self.created_at = datetime.now()
        self.last_command = ""
        self.last_command_time: Optional[datetime] = None

        self.session_log_path: Optional[str] = None
        if sessions_dir:
            stamp = self.created_at.strftime("%Y%m%d_%H%M%S")
            filename = f"{root_tag}__s{self.id}__{safe_name(self.address)}__{stamp}.log"
            self.session_log_path = os.path.join(sessions_dir, filename)
        self._log_session("SYS", {"event": "session_created", "address": self.address})

    def _log_session(self, direction: str, payload: Dict[str, Any]) -> None:
        if not self.session_log_path:
            return
        data = {"ts": iso_now(), "dir": direction, "session_id": self.id}
        data.update(payload)
        json_line(self.session_log_path, data)

    @property
    def fileno(self) -> int:
        return self.sock.fileno()

    @property
    def cwd_path(self) -> Path:
        return self.root.joinpath(*self.cwd)

    @property
    def display_path(self) -> str:
        return "/".join([self.root.name] + self.cwd)

    @property
    def prompt(self) -> str:
        return f"{self.address}{PROMPT_SUFFIX}"

    def feed(self, data: bytes) -> List[str]:
        """
        Append received bytes and return every complete line, in order.

        Lines end with ``\\n`` or ``\\r\\n``; the terminator is stripped. A
        partial line longer than ``max_line_bytes`` is dropped together with
        the rest of it up to the next terminator, and ``overflowed`` is set.
        """
        self.inbox.extend(data)
        lines: List[str] = []
        while True:
            end = self.inbox.find(b"\n")
            if self.discarding:
                if end < 0:
                    self.inbox.clear()
                    break
                del self.inbox[: end + 1]
                self.discarding = False
                continue
            if end < 0:
                break
            raw = bytes(self.inbox[:end])
            del self.inbox[: end + 1]
            if raw.endswith(b"\r"):
                raw = raw[:-1]
            lines.append(raw.decode(ENCODING, errors="replace"))

        if len(self.inbox) > self.max_line_bytes:
            self.inbox.clear()
            self.discarding = True
            self.overflowed = True
        return lines

    def pop_overflow(self) -> bool:
        overflowed = self.overflowed
        self.overflowed = False
        return overflowed

    def record_command(self, line: str) -> None:
        self.last_command = line
        self.last_command_time = datetime.now()
        self._log_session("IN", {"event": "command", "line": line, "cwd": self.display_path})

    def queue_output(self, text: str) -> None:
        if text:
            self.outbox.extend(text.encode(ENCODING))

    def flush(self) -> bool:
        """Send as much pending output as the socket accepts; True once drained."""
        while self.outbox:
            try:
                sent = self.sock.send(self.outbox)
            except (BlockingIOError, InterruptedError):
                return False
            if sent <= 0:
                return False
            del self.outbox[:sent]
        return True

    def close(self, reason: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        self._log_session("SYS", {"event": "session_closed", "reason": reason})
        try:
            self.sock.close()
        except OSError as exc:
            log_error(f"socket close failed for {self.address}: {exc}")

    def info(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "address": self.address,
            "cwd": self.display_path,
            "buffered_bytes": len(self.inbox),
            "pending_output_bytes": len(self.outbox),
            "last_command": self.last_command,
            "last_command_time": self.last_command_time.isoformat() if self.last_command_time else None,
            "created_at": self.created_at.isoformat(),
            "session_log_path": self.session_log_path,
        }


class SessionManager:
    def __init__(
        self,
        root: Path,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        cache_dirs: Optional[Dict[str, str]] = None,
        root_tag: str = "server",
    ):
        self.root = root
        self.max_line_bytes = max_line_bytes
        self.cache_dirs = cache_dirs or {}
        self.root_tag = root_tag

        self.sessions: Dict[int, Session] = {}
        self.next_session_id = 1

    def open_session(self, sock: socket.socket, address: Any) -> Session:
        sid = self.next_session_id
        self.next_session_id += 1
        session = Session(
            sid, sock, address, self.root,
            max_line_bytes=self.max_line_bytes,
            sessions_dir=self.cache_dirs.get("sessions_dir"),
            root_tag=self.root_tag,
        )
        self.sessions[session.fileno] = session
        return session

    def get_session(self, fd: int) -> Optional[Session]:
        return self.sessions.get(fd)

    def close_session(self, fd: int, reason: str = "") -> Optional[Session]:
        session = self.sessions.pop(fd, None)
        if session is None:
            return None
        session.close(reason)
        return session

    def total_buffer_bytes(self) -> int:
        return sum(len(s.inbox) + len(s.outbox) for s in self.sessions.values())

    def list_sessions(self) -> List[Dict[str, Any]]:
        rows = [session.info() for session in self.sessions.values()]
        rows.sort(key=lambda item: item["id"])
        return rows

    def close_all(self) -> None:
        sessions = list(self.sessions.values())
        self.sessions.clear()
        for session in sessions:
            session.close("shutdown")
