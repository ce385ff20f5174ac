import selectors
import socket
from typing import Optional, Tuple

from telnetfs.commands import dispatch, parse_command
from telnetfs.fs import NO_SUCH_ENTRY
from telnetfs.config import (
    LINE_TOO_LONG_MESSAGE, LISTEN_BACKLOG, MAX_PENDING_OUTPUT_BYTES,
    READ_CHUNK_SIZE, SELECT_TIMEOUT, WELCOME_LINES
)
from telnetfs.session import Session, SessionManager
from telnetfs.utils import format_address, log_error


class TelnetServer:
    """
    Single-threaded, non-blocking line server.

    One selector watches the listening socket and every client connection.
    Accepts, reads and command handling all happen on the thread that calls
    ``serve_forever``; the selector is the only place it waits.
    """

    def __init__(
        self,
        host: str,
        port: int,
        manager: SessionManager,
        select_timeout: float = SELECT_TIMEOUT,
    ):
        self.host = host
        self.port = port
        self.manager = manager
        self.select_timeout = select_timeout
        self.selector = selectors.DefaultSelector()
        self.listener: Optional[socket.socket] = None
        self._stopping = False

    @property
    def address(self) -> Tuple[str, int]:
        if self.listener is None:
            return self.host, self.port
        return self.listener.getsockname()[:2]

    def start(self) -> Tuple[str, int]:
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            listener.bind((self.host, self.port))
            listener.listen(LISTEN_BACKLOG)
        except OSError:
            listener.close()
            raise
        listener.setblocking(False)
        self.selector.register(listener, selectors.EVENT_READ, data=None)
        self.listener = listener
        return self.address

    def stop(self) -> None:
        self._stopping = True

    def serve_forever(self) -> None:
        if self.listener is None:
            self.start()
        log_error(f"Server started on {format_address(self.address)}, root={self.manager.root}")
        try:
            while not self._stopping and self.listener.fileno() != -1:
                for key, mask in self.selector.select(timeout=self.select_timeout):
                    if key.data is None:
                        self._accept()
                        continue
                    session = self.manager.get_session(key.fd)
                    if session is None or session.closed:
                        continue
                    try:
                        if mask & selectors.EVENT_READ:
                            self._read(session)
                        if mask & selectors.EVENT_WRITE and not session.closed:
                            self._flush(session)
                    except Exception as exc:
                        log_error(f"unexpected error for {session.address}: {exc}")
                        self._close(session, f"unexpected error: {exc}")
        finally:
            self._shutdown()

    def _accept(self) -> None:
        try:
            sock, address = self.listener.accept()
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            log_error(f"accept error: {exc}")
            return

        sock.setblocking(False)
        session = self.manager.open_session(sock, address)
        self.selector.register(sock, selectors.EVENT_READ, data=session)
        log_error(
            f"Client accepted. IP: {session.address} "
            f"(sessions={len(self.manager.sessions)}, buffered={self.manager.total_buffer_bytes()}B)"
        )
        for line in WELCOME_LINES:
            session.queue_output(line)
        session.queue_output(session.prompt)
        self._flush(session)

    def _read(self, session: Session) -> None:
        try:
            data = session.sock.recv(READ_CHUNK_SIZE)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            log_error(f"read error from {session.address}: {exc}")
            self._close(session, f"read error: {exc}")
            return

        if not data:
            log_error(f"Client disconnected. IP: {session.address}")
            self._close(session, "eof")
            return

        for line in session.feed(data):
            try:
                keep_open = self._handle_line(session, line)
            except Exception as exc:
                log_error(f"unexpected error on {line!r} from {session.address}: {exc}")
                session.queue_output(NO_SUCH_ENTRY + "\n")
                self._flush(session)
                self._close(session, f"unexpected error: {exc}")
                return
            if not keep_open:
                return
        if session.pop_overflow():
            session.queue_output(LINE_TOO_LONG_MESSAGE)
            session.queue_output(session.prompt)
        self._flush(session)

    def _handle_line(self, session: Session, line: str) -> bool:
        command = parse_command(line)
        if command is not None:
            session.record_command(line)
        response = dispatch(session, command)
        session.queue_output(response.text)
        if response.close:
            log_error(f"Client logged out. IP: {session.address}")
            self._flush(session)
            self._close(session, "exit")
            return False
        session.queue_output(session.prompt)
        return True

    def _flush(self, session: Session) -> None:
        if session.closed:
            return
        try:
            drained = session.flush()
        except OSError as exc:
            log_error(f"write error to {session.address}: {exc}")
            self._close(session, f"write error: {exc}")
            return
        if session.closed:
            return
        if len(session.outbox) > MAX_PENDING_OUTPUT_BYTES:
            log_error(f"output backlog too large for {session.address}, closing")
            self._close(session, "output backlog")
            return

        events = selectors.EVENT_READ
        if not drained:
            events |= selectors.EVENT_WRITE
        key = self.selector.get_key(session.sock)
        if key.events != events:
            self.selector.modify(session.sock, events, data=session)

    def _close(self, session: Session, reason: str) -> None:
        try:
            self.selector.unregister(session.sock)
        except (KeyError, ValueError):
            pass
        self.manager.close_session(session.fileno, reason)
        session.close(reason)

    def _shutdown(self) -> None:
        log_error("shutting down...")
        for row in self.manager.list_sessions():
            log_error(f"closing session {row['id']} ({row['address']}), cwd={row['cwd']}")
        for session in list(self.manager.sessions.values()):
            try:
                self.selector.unregister(session.sock)
            except (KeyError, ValueError):
                pass
        self.manager.close_all()
        if self.listener is not None:
            try:
                self.selector.unregister(self.listener)
            except (KeyError, ValueError):
                pass
            self.listener.close()
        self.selector.close()
