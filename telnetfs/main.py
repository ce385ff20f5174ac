import argparse
from typing import List, Optional

from telnetfs.config import MIN_MAX_LINE_BYTES, MAX_MAX_LINE_BYTES, config
from telnetfs.sandbox import SandboxViolation, ensure_root
from telnetfs.server import TelnetServer
from telnetfs.session import SessionManager
from telnetfs.utils import clamp_int, log_error, make_cache_dirs, resolve_runtime_paths


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Line-based telnet file server (sandboxed ls/mkdir/touch/cd/rm/copy/cat)"
    )
    parser.add_argument("--host", help="Address to listen on (overrides TELNETFS_HOST env)")
    parser.add_argument("--port", type=int, help="TCP port (overrides TELNETFS_PORT env)")
    parser.add_argument("--root", help="Server root directory (overrides TELNETFS_ROOT env)")
    parser.add_argument("--max-line", type=int, help="Max bytes per command line (overrides TELNETFS_MAX_LINE env)")
    parser.add_argument("--cache-dir", help="Where session logs are written (overrides TELNETFS_CACHE_DIR env)")
    parser.add_argument("--session-logs", action="store_true", help="Write a JSON-lines event log per session")
    parser.add_argument("--no-session-logs", action="store_true", help="Disable per-session event logs")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    # Pre-load from environment
    config.load_from_env()

    parser = build_parser()
    args = parser.parse_args(argv)

    # Apply args over env vars
    if args.host: config.HOST = args.host
    if args.port is not None: config.PORT = args.port
    if args.root: config.SERVER_ROOT = args.root
    if args.max_line is not None:
        config.MAX_LINE_BYTES = clamp_int(args.max_line, config.MAX_LINE_BYTES, MIN_MAX_LINE_BYTES, MAX_MAX_LINE_BYTES)
    if args.cache_dir: config.CACHE_DIR = args.cache_dir

    if args.no_session_logs:
        config.SESSION_LOGS = False
    elif args.session_logs:
        config.SESSION_LOGS = True

    # Validation
    if not 0 <= config.PORT <= 65535:
        parser.error(f"port out of range: {config.PORT}")

    runtime_paths = resolve_runtime_paths(server_root_arg=config.SERVER_ROOT, cache_dir_arg=config.CACHE_DIR)
    try:
        root = ensure_root(runtime_paths["server_root"])
    except (SandboxViolation, OSError) as exc:
        parser.error(f"cannot use server root {runtime_paths['server_root']}: {exc}")

    if config.SESSION_LOGS:
        config.CACHE_DIRS = make_cache_dirs(runtime_paths["cache_root"])

    manager = SessionManager(
        root,
        max_line_bytes=config.MAX_LINE_BYTES,
        cache_dirs=config.CACHE_DIRS,
        root_tag=runtime_paths["root_tag"],
    )
    server = TelnetServer(config.HOST, config.PORT, manager)
    try:
        server.start()
    except OSError as exc:
        log_error(f"cannot listen on {config.HOST}:{config.PORT}: {exc}")
        raise

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        log_error("interrupted")

if __name__ == "__main__":
    main()
