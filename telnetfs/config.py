import os
from typing import Optional, Dict

from telnetfs.utils import clamp_int, to_bool

# ========= Static config =========
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 1234
DEFAULT_ROOT = "server"
LISTEN_BACKLOG = 16
SELECT_TIMEOUT = 0.5

READ_CHUNK_SIZE = 512
DEFAULT_MAX_LINE_BYTES = 4096
MIN_MAX_LINE_BYTES = 64
MAX_MAX_LINE_BYTES = 1_000_000
MAX_PENDING_OUTPUT_BYTES = 4_000_000

ENCODING = "utf-8"

# ========= Protocol text =========
WELCOME_LINES = (
    "Hello user!\n",
    "Enter --help for support info\n",
)
PROMPT_SUFFIX = ": "

HELP_LINES = (
    "\tls          view all files from current directory\n",
    "\tmkdir       create directory\n",
    "\ttouch       create file\n",
    "\tcd          move through the folder tree\n",
    "\trm          remove object\n",
    "\tcopy        copy file\n",
    "\tcat         show file content\n",
)

LINE_TOO_LONG_MESSAGE = "Command is too long\n"

# ========= Runtime Configuration =========
class ServerConfig:
    def __init__(self):
        self.HOST: str = DEFAULT_HOST
        self.PORT: int = DEFAULT_PORT
        self.SERVER_ROOT: str = DEFAULT_ROOT
        self.MAX_LINE_BYTES: int = DEFAULT_MAX_LINE_BYTES
        self.SESSION_LOGS: bool = False
        self.CACHE_DIR: Optional[str] = None
        self.CACHE_DIRS: Dict[str, str] = {}

    def load_from_env(self):
        self.HOST = os.environ.get("TELNETFS_HOST", self.HOST)
        self.PORT = clamp_int(os.environ.get("TELNETFS_PORT", self.PORT), self.PORT, 0, 65535)
        self.SERVER_ROOT = os.environ.get("TELNETFS_ROOT", self.SERVER_ROOT)
        self.MAX_LINE_BYTES = clamp_int(
            os.environ.get("TELNETFS_MAX_LINE", self.MAX_LINE_BYTES),
            self.MAX_LINE_BYTES, MIN_MAX_LINE_BYTES, MAX_MAX_LINE_BYTES,
        )
        self.SESSION_LOGS = to_bool(os.environ.get("TELNETFS_SESSION_LOGS"), self.SESSION_LOGS)
        self.CACHE_DIR = os.environ.get("TELNETFS_CACHE_DIR", self.CACHE_DIR)

# Global instance
config = ServerConfig()
