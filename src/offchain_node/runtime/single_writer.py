import fcntl
import os
from typing import Optional, TextIO

from offchain_node.runtime.errors import StoreError


class SingleWriterLock:
    """
    Enforces a single process writing the node database.
    Uses a filesystem lock held for the process lifetime. Linux/macOS only.
    """

    def __init__(self, path: str):
        self.path = path
        self._fd: Optional[TextIO] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        fd = open(self.path, "w")
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            fd.close()
            raise StoreError(reason=f"single-writer lock already held: {self.path}") from e
        fd.write(str(os.getpid()))
        fd.flush()
        self._fd = fd

    def release(self) -> None:
        if self._fd:
            try:
                fcntl.flock(self._fd, fcntl.LOCK_UN)
            finally:
                self._fd.close()
                self._fd = None
