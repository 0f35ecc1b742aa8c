"""Embedded browser process speaking the protocol over pipes.

``PipeProcess.spawn`` starts a browser with ``--remote-debugging-pipe``. The
child reads commands from fd 3 and writes messages to fd 4; the parent ends
are exposed as ``stdio[3]`` (writable) and ``stdio[4]`` (readable) so the
process can be passed as ``Session(process=...)``.

POSIX only.
"""

from __future__ import annotations

import asyncio
import fcntl
import logging
import os
import subprocess
from collections.abc import Sequence
from typing import IO, Any

logger = logging.getLogger(__name__)

PIPE_FLAG = "--remote-debugging-pipe"

# Child-side descriptors are moved above this before landing on 3 and 4
_SCRATCH_FD = 10


class PipeProcess:
    """A child process with DevTools pipes on fds 3 and 4."""

    def __init__(self, popen: subprocess.Popen[bytes], to_child: IO[bytes], from_child: IO[bytes]):
        self._popen = popen
        self.stdio: tuple[Any, ...] = (popen.stdin, popen.stdout, popen.stderr, to_child, from_child)

    @classmethod
    def spawn(
        cls,
        executable: str,
        args: Sequence[str] = (),
        env: dict[str, str] | None = None,
        cwd: str | None = None,
    ) -> PipeProcess:
        """Launch ``executable`` with the pipe flag and wire up fds 3 and 4."""
        child_read, parent_write = os.pipe()
        parent_read, child_write = os.pipe()

        def wire_pipes() -> None:
            # Runs in the child between fork and exec
            read_fd = fcntl.fcntl(child_read, fcntl.F_DUPFD_CLOEXEC, _SCRATCH_FD)
            write_fd = fcntl.fcntl(child_write, fcntl.F_DUPFD_CLOEXEC, _SCRATCH_FD)
            os.dup2(read_fd, 3)
            os.dup2(write_fd, 4)

        command = [executable, PIPE_FLAG, *args]
        try:
            popen = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                env={**os.environ, **env} if env else None,
                cwd=cwd,
                close_fds=False,
                preexec_fn=wire_pipes,
            )
        except OSError:
            for fd in (child_read, parent_write, parent_read, child_write):
                os.close(fd)
            raise

        # Parent keeps only its own ends
        os.close(child_read)
        os.close(child_write)
        logger.info(f"Launched {executable} (pid={popen.pid})")
        return cls(
            popen,
            os.fdopen(parent_write, "wb", buffering=0),
            os.fdopen(parent_read, "rb", buffering=0),
        )

    @property
    def pid(self) -> int:
        return self._popen.pid

    @property
    def returncode(self) -> int | None:
        return self._popen.poll()

    def terminate(self) -> None:
        if self._popen.poll() is None:
            self._popen.terminate()

    def kill(self) -> None:
        if self._popen.poll() is None:
            self._popen.kill()

    async def wait(self, timeout: float | None = None) -> int:
        """Wait for the process to exit without blocking the loop."""
        return await asyncio.to_thread(self._popen.wait, timeout)

    async def close(self, timeout: float = 5.0) -> None:
        """Terminate the process (killing it after ``timeout``) and release the pipes."""
        self.terminate()
        try:
            await self.wait(timeout)
        except subprocess.TimeoutExpired:
            self.kill()
            await self.wait()
        for stream in self.stdio[2:]:
            if stream is not None and not stream.closed:
                stream.close()
        logger.info(f"Process exited (pid={self.pid}, code={self._popen.returncode})")
