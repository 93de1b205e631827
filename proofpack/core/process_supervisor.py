"""Spawning and tearing down the dev stack's process tree.

The dev command runs as the leader of a new session (and so a new process
group), with stdout and stderr merged into one pipe that feeds a LogBuffer.
Teardown signals the whole group: graceful stop, a short grace window, then a
forced kill. Teardown never raises and may be called any number of times.
"""

import asyncio
import codecs
import logging
import os
import platform
import signal
import subprocess
from enum import Enum
from typing import Mapping

from proofpack.core.exceptions import SpawnError
from proofpack.core.log_buffer import DEFAULT_CAPACITY, LogBuffer

logger = logging.getLogger(__name__)
devstack_logger = logging.getLogger("proofpack.devstack")

DEFAULT_GRACE_SECONDS = 0.3
READ_CHUNK_SIZE = 4096

IS_WINDOWS = platform.system() == "Windows"


class ProcessState(str, Enum):
    RUNNING = "running"
    TERMINATING = "terminating"
    TERMINATED = "terminated"


class ProcessHandle:
    """Owns one spawned process-group leader and its captured output."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        logs: LogBuffer,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
    ) -> None:
        self.process = process
        self.logs = logs
        self.grace_seconds = grace_seconds
        self.state = ProcessState.RUNNING
        self._reader: asyncio.Task | None = None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    def start_reader(self) -> None:
        if self.process.stdout is not None:
            self._reader = asyncio.create_task(self._read_output(self.process.stdout))

    async def _read_output(self, stream: asyncio.StreamReader) -> None:
        """Copy merged output into the log buffer until EOF."""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = await stream.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                for line in self.logs.feed(decoder.decode(chunk)):
                    devstack_logger.debug("%s", line)
            for line in self.logs.feed(decoder.decode(b"", final=True)) + self.logs.flush():
                devstack_logger.debug("%s", line)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug("Error reading dev stack output: %s", e)

    def _note(self, message: str) -> None:
        logger.debug(message)
        self.logs.append(message)

    def _signal_group(self, sig: int) -> bool:
        """Signal the whole process group; fall back to the leader alone."""
        name = signal.Signals(sig).name
        if not IS_WINDOWS:
            try:
                os.killpg(self.pid, sig)
                return True
            except (ProcessLookupError, PermissionError, OSError) as e:
                self._note(f"kill {name} failed: {e}")

        try:
            if sig == signal.SIGTERM:
                self.process.terminate()
            else:
                self.process.kill()
            return True
        except (ProcessLookupError, OSError):
            return False

    async def terminate(self) -> None:
        """Stop the process tree. Safe to call repeatedly or after exit."""
        if self.state is not ProcessState.RUNNING:
            return
        self.state = ProcessState.TERMINATING

        try:
            delivered = self._signal_group(signal.SIGTERM)
            if delivered or self.returncode is None:
                try:
                    await asyncio.sleep(self.grace_seconds)
                finally:
                    # Escalate even when the grace wait is cancelled
                    self._signal_group(signal.SIGKILL if not IS_WINDOWS else signal.SIGTERM)

            try:
                await asyncio.wait_for(self.process.wait(), timeout=self.grace_seconds)
            except asyncio.TimeoutError:
                self._note(f"process {self.pid} still not reaped after forced kill")
        except Exception as e:
            logger.debug("Ignoring teardown error for pid %s: %s", self.pid, e)
        finally:
            await self._detach_reader()
            self.state = ProcessState.TERMINATED

    async def _detach_reader(self) -> None:
        # Descendants that escaped the group can keep the pipe open forever.
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            await asyncio.gather(self._reader, return_exceptions=True)
        self.logs.flush()


class ProcessSupervisor:
    """Starts shell commands as detached, terminable process groups."""

    def __init__(
        self,
        shell: str = "bash",
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        log_capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        self.shell = shell
        self.grace_seconds = grace_seconds
        self.log_capacity = log_capacity

    def _argv(self, command: str) -> list[str]:
        if IS_WINDOWS:
            return ["cmd", "/c", command]
        return [self.shell, "-lc", command]

    async def spawn(
        self,
        command: str,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        watch: tuple[str, ...] = (),
    ) -> ProcessHandle:
        """Start *command* and begin capturing its output.

        Raises SpawnError if the shell cannot be executed.
        """
        logs = LogBuffer(self.log_capacity)
        for pattern in watch:
            logs.watch(pattern)

        kwargs: dict = {}
        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        argv = self._argv(command)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=dict(env) if env is not None else None,
                cwd=cwd,
                **kwargs,
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            raise SpawnError(f"failed to start dev command via {argv[0]}: {e}") from e

        logger.info("Started dev command (pid %d): %s", process.pid, command)
        handle = ProcessHandle(process, logs, self.grace_seconds)
        handle.start_reader()
        return handle
