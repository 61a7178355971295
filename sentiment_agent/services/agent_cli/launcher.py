"""
Process launcher for the external agent CLI.

Each LaunchStrategy is one way of getting the prompt into the agent (temp
file on stdin, single argv element, shell pipe). A strategy owns whatever it
creates and removes it on every exit path; AgentLauncher tries them in order.
"""
from __future__ import annotations

import logging
import os
import queue
import shlex
import signal
import subprocess
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Sequence

from ...config import settings
from ...constants import SCHEMA_FIELDS, TEMP_PROMPT_PREFIX
from ...exceptions import (
    ConfigurationError, ProcessSpawnFailed, ProcessExitedWithError, ProcessTimedOut,
)
from .stream import Deadline, StreamDecoder, StreamResult, decode_stream

logger = logging.getLogger(__name__)

_POSIX = os.name == "posix"


class SchemaHint(str, Enum):
    SENTIMENT = "sentiment"


SCHEMA_ANCHORS = {
    SchemaHint.SENTIMENT: SCHEMA_FIELDS,
}


@dataclass(frozen=True)
class InvocationRequest:
    prompt: str
    input_payload: str | None = None  # path whose contents go to the agent's stdin
    schema_hint: SchemaHint = SchemaHint.SENTIMENT

    @property
    def anchors(self) -> tuple[str, ...]:
        return SCHEMA_ANCHORS[self.schema_hint]


@dataclass(frozen=True)
class PreparedCommand:
    args: list[str] | str
    stdin_path: str | None = None
    shell: bool = False


def _remove(path: str) -> None:
    try:
        os.unlink(path)
        logger.debug("Removed temporary prompt file %s", path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to remove temporary prompt file %s: %s", path, exc)


class LaunchStrategy(ABC):
    name = "base"

    def __init__(self, command: Sequence[str]):
        self.command = list(command)

    @abstractmethod
    def prepare(self, request: InvocationRequest):
        """Context manager yielding a PreparedCommand; releases its resources on exit."""


class TempFileStrategy(LaunchStrategy):
    """Prompt (after any payload) written to a unique UTF-8 file that becomes stdin."""
    name = "temp_file"

    def __init__(self, command: Sequence[str], tmp_dir: str | None = None):
        super().__init__(command)
        self.tmp_dir = tmp_dir

    @contextmanager
    def prepare(self, request: InvocationRequest) -> Iterator[PreparedCommand]:
        try:
            fd, path = tempfile.mkstemp(prefix=TEMP_PROMPT_PREFIX, suffix=".txt", dir=self.tmp_dir)
        except OSError as exc:
            raise ProcessSpawnFailed(self.name, f"cannot create temp file: {exc}") from exc
        try:
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    if request.input_payload:
                        fh.write(Path(request.input_payload).read_text(encoding="utf-8"))
                        fh.write("\n")
                    fh.write(request.prompt)
            except OSError as exc:
                raise ProcessSpawnFailed(self.name, f"cannot write prompt file: {exc}") from exc
            logger.debug("Prompt written to %s (%d chars)", path, len(request.prompt))
            yield PreparedCommand(args=list(self.command), stdin_path=path)
        finally:
            _remove(path)


class InlineStrategy(LaunchStrategy):
    """Prompt as a single argv element; no shell, so no quoting is involved."""
    name = "inline"

    def __init__(self, command: Sequence[str], max_chars: int):
        super().__init__(command)
        self.max_chars = max_chars

    @contextmanager
    def prepare(self, request: InvocationRequest) -> Iterator[PreparedCommand]:
        if len(request.prompt) > self.max_chars:
            raise ProcessSpawnFailed(
                self.name, f"prompt too long for inline method ({len(request.prompt)} > {self.max_chars})"
            )
        yield PreparedCommand(args=[*self.command, request.prompt], stdin_path=request.input_payload)


class ShellPipeStrategy(LaunchStrategy):
    """printf/cat piped into the agent through /bin/sh."""
    name = "shell_pipe"

    @contextmanager
    def prepare(self, request: InvocationRequest) -> Iterator[PreparedCommand]:
        feed = f"printf '%s' {shlex.quote(request.prompt)}"
        if request.input_payload:
            feed = f"{{ cat {shlex.quote(request.input_payload)}; printf '\\n'; {feed}; }}"
        yield PreparedCommand(args=f"{feed} | {shlex.join(self.command)}", shell=True)


_EOF = object()


class ProcessHandle:
    """
    One live agent process. stdout and stderr are drained by two threads so a
    full stderr pipe can never block the agent while we only read stdout.
    """

    def __init__(self, proc: subprocess.Popen, grace: float = 2.0):
        self.proc = proc
        self.grace = grace
        self._stdout: queue.Queue = queue.Queue()
        self._stderr: list[bytes] = []
        self._threads = [
            threading.Thread(target=self._pump_stdout, name=f"agent-stdout-{proc.pid}", daemon=True),
            threading.Thread(target=self._pump_stderr, name=f"agent-stderr-{proc.pid}", daemon=True),
        ]
        for t in self._threads:
            t.start()

    @property
    def pid(self) -> int:
        return self.proc.pid

    def _pump_stdout(self) -> None:
        try:
            for chunk in iter(self.proc.stdout.readline, b""):
                self._stdout.put(chunk)
        except (OSError, ValueError) as exc:
            logger.debug("stdout reader for pid %s stopped: %s", self.proc.pid, exc)
        finally:
            self._stdout.put(_EOF)

    def _pump_stderr(self) -> None:
        try:
            for chunk in iter(self.proc.stderr.readline, b""):
                self._stderr.append(chunk)
        except (OSError, ValueError) as exc:
            logger.debug("stderr reader for pid %s stopped: %s", self.proc.pid, exc)

    def lines(self, deadline: Deadline) -> Iterator[str]:
        while True:
            try:
                item = self._stdout.get(timeout=deadline.remaining() or 0.001)
            except queue.Empty:
                raise deadline.timed_out() from None
            if item is _EOF:
                return
            yield item.decode("utf-8", errors="replace")
            if deadline.expired():
                raise deadline.timed_out()

    def wait(self, deadline: Deadline) -> int | None:
        try:
            return self.proc.wait(timeout=deadline.remaining())
        except subprocess.TimeoutExpired:
            raise deadline.timed_out() from None

    def wait_or_terminate(self, grace: float) -> int | None:
        try:
            return self.proc.wait(timeout=grace)
        except subprocess.TimeoutExpired:
            return self.terminate()

    def _signal(self, sig: int) -> None:
        try:
            if _POSIX:
                os.killpg(self.proc.pid, sig)
            else:
                self.proc.send_signal(sig)
        except (ProcessLookupError, PermissionError):
            pass

    def terminate(self) -> int | None:
        """SIGTERM the process group, SIGKILL after the grace period. Returns the exit code."""
        if self.proc.poll() is not None:
            return self.proc.returncode
        logger.debug("Terminating agent pid %s", self.proc.pid)
        self._signal(signal.SIGTERM)
        try:
            return self.proc.wait(timeout=self.grace)
        except subprocess.TimeoutExpired:
            self._signal(signal.SIGKILL if _POSIX else signal.SIGTERM)
            return self.proc.wait()

    def stderr_text(self) -> str:
        self._threads[1].join(timeout=0.5)
        return b"".join(self._stderr).decode("utf-8", errors="replace")

    def close(self) -> None:
        self.terminate()
        for t in self._threads:
            t.join(timeout=self.grace)
        for stream in (self.proc.stdout, self.proc.stderr):
            if stream is not None and not any(t.is_alive() for t in self._threads):
                stream.close()


class AgentLauncher:
    """
    Runs one InvocationRequest through the strategy chain.

    Prompts above the inline threshold start with the temp-file strategy,
    shorter ones with the inline strategy; the remaining strategies follow in
    their default order. A timeout aborts the chain at once.
    """

    def __init__(
        self,
        command: Sequence[str] | None = None,
        *,
        inline_threshold: int | None = None,
        inline_max: int | None = None,
        tmp_dir: str | None = None,
        workdir: str | None = None,
        terminate_grace: float | None = None,
        strategies: Sequence[LaunchStrategy] | None = None,
    ):
        self.command = list(command) if command is not None else settings.agent_argv()
        if not self.command:
            raise ConfigurationError("Agent command is empty (set AGENT_COMMAND)")
        self.inline_threshold = inline_threshold if inline_threshold is not None else settings.agent_inline_threshold
        self.inline_max = inline_max if inline_max is not None else settings.agent_inline_max
        self.tmp_dir = tmp_dir if tmp_dir is not None else settings.agent_tmp_dir
        self.workdir = workdir if workdir is not None else settings.agent_workdir
        self.terminate_grace = terminate_grace if terminate_grace is not None else settings.agent_terminate_grace_sec
        self.strategies = list(strategies) if strategies is not None else [
            TempFileStrategy(self.command, self.tmp_dir),
            InlineStrategy(self.command, self.inline_max),
            ShellPipeStrategy(self.command),
        ]

    def ordered_strategies(self, request: InvocationRequest) -> list[LaunchStrategy]:
        if len(request.prompt) > self.inline_threshold:
            return list(self.strategies)
        inline = [s for s in self.strategies if s.name == InlineStrategy.name]
        return inline + [s for s in self.strategies if s.name != InlineStrategy.name]

    def spawn(self, prepared: PreparedCommand, strategy: str) -> ProcessHandle:
        stdin = None
        try:
            stdin = open(prepared.stdin_path, "rb") if prepared.stdin_path else subprocess.DEVNULL
            proc = subprocess.Popen(
                prepared.args,
                stdin=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                shell=prepared.shell,
                cwd=self.workdir,
                start_new_session=_POSIX,
            )
        except OSError as exc:
            raise ProcessSpawnFailed(strategy, str(exc)) from exc
        finally:
            if stdin not in (None, subprocess.DEVNULL):
                stdin.close()
        logger.debug("Spawned agent pid %s via %s", proc.pid, strategy)
        return ProcessHandle(proc, grace=self.terminate_grace)

    def run_strategy(self, strategy: LaunchStrategy, request: InvocationRequest,
                     deadline: Deadline) -> StreamResult:
        with strategy.prepare(request) as prepared:
            handle = self.spawn(prepared, strategy.name)
            try:
                return decode_stream(handle, StreamDecoder(request.anchors), deadline, self.terminate_grace)
            finally:
                handle.close()

    def run(self, request: InvocationRequest, deadline: Deadline) -> StreamResult:
        chain = self.ordered_strategies(request)
        last_error: Exception | None = None
        for i, strategy in enumerate(chain, 1):
            if deadline.expired():
                raise deadline.timed_out()
            logger.info("Trying agent approach %d/%d (%s)...", i, len(chain), strategy.name)
            try:
                result = self.run_strategy(strategy, request, deadline)
            except ProcessTimedOut:
                logger.warning("Approach %s timed out after %gs", strategy.name, deadline.seconds)
                raise
            except (ProcessSpawnFailed, ProcessExitedWithError) as exc:
                logger.warning("Approach %d (%s) failed: %s", i, strategy.name, exc)
                last_error = exc
                continue
            logger.info(
                "Approach %d (%s) succeeded: %s candidate, %d chars, exit=%s%s",
                i, strategy.name, result.candidate.provenance.name, len(result.candidate.text),
                result.exit_code, " (terminated on confirmation request)" if result.terminated_early else "",
            )
            return result
        raise last_error or ProcessSpawnFailed("chain", "no launch strategies configured")
