"""Backend CLI execution: spawn, stream, finalize."""

from __future__ import annotations

import os
import queue
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass, field
from enum import Enum

from llm_runner.state import config, clean_env
from llm_runner.stream_parser import StreamParser
from llm_runner.telemetry import TokenUsage
from llm_runner.ui import TerminalSink, dbg, dbg_block

# After a kill, how long to keep draining pipes held open by stray grandchildren
DRAIN_GRACE_SECS = 5.0
POLL_SECS = 0.2
INTERRUPTED_EXIT_CODE = 130


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PromptOptions:
    working_directory: str | None = None
    stream_output: bool = True
    automated: bool = True
    verbose: bool = False
    model: str | None = None
    timeout: float | None = None           # seconds; falls back to config.timeout
    env: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PromptResult:
    success: bool
    output: str
    exit_code: int
    duration_ms: int
    token_usage: TokenUsage | None = None
    cost_usd: float | None = None
    status: RunStatus = RunStatus.FAILED

    @property
    def timed_out(self) -> bool:
        return self.status is RunStatus.TIMED_OUT


def _elapsed_ms(t0: float) -> int:
    return int((time.monotonic() - t0) * 1000)


def _exit_code(returncode: int | None) -> int:
    if returncode is None:
        return 1
    if returncode < 0:  # killed by signal N
        return 128 - returncode
    return returncode


def _spawn_failure(e: Exception, t0: float) -> PromptResult:
    dbg(f"spawn failed: {e!r}")
    return PromptResult(success=False, output=str(e), exit_code=1,
                        duration_ms=_elapsed_ms(t0), status=RunStatus.FAILED)


def _kill_process(process: subprocess.Popen):
    """SIGTERM the process group, escalating to SIGKILL."""
    try:
        os.killpg(os.getpgid(process.pid), signal.SIGTERM)
    except (OSError, ProcessLookupError):
        pass
    try:
        process.wait(timeout=3)
    except subprocess.TimeoutExpired:
        try:
            os.killpg(os.getpgid(process.pid), signal.SIGKILL)
        except (OSError, ProcessLookupError):
            pass
        try:
            process.wait(timeout=3)
        except subprocess.TimeoutExpired:
            pass


def _pump(stream, tag: str, line_queue: queue.Queue):
    try:
        for line in stream:
            line_queue.put((tag, line))
    except (OSError, ValueError):
        pass
    line_queue.put((tag, None))  # sentinel: EOF


def _run_interactive(cmd: list[str], options: PromptOptions, env: dict, t0: float) -> PromptResult:
    """Hand the terminal to the backend. Nothing is captured."""
    try:
        completed = subprocess.run(cmd, cwd=options.working_directory, env=env)
    except (OSError, ValueError) as e:
        return _spawn_failure(e, t0)
    except KeyboardInterrupt:
        return PromptResult(success=False, output="", exit_code=INTERRUPTED_EXIT_CODE,
                            duration_ms=_elapsed_ms(t0), status=RunStatus.FAILED)
    code = _exit_code(completed.returncode)
    return PromptResult(
        success=code == 0, output="", exit_code=code, duration_ms=_elapsed_ms(t0),
        status=RunStatus.SUCCEEDED if code == 0 else RunStatus.FAILED,
    )


def run(command: str, args: list[str], options: PromptOptions | None = None,
        parser: StreamParser | None = None, sink=None) -> PromptResult:
    """
    Run a backend CLI and fold its stdout through the stream parser.

    Never raises for process-level problems: a missing executable, a
    non-zero exit, a timeout or Ctrl+C all resolve to a PromptResult.
    """
    options = options or PromptOptions()
    t0 = time.monotonic()
    cmd = [command, *args]
    env = clean_env()
    env.update(options.env)

    dbg(f"CMD: {command} {' '.join(args[:-1])} '{(args[-1] if args else '')[:60]}...'")

    if not options.automated:
        return _run_interactive(cmd, options, env, t0)

    if parser is None:
        parser = StreamParser(verbose=options.verbose or config.verbose)
    if sink is None and options.stream_output:
        sink = TerminalSink()

    try:
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            bufsize=1,
            cwd=options.working_directory,
            env=env,
            start_new_session=True,  # own process group for clean kill
        )
    except (OSError, ValueError) as e:
        return _spawn_failure(e, t0)

    # Both pipes drain into one queue; only this thread touches parser state.
    line_queue: queue.Queue[tuple[str, str | None]] = queue.Queue()
    for stream, tag in ((process.stdout, "stdout"), (process.stderr, "stderr")):
        threading.Thread(target=_pump, args=(stream, tag, line_queue), daemon=True).start()

    output_parts: list[str] = []

    def emit(fragments):
        output_parts.extend(f.text for f in fragments)
        if sink is not None:
            sink.write(fragments)

    timeout = options.timeout if options.timeout is not None else config.timeout
    deadline = t0 + timeout if timeout else None
    drain_deadline: float | None = None
    timed_out = interrupted = False
    open_streams = 2

    try:
        while open_streams:
            now = time.monotonic()
            if deadline is not None and not timed_out and now >= deadline:
                timed_out = True
                dbg(f"timeout after {timeout}s, terminating {command}")
                _kill_process(process)
                drain_deadline = time.monotonic() + DRAIN_GRACE_SECS
            if drain_deadline is not None and time.monotonic() >= drain_deadline:
                dbg("pipes still open after kill; giving up on remaining output")
                break
            try:
                tag, chunk = line_queue.get(timeout=POLL_SECS)
            except queue.Empty:
                continue
            if chunk is None:
                open_streams -= 1
            elif tag == "stdout":
                emit(parser.feed_line(chunk))
            else:
                output_parts.append(chunk)
                if options.stream_output:
                    sys.stderr.write(chunk)
                    sys.stderr.flush()
        process.wait()
    except KeyboardInterrupt:
        interrupted = True
        _kill_process(process)
    finally:
        if process.poll() is None:
            _kill_process(process)

    if not open_streams:
        # Both pumps hit EOF; a pump still blocked in read keeps its pipe.
        process.stdout.close()
        process.stderr.close()

    emit(parser.finish())
    dbg_block("stream state", parser.debug_state())

    duration_ms = _elapsed_ms(t0)
    if interrupted:
        exit_code, status = INTERRUPTED_EXIT_CODE, RunStatus.FAILED
    elif timed_out:
        exit_code, status = _exit_code(process.returncode), RunStatus.TIMED_OUT
    else:
        exit_code = _exit_code(process.returncode)
        status = RunStatus.SUCCEEDED if exit_code == 0 else RunStatus.FAILED

    token_usage = None
    cost_usd = None
    if parser.result is not None:
        if parser.result.usage is not None:
            token_usage = TokenUsage.from_usage(parser.result.usage)
        cost_usd = parser.result.total_cost_usd

    return PromptResult(
        success=status is RunStatus.SUCCEEDED,
        output="".join(output_parts),
        exit_code=exit_code,
        duration_ms=duration_ms,
        token_usage=token_usage,
        cost_usd=cost_usd,
        status=status,
    )
