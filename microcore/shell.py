"""Running shell commands, in the foreground or as background jobs with callbacks."""

from __future__ import annotations

import codecs
import queue
import shlex
import subprocess
import threading
from dataclasses import dataclass, field
from typing import IO, Any, Callable, Optional

Callback = Callable[[str, tuple], Any]

JOBS: "queue.Queue[JobFunction]" = queue.Queue()
"""Callbacks from background jobs, waiting to be run by the main loop."""


@dataclass
class JobFunction:
    """A job callback together with the output and user arguments to call it with."""

    function: Callback
    output: str
    args: tuple = ()

    def __call__(self) -> Any:
        return self.function(self.output, self.args)


@dataclass
class Job:
    """A process started in the background and the pipe to its standard input."""

    process: subprocess.Popen
    stdin: Optional[IO[bytes]]
    _done: threading.Event = field(default_factory=threading.Event, repr=False)

    def stop(self) -> None:
        """Kill the job's process."""
        self.process.kill()

    def send(self, data: str) -> None:
        """Write ``data`` to the job's standard input."""
        if self.stdin is None:
            return
        self.stdin.write(data.encode("utf-8"))
        self.stdin.flush()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait until the job has finished and its exit callback is queued."""
        return self._done.wait(timeout)


def exec_command(name: str, *args: str) -> str:
    """Run a program and return its standard output and error together.

    Raises :class:`subprocess.CalledProcessError`, carrying the output, if the
    program exits with a non-zero status.
    """
    result = subprocess.run(
        [name, *args], stdout=subprocess.PIPE, stderr=subprocess.STDOUT, stdin=subprocess.DEVNULL
    )
    output = result.stdout.decode("utf-8", errors="replace")
    if result.returncode != 0:
        raise subprocess.CalledProcessError(result.returncode, [name, *args], output=output)
    return output


def _split(text: str) -> list[str]:
    args = shlex.split(text)
    if not args:
        raise ValueError("No arguments")
    return args


def run_command(text: str) -> str:
    """Split a command line the way a shell would and run it; see :func:`exec_command`."""
    args = _split(text)
    return exec_command(args[0], *args[1:])


def _describe(err: Exception) -> str:
    if isinstance(err, subprocess.CalledProcessError):
        return f"exit status {err.returncode}"
    return str(err)


def run_background_shell(text: str) -> Callable[[], str]:
    """Check a command line and return a function that runs it and reports the result.

    The function returns the command's output, or a message naming the
    command and its error.
    """
    name = _split(text)[0]

    def run() -> str:
        try:
            return run_command(text)
        except subprocess.CalledProcessError as err:
            return f"{name} exited with error: {_describe(err)}: {err.output}"
        except (OSError, ValueError) as err:
            return f"{name} exited with error: {_describe(err)}: "

    return run


def job_start(
    cmd: str,
    on_stdout: Optional[Callback],
    on_stderr: Optional[Callback],
    on_exit: Optional[Callback],
    *args: Any,
) -> Job:
    """Run ``cmd`` through ``sh -c`` in the background; see :func:`job_spawn`."""
    return job_spawn("sh", ["-c", cmd], on_stdout, on_stderr, on_exit, *args)


def job_spawn(
    name: str,
    args: list[str],
    on_stdout: Optional[Callback],
    on_stderr: Optional[Callback],
    on_exit: Optional[Callback],
    *userargs: Any,
) -> Job:
    """Start a program in the background with callbacks for its output and exit.

    Each chunk written to standard output or error queues a call of the
    matching callback in :data:`JOBS`. When the program ends, ``on_exit`` is
    queued with everything it wrote.
    """
    process = subprocess.Popen(
        [name, *args],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        bufsize=0,
    )
    collected: list[str] = []
    lock = threading.Lock()
    job = Job(process, process.stdin)

    def pump(stream: IO[bytes], callback: Optional[Callback]) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = stream.read(4096)
            text = decoder.decode(chunk or b"", final=not chunk)
            if text:
                with lock:
                    collected.append(text)
                if callback is not None:
                    JOBS.put(JobFunction(callback, text, userargs))
            if not chunk:
                break
        stream.close()

    readers = [
        threading.Thread(target=pump, args=(process.stdout, on_stdout), daemon=True),
        threading.Thread(target=pump, args=(process.stderr, on_stderr), daemon=True),
    ]
    for reader in readers:
        reader.start()

    def finish() -> None:
        for reader in readers:
            reader.join()
        process.wait()
        if process.stdin is not None:
            try:
                process.stdin.close()
            except OSError:
                pass
        if on_exit is not None:
            with lock:
                output = "".join(collected)
            JOBS.put(JobFunction(on_exit, output, userargs))
        job._done.set()

    threading.Thread(target=finish, daemon=True).start()
    return job