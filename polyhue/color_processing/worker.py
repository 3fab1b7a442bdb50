"""Isolated worker process that executes quantization jobs.

AIDEV-NOTE: The worker is a separate process fed over a ``multiprocessing``
Pipe. Requests and results are pickled across the boundary, so the worker
never shares memory with the service. Messages are ``(type, payload)``
tuples; replies are ``("result" | "analysis" | "error", data)``. Sending
``None`` asks the worker to exit.
"""

import multiprocessing
import traceback
from typing import Any, Optional

from ..errors import ChannelError
from .pipeline import analyze_image_data, quantize_image_data

QUANTIZE = "quantize"
ANALYZE = "analyze"


def handle_message(message_type: str, payload: Any) -> "tuple[str, Any]":
    """Run one job and return the reply message."""
    if message_type == QUANTIZE:
        return "result", quantize_image_data(payload)
    elif message_type == ANALYZE:
        return "analysis", analyze_image_data(payload)
    raise ValueError(f"Unknown message type: {message_type}")


def worker_main(connection) -> None:
    """Worker process loop: receive a job, reply, repeat until told to stop."""
    while True:
        try:
            message = connection.recv()
        except EOFError:
            break  # service went away

        if message is None:
            break

        message_type, payload = message
        try:
            reply = handle_message(message_type, payload)
        except Exception as e:
            # Report back instead of dying so the channel stays usable
            reply = ("error", {"message": str(e), "stack": traceback.format_exc()})

        connection.send(reply)

    connection.close()


class ProcessChannel:
    """Request/response channel to a single worker process.

    Raises ChannelError whenever the process cannot be started or the pipe
    breaks; the service treats that as a permanent channel failure.
    """

    def __init__(self, start_method: str = "spawn"):
        # spawn avoids forking a process that owns Qt threads
        self._context = multiprocessing.get_context(start_method)
        self.process: Optional[multiprocessing.Process] = None
        self.connection = None

    @property
    def is_alive(self) -> bool:
        return self.process is not None and self.process.is_alive()

    def start(self) -> None:
        try:
            parent_conn, child_conn = self._context.Pipe()
            process = self._context.Process(
                target=worker_main,
                args=(child_conn,),
                name="polyhue-quantizer",
                daemon=True,
            )
            process.start()
        except Exception as e:
            raise ChannelError(f"Failed to start quantization worker: {e}") from e

        child_conn.close()
        self.process = process
        self.connection = parent_conn

    def send(self, message_type: str, payload: Any) -> None:
        if self.connection is None:
            raise ChannelError("Quantization worker is not running")
        try:
            self.connection.send((message_type, payload))
        except (OSError, EOFError, ValueError) as e:
            raise ChannelError(f"Worker error: {e}") from e

    def poll(self, timeout: float = 0.0) -> bool:
        """Return True once a reply (or end-of-stream) is ready to read."""
        if self.connection is None:
            raise ChannelError("Quantization worker is not running")
        try:
            ready = self.connection.poll(timeout)
        except (OSError, EOFError) as e:
            raise ChannelError(f"Worker error: {e}") from e

        if not ready and not self.is_alive:
            code = self.process.exitcode if self.process else None
            raise ChannelError(f"Quantization worker exited unexpectedly (code {code})")
        return ready

    def receive(self) -> "tuple[str, Any]":
        try:
            return self.connection.recv()
        except (OSError, EOFError) as e:
            raise ChannelError(f"Worker error: {e}") from e

    def restart(self) -> None:
        """Replace the worker process, dropping whatever it was doing."""
        self.terminate()
        self.start()

    def terminate(self) -> None:
        if self.process is not None and self.process.is_alive():
            self.process.terminate()
            self.process.join(1.0)
        self._close_connection()
        self.process = None

    def close(self) -> None:
        """Ask the worker to exit, terminating it if it does not."""
        if self.connection is not None and self.is_alive:
            try:
                self.connection.send(None)
            except (OSError, ValueError):
                pass  # pipe already broken, terminate below
            self.process.join(1.0)
        self.terminate()

    def _close_connection(self) -> None:
        if self.connection is not None:
            self.connection.close()
            self.connection = None
