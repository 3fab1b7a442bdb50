"""Quantization service: queued, timed, out-of-thread job execution.

AIDEV-NOTE: One QuantizationThread dispatches jobs strictly FIFO to a single
worker process, one at a time, the same way SerialThread-style flow control
waits for an ACK before sending the next command. A job that gets no reply
within ``request_timeout`` is rejected and the worker is replaced so the next
job starts immediately. If the worker channel fails, the service switches to
the in-process fallback for good; the channel is never retried.
"""

import dataclasses
import time
import uuid
from collections import deque
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from PyQt6.QtCore import QMutex, QMutexLocker, QThread, pyqtSignal

from .color_processing.pipeline import (
    analyze_image_data,
    fallback_quantize,
    validate_image,
    validate_request,
)
from .color_processing.worker import ANALYZE, QUANTIZE, ProcessChannel
from .errors import (
    ChannelError,
    QuantizationError,
    QuantizationTimeoutError,
    WorkerError,
)
from .models import (
    ColorAnalysis,
    ImageData,
    JobState,
    QuantizationConfig,
    QuantizationRequest,
    QuantizationResult,
)


def generate_request_id() -> str:
    return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass
class QuantizationJob:
    """One submitted request and the future its caller is waiting on."""

    kind: str  # QUANTIZE or ANALYZE
    payload: Any
    future: Future = field(default_factory=Future)
    id: str = field(default_factory=generate_request_id)
    state: JobState = JobState.QUEUED
    submitted_at: float = field(default_factory=time.monotonic)

    def __post_init__(self):
        # AIDEV-NOTE: Futures are marked running on creation so callers cannot
        # cancel them; only the timeout aborts a job.
        self.future.set_running_or_notify_cancel()


class QuantizationThread(QThread):
    """Background dispatcher feeding jobs to the worker channel one by one."""

    job_state_changed = pyqtSignal(str, object)  # job id, JobState
    error_occurred = pyqtSignal(str)
    fallback_activated = pyqtSignal(str)  # reason

    def __init__(self, channel, request_timeout: float):
        super().__init__()
        self.channel = channel
        self.request_timeout = request_timeout

        self.running = True
        self.fallback_mode = False

        self.job_queue: "deque[QuantizationJob]" = deque()
        self.queue_lock = QMutex()

        # In-flight job state
        self.current_job: Optional[QuantizationJob] = None
        self.awaiting_reply = False
        self.job_sent_time: float = 0.0

    # -------------------------------------------------------------

    def run(self):
        while self.running:
            self._check_reply()
            self._process_timeout()
            self._dispatch_next_job()
            self._adaptive_sleep()

    # -------------------------------------------------------------
    # Replies & timeouts
    # -------------------------------------------------------------

    def _check_reply(self):
        if not self.awaiting_reply:
            return

        try:
            if not self.channel.poll(0):
                return
            reply_type, data = self.channel.receive()
        except ChannelError as e:
            self.awaiting_reply = False
            self.activate_fallback(str(e))
            # Retry the failed job once, in-process
            self.run_fallback(self.current_job)
            self._release_current_job()
            return

        job = self._release_current_job()
        if reply_type == "error":
            self._finish(job, JobState.FAILED, error=WorkerError(data["message"]))
        else:
            self._finish(job, JobState.COMPLETED, result=data)

    def _process_timeout(self):
        if not self.awaiting_reply:
            return
        if time.monotonic() - self.job_sent_time <= self.request_timeout:
            return

        job = self._release_current_job()
        message = f"Request {job.id} timed out after {self.request_timeout:g}s"
        self.error_occurred.emit(message)
        self._finish(job, JobState.TIMED_OUT, error=QuantizationTimeoutError(message))

        # The worker may still be busy with the abandoned job; replace it
        # so the next queued job can start right away.
        try:
            self.channel.restart()
        except ChannelError as e:
            self.activate_fallback(str(e))

    # -------------------------------------------------------------
    # Dispatching
    # -------------------------------------------------------------

    def _dispatch_next_job(self):
        if self.current_job is not None:
            return

        # Fast path: nothing queued
        if not self.job_queue:
            return

        with QMutexLocker(self.queue_lock):
            if not self.job_queue:
                return
            job = self.job_queue.popleft()
            self.current_job = job

        if self.fallback_mode:
            self.run_fallback(job)
            self._release_current_job()
            return

        self._set_state(job, JobState.RUNNING)
        try:
            self.channel.send(job.kind, job.payload)
        except ChannelError as e:
            self.activate_fallback(str(e))
            self.run_fallback(job)
            self._release_current_job()
            return

        self.awaiting_reply = True
        self.job_sent_time = time.monotonic()

    def _release_current_job(self) -> QuantizationJob:
        with QMutexLocker(self.queue_lock):
            job = self.current_job
            self.current_job = None
            self.awaiting_reply = False
        return job

    def _adaptive_sleep(self):
        if self.awaiting_reply:
            self.msleep(5)
        elif self.job_queue:
            self.msleep(1)
        else:
            self.msleep(20)

    # -------------------------------------------------------------
    # Fallback
    # -------------------------------------------------------------

    def activate_fallback(self, reason: str):
        """Permanently switch to in-process execution."""
        if self.fallback_mode:
            return
        self.fallback_mode = True
        print(f"Warning: quantization worker unavailable ({reason}); using in-process fallback")
        self.fallback_activated.emit(reason)
        self.channel.close()

    def run_fallback(self, job: QuantizationJob):
        """Execute a job synchronously in the current thread."""
        self._set_state(job, JobState.RUNNING)
        try:
            if job.kind == QUANTIZE:
                result = fallback_quantize(job.payload)
            else:
                result = analyze_image_data(job.payload)
        except Exception as e:
            self._finish(job, JobState.FAILED, error=e)
        else:
            self._finish(job, JobState.COMPLETED, result=result)

    # -------------------------------------------------------------
    # API methods
    # -------------------------------------------------------------

    def submit(self, job: QuantizationJob):
        """Thread-safe enqueue."""
        self._set_state(job, JobState.QUEUED)
        with QMutexLocker(self.queue_lock):
            self.job_queue.append(job)

    def is_idle(self) -> bool:
        with QMutexLocker(self.queue_lock):
            return self.current_job is None and not self.job_queue

    def pending_count(self) -> int:
        with QMutexLocker(self.queue_lock):
            return len(self.job_queue) + (1 if self.current_job else 0)

    def drain(self) -> "list[QuantizationJob]":
        """Remove and return every job that has not finished."""
        with QMutexLocker(self.queue_lock):
            jobs = list(self.job_queue)
            self.job_queue.clear()
            if self.current_job is not None:
                jobs.insert(0, self.current_job)
                self.current_job = None
                self.awaiting_reply = False
        return jobs

    def stop(self):
        self.running = False

    # -------------------------------------------------------------

    def _set_state(self, job: QuantizationJob, state: JobState):
        job.state = state
        self.job_state_changed.emit(job.id, state)

    def _finish(self, job: QuantizationJob, state: JobState, result=None, error=None):
        # stop() may already have rejected a job the thread was still working on
        if job.future.done():
            return
        self._set_state(job, state)
        try:
            if error is not None:
                job.future.set_exception(error)
            else:
                job.future.set_result(result)
        except InvalidStateError:
            pass  # lost the race with stop(); the job is already rejected


class QuantizationService:
    """Entry point for quantizing and analyzing images.

    Usage::

        with QuantizationService() as service:
            result = service.quantize_image(image_data, max_colors=6).result()

    Every call returns a ``concurrent.futures.Future``. Invalid input raises
    ``InputError``/``AlgorithmError`` immediately; execution errors are set on
    the future.
    """

    def __init__(
        self,
        config: Optional[QuantizationConfig] = None,
        channel_factory: Callable[[], Any] = ProcessChannel,
    ):
        self.config = config or QuantizationConfig()
        self.channel = channel_factory()
        self.dispatcher = QuantizationThread(self.channel, self.config.request_timeout)
        self._started = False
        self._stopped = False

    @property
    def fallback_mode(self) -> bool:
        return self.dispatcher.fallback_mode

    @property
    def is_working(self) -> bool:
        return not self.dispatcher.is_idle()

    def start(self):
        """Start the worker channel and dispatcher (idempotent)."""
        if self._started:
            return
        self._started = True

        try:
            self.channel.start()
        except ChannelError as e:
            self.dispatcher.activate_fallback(str(e))
            return

        self.dispatcher.start()

    def stop(self):
        """Stop dispatching and reject every unfinished job.

        Calls made after stopping are rejected immediately.
        """
        self._stopped = True
        if self.dispatcher.isRunning():
            self.dispatcher.stop()
            self.dispatcher.wait(2000)  # Wait up to 2 seconds

        for job in self.dispatcher.drain():
            self.dispatcher._finish(
                job, JobState.FAILED, error=QuantizationError("Service stopped")
            )

        if not self.fallback_mode:
            self.channel.close()

    def __enter__(self) -> "QuantizationService":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    # -------------------------------------------------------------

    def quantize_image(
        self,
        image_data: Optional[ImageData],
        max_colors: Optional[int] = None,
        algorithm: Optional[str] = None,
        merge_threshold: Optional[float] = None,
    ) -> "Future[QuantizationResult]":
        """Quantize an image, filling unset options from the config."""
        request = self.config.to_request(image_data)
        if max_colors is not None:
            request.max_colors = max_colors
        if algorithm is not None:
            request.algorithm = algorithm
        if merge_threshold is not None:
            request.merge_threshold = merge_threshold
        return self.submit_request(request)

    def submit_request(self, request: QuantizationRequest) -> "Future[QuantizationResult]":
        validate_request(request)
        # Snapshot the buffer so later caller edits cannot leak into the job
        request = dataclasses.replace(request, image_data=request.image_data.copy())
        return self._submit(QuantizationJob(QUANTIZE, request))

    def analyze_image(self, image_data: Optional[ImageData]) -> "Future[ColorAnalysis]":
        validate_image(image_data)
        return self._submit(QuantizationJob(ANALYZE, image_data.copy()))

    def _submit(self, job: QuantizationJob) -> Future:
        if self._stopped:
            self.dispatcher._finish(
                job, JobState.FAILED, error=QuantizationError("Service stopped")
            )
            return job.future

        self.start()

        # Fallback runs synchronously unless earlier jobs are still queued,
        # in which case the dispatcher drains them in order.
        if self.fallback_mode and (
            not self.dispatcher.isRunning() or self.dispatcher.is_idle()
        ):
            self.dispatcher.run_fallback(job)
            return job.future

        self.dispatcher.submit(job)
        return job.future
