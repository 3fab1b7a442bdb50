import queue
import threading
import time

import pytest
from PyQt6.QtCore import Qt

from polyhue.color_processing.worker import QUANTIZE, handle_message
from polyhue.errors import (
    AlgorithmError,
    ChannelError,
    InputError,
    QuantizationError,
    QuantizationTimeoutError,
    WorkerError,
)
from polyhue.models import ColorAnalysis, JobState, QuantizationConfig
from polyhue.quantization_service import QuantizationJob, QuantizationService, QuantizationThread

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)

# Signals fire on the dispatcher thread and no event loop runs in tests
DIRECT = Qt.ConnectionType.DirectConnection


class FakeChannel:
    """In-thread stand-in for the worker process.

    ``hang`` sends are swallowed without a reply, and the first
    ``error_replies`` jobs answer with a worker error.
    """

    def __init__(self, hang=0, error_replies=0, delay=0.0, fail_start=False, fail_poll=False):
        self.hang = hang
        self.error_replies = error_replies
        self.delay = delay
        self.fail_start = fail_start
        self.fail_poll = fail_poll

        self.replies = queue.Queue()
        self.events = []
        self.sent = []
        self.starts = 0
        self.restarts = 0
        self.closed = False

    def start(self):
        self.starts += 1
        if self.fail_start:
            raise ChannelError("cannot spawn worker")

    def send(self, message_type, payload):
        self.sent.append(message_type)
        if self.hang > 0:
            self.hang -= 1
            return
        threading.Thread(target=self._work, args=(message_type, payload), daemon=True).start()

    def _work(self, message_type, payload):
        tag = getattr(payload, "max_colors", message_type)
        self.events.append(("start", tag))
        time.sleep(self.delay)
        if self.error_replies > 0:
            self.error_replies -= 1
            reply = ("error", {"message": "boom", "stack": ""})
        else:
            reply = handle_message(message_type, payload)
        self.events.append(("end", tag))
        self.replies.put(reply)

    def poll(self, timeout=0.0):
        if self.fail_poll:
            raise ChannelError("worker exited unexpectedly")
        return not self.replies.empty()

    def receive(self):
        return self.replies.get_nowait()

    def restart(self):
        self.restarts += 1

    def close(self):
        self.closed = True


@pytest.fixture
def image(make_image):
    return make_image([(RED, 6), (BLUE, 4)])


@pytest.fixture
def make_service(qt_app):
    services = []

    def _make(channel, **config):
        service = QuantizationService(QuantizationConfig(**config), channel_factory=lambda: channel)
        services.append(service)
        return service

    yield _make
    for service in services:
        service.stop()


def test_jobs_run_one_at_a_time_in_order(make_service, image):
    channel = FakeChannel(delay=0.05)
    service = make_service(channel)

    first = service.quantize_image(image, max_colors=2)
    second = service.quantize_image(image, max_colors=3)

    assert len(first.result(timeout=5).regions) == 2
    assert len(second.result(timeout=5).regions) == 2
    assert channel.events == [("start", 2), ("end", 2), ("start", 3), ("end", 3)]
    assert channel.starts == 1


def test_timed_out_job_is_rejected_and_next_job_runs(make_service, image):
    channel = FakeChannel(hang=1)
    service = make_service(channel, request_timeout=0.2)
    errors = []
    service.dispatcher.error_occurred.connect(errors.append, type=DIRECT)

    first = service.quantize_image(image)
    second = service.quantize_image(image)

    with pytest.raises(QuantizationTimeoutError, match="timed out after 0.2s"):
        first.result(timeout=5)
    result = second.result(timeout=5)

    assert not result.fallback
    assert channel.restarts == 1
    assert not service.fallback_mode
    assert len(errors) == 1


def test_worker_error_fails_only_that_job(make_service, image):
    channel = FakeChannel(error_replies=1)
    service = make_service(channel)
    states = []
    service.dispatcher.job_state_changed.connect(
        lambda job_id, state: states.append(state), type=DIRECT
    )

    first = service.quantize_image(image)
    second = service.quantize_image(image)

    with pytest.raises(WorkerError, match="boom"):
        first.result(timeout=5)
    assert second.result(timeout=5).final_color_count == 2
    assert JobState.FAILED in states
    assert not service.fallback_mode


def test_start_failure_switches_to_fallback(make_service, image):
    channel = FakeChannel(fail_start=True)
    service = make_service(channel)
    reasons = []
    service.dispatcher.fallback_activated.connect(reasons.append, type=DIRECT)

    future = service.quantize_image(image, max_colors=3)

    assert future.done()
    assert future.result().fallback
    assert service.fallback_mode
    assert channel.closed
    assert reasons == ["cannot spawn worker"]
    assert not service.dispatcher.isRunning()


def test_runtime_channel_failure_is_permanent(make_service, image, capsys):
    channel = FakeChannel(fail_poll=True)
    service = make_service(channel)

    first = service.quantize_image(image)
    assert first.result(timeout=5).fallback

    second = service.quantize_image(image)
    assert second.result(timeout=5).fallback

    assert service.fallback_mode
    assert channel.sent == ["quantize"]
    assert channel.restarts == 0
    assert channel.closed
    assert "using in-process fallback" in capsys.readouterr().out


def test_invalid_requests_fail_synchronously(make_service, image):
    channel = FakeChannel()
    service = make_service(channel)

    with pytest.raises(InputError):
        service.quantize_image(None)
    with pytest.raises(InputError):
        service.quantize_image(image, max_colors=0)
    with pytest.raises(AlgorithmError):
        service.quantize_image(image, algorithm="octree")
    with pytest.raises(InputError):
        service.analyze_image(None)

    assert channel.sent == []
    assert not service.is_working


def test_analyze_image(make_service, image):
    service = make_service(FakeChannel())

    analysis = service.analyze_image(image).result(timeout=5)

    assert isinstance(analysis, ColorAnalysis)
    assert analysis.unique_colors == 2
    assert analysis.dominant_colors[0].color == "#FF0000"


def test_request_buffer_is_snapshotted(make_service, image):
    service = make_service(FakeChannel(delay=0.05))

    future = service.quantize_image(image)
    image.data[:] = 0

    assert {r.avg_color for r in future.result(timeout=5).regions} == {"#FF0000", "#0000FF"}


def test_stop_rejects_unfinished_jobs(make_service, image):
    channel = FakeChannel(hang=3)
    service = make_service(channel)

    futures = [service.quantize_image(image) for _ in range(3)]
    service.stop()

    for future in futures:
        with pytest.raises(QuantizationError, match="Service stopped"):
            future.result(timeout=1)
    assert channel.closed


def test_calls_after_stop_are_rejected(make_service, image):
    channel = FakeChannel()
    service = make_service(channel)
    assert not service.quantize_image(image).result(timeout=5).fallback

    service.stop()
    quantized = service.quantize_image(image, max_colors=2)
    analyzed = service.analyze_image(image)

    for future in (quantized, analyzed):
        assert future.done()
        with pytest.raises(QuantizationError, match="Service stopped"):
            future.result()
    assert channel.sent == ["quantize"]
    assert channel.starts == 1


def test_finishing_an_already_rejected_job_is_ignored(qt_app):
    dispatcher = QuantizationThread(FakeChannel(), request_timeout=1)
    job = QuantizationJob(QUANTIZE, None)

    dispatcher._finish(job, JobState.FAILED, error=QuantizationError("Service stopped"))
    dispatcher._finish(job, JobState.COMPLETED, result="late")

    assert job.state is JobState.FAILED
    with pytest.raises(QuantizationError, match="Service stopped"):
        job.future.result()


def test_futures_cannot_be_cancelled(make_service, image):
    service = make_service(FakeChannel(hang=1))
    future = service.quantize_image(image)
    assert not future.cancel()


def test_process_channel_end_to_end(qt_app, image):
    with QuantizationService() as service:
        result = service.quantize_image(image, max_colors=2).result(timeout=60)

    assert not result.fallback
    assert sorted(r.pixel_count for r in result.regions) == [4, 6]
