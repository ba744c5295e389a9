"""Tests for the simulated LLM worker."""

from neuraflow.service_node import ServiceWorker
from neuraflow.workers import LLMWorker
from neuraflow.workers.llm import EOS


def make_worker(emitted):
    return LLMWorker(emitted.append, load_delay=0, token_delay=0)


def test_implements_service_worker() -> None:
    worker = make_worker([])
    assert isinstance(worker, ServiceWorker)
    assert worker.service_name == "llm_service"


def test_initialize_loads_model() -> None:
    worker = make_worker([])

    assert worker.initialize(b"model=deepseek")
    assert worker.loaded


def test_initialize_rejects_failing_config() -> None:
    worker = make_worker([])

    assert not worker.initialize(b"model=FAIL")
    assert not worker.loaded


def test_process_streams_tokens_then_eos() -> None:
    emitted = []
    worker = make_worker(emitted)

    worker.process(b"Hello AI, who are you?")

    assert emitted == ["DeepSeek ", "is ", "a ", "powerful ", "AI ", "model ",
                       "running ", "on ", "Edge. ", EOS]


def test_custom_response() -> None:
    emitted = []
    worker = LLMWorker(emitted.append, response="hi there", load_delay=0, token_delay=0)

    worker.process(b"?")

    assert "".join(emitted[:-1]) == "hi there "
    assert emitted[-1] == "<EOS>"
