import asyncio

import httpx
import numpy as np
import pytest

from cineprompt.core import settings as settings_module
from cineprompt.core.exceptions import EnhancementError, TranslationError
from cineprompt.engine.workspace import PromptWorkspace
from cineprompt.main import app


class FakeTranslator:
    """Translator double; `gates` hold a call open until the test releases it."""

    def __init__(self):
        self.calls: list[str] = []
        self.responses: dict[str, str] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.fail = False

    async def translate(self, text: str) -> str:
        self.calls.append(text)
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()
        if self.fail:
            raise TranslationError("translation backend down")
        return self.responses.get(text, f"EN:{text}")


class FakeEnhancer:
    def __init__(self):
        self.requests = []
        self.result = "An enhanced cinematic prompt."
        self.fail = False
        self.gate: asyncio.Event | None = None

    async def enhance(self, request) -> str:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise EnhancementError("enhancement backend down")
        return self.result


class FakeStream:
    def __init__(self):
        self.sinks = []
        self.stop_calls = 0

    def add_sink(self, sink):
        self.sinks.append(sink)

    def remove_sink(self, sink):
        if sink in self.sinks:
            self.sinks.remove(sink)

    def stop_all_tracks(self):
        self.stop_calls += 1


class FakeDevice:
    def __init__(self):
        self.streams: list[FakeStream] = []
        self.error: Exception | None = None

    async def acquire_stream(self):
        if self.error is not None:
            raise self.error
        stream = FakeStream()
        self.streams.append(stream)
        return stream


class FakeGraph:
    def __init__(self, stream, sample_rate, frame_size):
        self.stream = stream
        self.sample_rate = sample_rate
        self.frame_size = frame_size
        self.start_calls = 0
        self.close_calls = 0
        self._queue: asyncio.Queue = asyncio.Queue()

    def start(self):
        self.start_calls += 1

    def close(self):
        self.close_calls += 1
        self._queue.put_nowait(None)

    def push(self, samples):
        self._queue.put_nowait(np.asarray(samples, dtype=np.float32))

    async def frames(self):
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame


class FakeGraphFactory:
    def __init__(self):
        self.graphs: list[FakeGraph] = []
        self.error: Exception | None = None

    def __call__(self, stream, sample_rate, frame_size):
        if self.error is not None:
            raise self.error
        graph = FakeGraph(stream, sample_rate, frame_size)
        self.graphs.append(graph)
        return graph


class FakeConnection:
    def __init__(self):
        self.sent = []
        self.close_calls = 0
        self.send_error: Exception | None = None
        self._inbound: asyncio.Queue = asyncio.Queue()

    async def send(self, chunk):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(chunk)

    def feed(self, text: str):
        self._inbound.put_nowait(text)

    def end(self):
        self._inbound.put_nowait(None)

    def fail(self, exc: Exception):
        self._inbound.put_nowait(exc)

    async def receive(self):
        while True:
            item = await self._inbound.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self):
        self.close_calls += 1


class FakeBackend:
    def __init__(self):
        self.connections: list[FakeConnection] = []
        self.error: Exception | None = None

    async def open(self):
        if self.error is not None:
            raise self.error
        connection = FakeConnection()
        self.connections.append(connection)
        return connection


@pytest.fixture()
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch):
    monkeypatch.setattr(settings_module.settings, "log_file", None)
    monkeypatch.setattr(settings_module.settings, "log_level", "INFO")
    monkeypatch.setattr(settings_module.settings, "translation_debounce_seconds", 0.05)

    yield


@pytest.fixture()
def translator():
    return FakeTranslator()


@pytest.fixture()
def enhancer():
    return FakeEnhancer()


@pytest.fixture()
def device():
    return FakeDevice()


@pytest.fixture()
def graph_factory():
    return FakeGraphFactory()


@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
async def workspace(translator, enhancer, device, backend, graph_factory):
    ws = PromptWorkspace(
        translator,
        enhancer,
        device,
        backend,
        debounce_seconds=0.05,
        graph_factory=graph_factory,
    )
    yield ws
    await ws.aclose()


@pytest.fixture()
async def client(workspace):
    app.state.workspace = workspace
    try:
        async with app.router.lifespan_context(app):
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                yield client
    finally:
        app.state.workspace = None
