import subprocess

import pytest


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None

    def error(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def __init__(self):
        self.lines = []

    def print(self, *args, **_kwargs):
        self.lines.append(" ".join(str(arg) for arg in args))


class FakeAzureCli:
    """Stands in for AzureCli; `handler(args)` returns the decoded output or raises."""

    def __init__(self, handler=None):
        self.handler = handler or (lambda _args: None)
        self.calls = []

    def _call(self, args):
        self.calls.append(list(args))
        return self.handler(list(args))

    def version(self):
        return "azure-cli 2.60.0"

    def invoke(self, args, check=True):
        output = self._call(args)
        return subprocess.CompletedProcess(["az"] + list(args), 0, stdout=output or "", stderr="")

    def json(self, args):
        return self._call(args)

    def tsv(self, args):
        return self._call(args) or ""

    def calls_starting_with(self, *prefix):
        return [call for call in self.calls if tuple(call[: len(prefix)]) == prefix]


class FakeTime:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingCleanup:
    def __init__(self):
        self.registered = []

    def register(self, kind, resource_id):
        self.registered.append((kind, resource_id))


@pytest.fixture
def logger():
    return DummyLogger()


@pytest.fixture
def console():
    return DummyConsole()


@pytest.fixture
def cleanup():
    return RecordingCleanup()


@pytest.fixture
def fake_time(monkeypatch):
    import vmmover.services.poller as poller_module

    clock = FakeTime()
    monkeypatch.setattr(poller_module, "time", clock)
    return clock


@pytest.fixture
def make_fake_cli():
    return FakeAzureCli
