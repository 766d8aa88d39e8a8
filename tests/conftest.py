"""Fixtures standing in for the host services a plugin receives in its PluginContext."""

from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest

from companion_host.plugin_api import PluginContext
from companion_host.services.registry import Registry
from companion_host.services.rest import RestError, RestResponse, RestResult
from plugins.orfast_ndi.plugin import OrfastNDIPlugin


DEVICE = "http://10.0.0.5:4242"


def ok(data: Any = None) -> RestResult:
    return RestResult(response=RestResponse(status_code=200, status_message="OK", data=data))


def status(code: int, message: str) -> RestResult:
    return RestResult(response=RestResponse(status_code=code, status_message=message))


def refused() -> RestResult:
    return RestResult(error=RestError(code="ECONNREFUSED", message="Connection refused"))


def vo_payload(*names: str) -> Dict[str, Any]:
    return {"data": {"vo_channels": [{"name": n} for n in names]}}


def ndi_payload(*names: str) -> Dict[str, Any]:
    return {"data": {"ndi_source_list": [{"name": n} for n in names]}}


class FakeRest:
    """Records every call; replies from a (method, url) table, connection refused otherwise."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Union[RestResult, Callable[[], RestResult]]] = {}
        self.calls: List[Tuple[str, str, Optional[Dict[str, Any]]]] = []
        self.closed = False

    def reply(self, method: str, url: str, result) -> None:
        self.routes[(method, url)] = result

    async def get(self, url: str) -> RestResult:
        return self._call("GET", url, None)

    async def post(self, url: str, body: Optional[Dict[str, Any]] = None) -> RestResult:
        return self._call("POST", url, body)

    async def close(self) -> None:
        self.closed = True

    def _call(self, method, url, body) -> RestResult:
        self.calls.append((method, url, body))
        result = self.routes.get((method, url), refused())
        return result() if callable(result) else result


class FakeJob:
    def __init__(self, seconds, func, job_id):
        self.seconds = seconds
        self.func = func
        self.id = job_id


class FakeScheduler:
    def __init__(self):
        self.jobs: List[FakeJob] = []
        self.cancelled: List[FakeJob] = []
        self.running = False

    def start(self):
        self.running = True

    def shutdown(self):
        self.running = False

    def every(self, seconds, func, job_id=None, **kwargs):
        job = FakeJob(seconds, func, job_id)
        self.jobs.append(job)
        return job

    def cancel(self, job):
        if job in self.jobs:
            self.jobs.remove(job)
            self.cancelled.append(job)


@pytest.fixture
def registry():
    return Registry()


@pytest.fixture
def rest():
    return FakeRest()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def settings():
    return {"host": "10.0.0.5", "port": 4242, "polling_rate": 10000}


@pytest.fixture
def ctx(registry, scheduler, rest, settings):
    return PluginContext(registry=registry, scheduler=scheduler, rest=rest, settings=settings)


@pytest.fixture
def plugin(ctx):
    return OrfastNDIPlugin(ctx)


def error_logs(registry: Registry, module: str = "orfast_ndi") -> List[Dict[str, Any]]:
    return [line for line in registry.snapshot()["modules"][module]["log"] if line["level"] == "error"]
