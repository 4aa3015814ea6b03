import os
import sys
import threading
import time

import pytest
from docker.errors import DockerException, NotFound

# Ensure project root is importable (so `main.py`, `cli.py` and the package load without installing)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from hostreaper import db
from hostreaper.docker_ops import DockerRuntime
from hostreaper.metadata import MetadataError
from hostreaper.models import MetadataContainer, SelfHost
from hostreaper.settings import Settings

UUID_LABEL = "io.rancher.container.uuid"
SERVICE_LABEL = "io.rancher.stack_service.name"


@pytest.fixture(autouse=True)
def event_log(tmp_path, monkeypatch):
    """Point the event log at an isolated sqlite file for every test."""
    path = tmp_path / "events.db"
    monkeypatch.setattr(db, "settings", Settings(db_path=str(path)))
    return path


class FakeStream:
    """Yields the given raw events, then blocks until closed like a live stream."""

    def __init__(self, items):
        self.items = list(items)
        self.closed = threading.Event()

    def __iter__(self):
        yield from self.items
        self.closed.wait()

    def close(self):
        self.closed.set()


class FakeDockerAPI:
    """Stands in for docker.APIClient; records mutating calls."""

    def __init__(self, containers=None, names=None, events=None):
        self.containers_data = list(containers or [])  # newest first
        self.names = dict(names or {})
        self.event_items = list(events or [])
        self.removed = []
        self.stopped = []
        self.list_calls = 0
        self.fail_list = False
        self.fail_inspect = set()
        self.fail_remove = set()
        self.fail_stop = set()
        self.on_list = None
        self.stream = None

    def containers(self, all=False):
        self.list_calls += 1
        if self.on_list:
            self.on_list(self)
        if self.fail_list:
            raise DockerException("list failed")
        return [c for c in self.containers_data if all or c["State"] == "running"]

    def inspect_container(self, container_id):
        if container_id in self.fail_inspect or container_id not in self.names:
            raise NotFound(f"No such container: {container_id}")
        return {"Id": container_id, "Name": self.names[container_id]}

    def remove_container(self, container_id, force=False):
        if container_id in self.fail_remove:
            raise DockerException("remove failed")
        self.removed.append((container_id, force))

    def stop(self, container_id, timeout=None):
        if container_id in self.fail_stop:
            raise DockerException("stop failed")
        self.stopped.append((container_id, timeout))

    def events(self, decode=False, filters=None):
        self.stream = FakeStream(self.event_items)
        return self.stream


class FakeMetadata:
    def __init__(self, host_uuid="H", containers=(), fail=None):
        self.host_uuid = host_uuid
        self.containers = list(containers)
        self.fail = fail
        self.on_change_calls = []
        self.closed = False

    def get_self_host(self):
        if self.fail == "host":
            raise MetadataError("self host unavailable")
        return SelfHost(uuid=self.host_uuid)

    def get_containers(self):
        if self.fail == "containers":
            raise MetadataError("containers unavailable")
        return list(self.containers)

    def on_change(self, interval_s, do, stop, recheck_interval_s=None):
        self.on_change_calls.append((interval_s, do, recheck_interval_s))

    def close(self):
        self.closed = True


def api_container(container_id, state="running", labels=None, name=None):
    return {
        "Id": container_id,
        "State": state,
        "Labels": labels or {},
        "Names": [name or f"/{container_id}"],
    }


def meta_container(uuid, external_id, host_uuid="H", label_uuid=None, name="web-1"):
    labels = {} if label_uuid is None else {UUID_LABEL: label_uuid}
    return MetadataContainer(uuid=uuid, external_id=external_id, host_uuid=host_uuid, name=name, labels=labels)


@pytest.fixture
def fake_api():
    return FakeDockerAPI()


@pytest.fixture
def runtime(fake_api):
    return DockerRuntime(fake_api)


@pytest.fixture
def wait_for():
    def _wait(pred, timeout=5.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if pred():
                return True
            time.sleep(0.01)
        return pred()

    return _wait

