from docker.errors import NotFound

from conftest import FakeDockerAPI, api_container

from hostreaper.docker_ops import DockerRuntime
from hostreaper.models import RuntimeContainerSummary


def test_list_keeps_daemon_order_and_labels():
    api = FakeDockerAPI(
        containers=[
            api_container("new", labels={"a": "1"}, name="/web-2"),
            api_container("old", state="exited", name="/web-1"),
        ]
    )

    listed = DockerRuntime(api).list_containers(all=True)

    assert listed == [
        RuntimeContainerSummary(id="new", state="running", labels={"a": "1"}, name="/web-2"),
        RuntimeContainerSummary(id="old", state="exited", labels={}, name="/web-1"),
    ]
    assert listed[0].running and not listed[1].running
    assert [c.id for c in DockerRuntime(api).list_containers(all=False)] == ["new"]


def test_summary_tolerates_missing_fields():
    c = RuntimeContainerSummary.from_api({"Id": "x", "Labels": None})
    assert c == RuntimeContainerSummary(id="x", state="", labels={}, name="")


def test_remove_of_missing_container_is_not_an_error():
    api = FakeDockerAPI()

    def missing(container_id, force=False):
        raise NotFound("No such container")

    api.remove_container = missing

    assert DockerRuntime(api).remove("gone") is False


def test_stop_and_inspect():
    api = FakeDockerAPI(names={"c1": "/rancher-agent"})
    runtime = DockerRuntime(api)

    runtime.stop("c1")
    assert api.stopped == [("c1", 0)]
    assert runtime.inspect_name("c1") == "/rancher-agent"
    assert runtime.remove("c1") is True
    assert api.removed == [("c1", True)]


def test_event_stream_skips_non_container_events():
    api = FakeDockerAPI(events=[{"Type": "network", "Action": "connect"}, {"status": "die", "id": "c1"}])
    stream = DockerRuntime(api).events()
    stream.close()

    assert [(e.id, e.status) for e in stream] == [("c1", "die")]
