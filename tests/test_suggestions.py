import pytest

from snapengines import suggestions


@pytest.fixture
def no_snap(monkeypatch):
    monkeypatch.delenv("SNAP_INSTANCE_NAME", raising=False)


@pytest.fixture
def in_snap(monkeypatch):
    monkeypatch.setenv("SNAP_INSTANCE_NAME", "my-snap")


def test_instance_name_unset(no_snap):
    assert suggestions.instance_name() == ""


def test_instance_name_set(in_snap):
    assert suggestions.instance_name() == "my-snap"


def test_server_startup():
    assert suggestions.suggest_server_startup() == "Try again when the server is ready."


def test_server_logs_in_snap(in_snap):
    assert suggestions.suggest_server_logs() == (
        'Run "snap logs my-snap.server" to see the server logs.'
    )


def test_server_logs_outside_snap(no_snap):
    assert "<snap-instance-name>.server" in suggestions.suggest_server_logs()


def test_start_server_in_snap(in_snap):
    assert suggestions.suggest_start_server() == (
        'Run "sudo snap start my-snap.server" to start the server.'
    )


def test_service_management_outside_snap(no_snap):
    assert suggestions.suggest_service_management() == (
        'Use "snap logs|start|stop|restart <snap-instance-name>" for service management.'
    )


def test_engine_info_in_snap(in_snap):
    assert suggestions.suggest_engine_info() == (
        'Use "my-snap show-engine <engine>" for more information about an engine.'
    )