"""Hints shown to the user about managing the snap's services."""

from __future__ import annotations

import os

_PLACEHOLDER = "<snap-instance-name>"


def instance_name() -> str:
    """Return the snap instance name, or '' when not running inside a snap."""
    return os.environ.get("SNAP_INSTANCE_NAME", "")


def _display_name() -> str:
    return instance_name() or _PLACEHOLDER


def suggest_server_startup() -> str:
    """Hint to retry once the server has started."""
    return "Try again when the server is ready."


def suggest_server_logs() -> str:
    """Hint on how to read the server logs."""
    service_name = _display_name() + ".server"
    return f'Run "snap logs {service_name}" to see the server logs.'


def suggest_start_server() -> str:
    """Hint on how to start the server."""
    service_name = _display_name() + ".server"
    return f'Run "sudo snap start {service_name}" to start the server.'


def suggest_service_management() -> str:
    """Hint on the snap commands that manage services."""
    return f'Use "snap logs|start|stop|restart {_display_name()}" for service management.'


def suggest_engine_info() -> str:
    """Hint on how to see details of an engine."""
    return f'Use "{_display_name()} show-engine <engine>" for more information about an engine.'