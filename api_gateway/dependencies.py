"""
FastAPI dependencies.

Accessors for the components the lifespan wires onto app.state.
"""

from fastapi.requests import HTTPConnection

from shared.config import Settings
from shared.errors import ConfigError
from api_gateway.services.event_publisher import EventPublisher
from api_gateway.services.progress_broadcaster import ProgressBroadcaster
from api_gateway.worker import RunSupervisor


def _component(connection: HTTPConnection, name: str):
    component = getattr(connection.app.state, name, None)
    if component is None:
        raise ConfigError(f"Application component not initialised: {name}")
    return component


def get_settings(connection: HTTPConnection) -> Settings:
    return _component(connection, "settings")


def get_broadcaster(connection: HTTPConnection) -> ProgressBroadcaster:
    return _component(connection, "broadcaster")


def get_publisher(connection: HTTPConnection) -> EventPublisher:
    return _component(connection, "publisher")


def get_supervisor(connection: HTTPConnection) -> RunSupervisor:
    return _component(connection, "supervisor")
