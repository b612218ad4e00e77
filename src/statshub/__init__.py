"""statshub - Telemetry aggregation and live fan-out service."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("statshub")
except PackageNotFoundError:
    __version__ = "0+local"
from statshub.broadcast import BroadcastHub, Subscriber
from statshub.config import HubConfig
from statshub.exceptions import (
    HubAuthorizationError,
    HubConfigError,
    HubError,
    HubForbiddenError,
    HubIngestError,
    HubInternalError,
    HubPersistenceError,
    HubSendError,
    HubValidationError,
)
from statshub.gateway import Credentials, IngestGateway, IngestResult
from statshub.hub import StatsHub
from statshub.models import AggregatedState, HistoryEntry, Snapshot, StatsView
from statshub.persistence import PersistenceManager
from statshub.state import StateStore, merge

__all__ = [
    "__version__",
    "AggregatedState",
    "BroadcastHub",
    "Credentials",
    "HistoryEntry",
    "HubAuthorizationError",
    "HubConfig",
    "HubConfigError",
    "HubError",
    "HubForbiddenError",
    "HubIngestError",
    "HubInternalError",
    "HubPersistenceError",
    "HubSendError",
    "HubValidationError",
    "IngestGateway",
    "IngestResult",
    "PersistenceManager",
    "Snapshot",
    "StateStore",
    "StatsHub",
    "StatsView",
    "Subscriber",
    "merge",
]
