"""Monitor subsystem: data model, storage backends, seed loader."""

from .models import GlobalSettings, LatencyPoint, Monitor, Status
from .store import InMemoryStore, JsonFileStore, MonitorStore, SQLiteStore, StoreError, create_store
