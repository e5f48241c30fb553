from .editor_session import EditorSession
from .lifecycle import LifecycleState, SessionLifecycleController
from .local_state_store import LocalStateStore
from .remote_client import RemoteSessionClient
from .sync_scheduler import SyncScheduler
from .timers import AsyncioTimer, Timer

__all__ = [
    "AsyncioTimer",
    "EditorSession",
    "LifecycleState",
    "LocalStateStore",
    "RemoteSessionClient",
    "SessionLifecycleController",
    "SyncScheduler",
    "Timer",
]
