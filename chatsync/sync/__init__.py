from chatsync.sync.api_client import RemoteClient
from chatsync.sync.auth import AuthClient
from chatsync.sync.credentials import CredentialStore, Identity
from chatsync.sync.engine import (
    PushAction,
    PushResult,
    ReconciliationEngine,
    SyncLifecycle,
    SyncState,
    merge_sessions,
)
from chatsync.sync.errors import (
    NetworkError,
    NotFoundOrForbidden,
    RequestFailed,
    SyncError,
    TransientNetwork,
    Unauthorized,
    Unexpected,
    ValidationFailed,
)
from chatsync.sync.local_store import LocalMessage, LocalSession, LocalStore, SessionStat
from chatsync.sync.observer import ActivationObserver
from chatsync.sync.runtime import SyncRuntime

__all__ = [
    'ActivationObserver',
    'AuthClient',
    'CredentialStore',
    'Identity',
    'LocalMessage',
    'LocalSession',
    'LocalStore',
    'NetworkError',
    'NotFoundOrForbidden',
    'PushAction',
    'PushResult',
    'ReconciliationEngine',
    'RemoteClient',
    'RequestFailed',
    'SessionStat',
    'SyncError',
    'SyncLifecycle',
    'SyncRuntime',
    'SyncState',
    'TransientNetwork',
    'Unauthorized',
    'Unexpected',
    'ValidationFailed',
    'merge_sessions',
]
