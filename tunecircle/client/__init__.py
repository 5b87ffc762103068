"""Web player side: SDK bridge, completion detection, auto-listen, API client."""
from tunecircle.client.api_client import BackendClient
from tunecircle.client.auto_listen import AutoListenRecorder
from tunecircle.client.bridge import BridgeStatus, BridgeView, RemotePlayerBridge
from tunecircle.client.completion import CompletionDetector

__all__ = [
    "AutoListenRecorder",
    "BackendClient",
    "BridgeStatus",
    "BridgeView",
    "CompletionDetector",
    "RemotePlayerBridge",
]
