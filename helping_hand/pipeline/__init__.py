"""Search session orchestration: registry, fan-out/join, and the engine façade."""

from helping_hand.pipeline.fan_out import FanOutCoordinator, FanOutResult, ProviderBatch
from helping_hand.pipeline.orchestrator import HybridSearchEngine
from helping_hand.pipeline.session_registry import SessionRegistry

__all__ = [
    "FanOutCoordinator",
    "FanOutResult",
    "HybridSearchEngine",
    "ProviderBatch",
    "SessionRegistry",
]
