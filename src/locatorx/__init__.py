from __future__ import annotations

from .config import DEFAULT_CONFIG, EngineConfig, load_engine_config
from .hierarchy import build_element_hierarchy, shadow_info
from .inspector import CaptureReport, capture, find_blocker, hover
from .locator_generator import generate_locator_set
from .models import BoundaryChain, Locator, LocatorSet, STRATEGIES, SuggestionCandidate
from .page_capture import capture_page
from .session import CaptureSession
from .structure import DomForest, ScopeRoot
from .suggestions import rank, rank_suggestions
from .validation import detect_strategy, evaluate, find_matches, resolve_locator

__version__ = "0.1.0"

__all__ = [
    "BoundaryChain",
    "CaptureReport",
    "CaptureSession",
    "DEFAULT_CONFIG",
    "DomForest",
    "EngineConfig",
    "Locator",
    "LocatorSet",
    "STRATEGIES",
    "ScopeRoot",
    "SuggestionCandidate",
    "build_element_hierarchy",
    "capture",
    "capture_page",
    "detect_strategy",
    "evaluate",
    "find_blocker",
    "find_matches",
    "generate_locator_set",
    "hover",
    "load_engine_config",
    "rank",
    "rank_suggestions",
    "resolve_locator",
    "shadow_info",
]
