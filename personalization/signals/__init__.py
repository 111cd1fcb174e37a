"""
Signal extraction: telemetry stores, feature extractors and the Signal Extractor.
"""

from personalization.signals.extractor import SignalConfig, SignalExtractor, validate_sample
from personalization.signals.features import (
    AttentionFeatureExtractor,
    FeatureExtractor,
    FeatureSet,
    MathFeatureExtractor,
    ReadingFeatureExtractor,
    SensoryFeatureExtractor,
    default_extractors,
)
from personalization.signals.store import (
    InMemoryTelemetryStore,
    JsonlTelemetryStore,
    SampleWindow,
    TelemetrySnapshot,
    TelemetryStore,
)

__all__ = [
    "AttentionFeatureExtractor",
    "FeatureExtractor",
    "FeatureSet",
    "InMemoryTelemetryStore",
    "JsonlTelemetryStore",
    "MathFeatureExtractor",
    "ReadingFeatureExtractor",
    "SampleWindow",
    "SensoryFeatureExtractor",
    "SignalConfig",
    "SignalExtractor",
    "TelemetrySnapshot",
    "TelemetryStore",
    "default_extractors",
    "validate_sample",
]
