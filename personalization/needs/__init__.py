"""
Need detection: rule and model detectors, merge policy and learning profiles.
"""

from personalization.needs.detector import NeedDetector, NeedDetectorConfig, merge_needs
from personalization.needs.detectors import (
    Detector,
    LinearNeedDetector,
    LinearNeedModel,
    NeedRule,
    RuleBasedDetector,
    default_rules,
    indicator_severity,
    ratio_severity,
)
from personalization.needs.profile import build_learning_profile, learning_pace, learning_style

__all__ = [
    "Detector",
    "LinearNeedDetector",
    "LinearNeedModel",
    "NeedDetector",
    "NeedDetectorConfig",
    "NeedRule",
    "RuleBasedDetector",
    "build_learning_profile",
    "default_rules",
    "indicator_severity",
    "learning_pace",
    "learning_style",
    "merge_needs",
    "ratio_severity",
]
