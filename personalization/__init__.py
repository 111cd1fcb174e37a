"""
Adaptive Personalization Engine.

Turns learner telemetry into detected learning needs, ranked and
diversified content recommendations, and adaptive assessment sessions.

Components (leaves first):
- signals: Signal Extractor (telemetry -> normalized feature vector)
- needs: Need Detector (rules + pluggable model detectors)
- content: Candidate Generator over an external Content Store
- scoring: Multi-Strategy Scorer
- ranking: Fusion & Ranker, Diversifier
- assessment: Adaptive Difficulty Controller
- engine: PersonalizationEngine facade wiring everything together
"""

__version__ = "1.0.0"
