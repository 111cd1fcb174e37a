"""
Configuration settings for the adaptive personalization engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Logging & API server
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path of a rotating log file",
    )
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    # ========================================
    # Data sources
    # ========================================
    database_url: str = Field(
        default="sqlite:///./personalization.db",
        description="SQLAlchemy URL of the content/mastery database",
    )
    content_service_url: str | None = Field(
        default=None,
        description="Base URL of a remote content service (overrides catalog/database)",
    )
    catalog_path: str | None = Field(
        default=None,
        description="JSON content catalog served by the in-memory content store",
    )
    telemetry_dir: str | None = Field(
        default=None,
        description="Directory for JSONL interaction logs (in-memory when unset)",
    )
    session_dir: str | None = Field(
        default=None,
        description="Directory for JSON assessment session files (in-memory when unset)",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for external content/telemetry I/O",
    )

    # ========================================
    # Signal extraction
    # ========================================
    signal_window_size: int = Field(
        default=50,
        description="Number of most recent interaction samples per signal vector",
    )
    signal_window_days: int | None = Field(
        default=None,
        description="Optional time bound (days) on the signal window",
    )
    signal_recency_decay: float = Field(
        default=0.8,
        description="Per-rank recency weight decay for metric aggregation",
    )

    # ========================================
    # Need detection
    # ========================================
    need_confidence_floor: float = Field(
        default=0.6,
        description="Needs with merged confidence below this are discarded",
    )
    detector_timeout_seconds: float = Field(
        default=1.0,
        description="Per-detector time budget",
    )
    need_profile_ttl_seconds: int = Field(
        default=3600,
        description="How long a cached need profile stays fresh",
    )
    need_model_path: str | None = Field(
        default=None,
        description="Optional JSON weights for the linear need detector",
    )

    # ========================================
    # Candidate generation
    # ========================================
    candidate_limit: int = Field(
        default=200,
        description="Maximum candidates handed to the scorer",
    )
    candidate_cache_ttl_seconds: int = Field(
        default=300,
        description="TTL of cached eligible-content lookups",
    )
    candidate_cache_size: int = Field(
        default=1024,
        description="Maximum cached eligible-content lookups",
    )
    prerequisite_mastery_threshold: float = Field(
        default=0.65,
        description="Mastery level at which a prerequisite counts as satisfied",
    )

    # ========================================
    # Scoring
    # ========================================
    strategy_timeout_seconds: float = Field(
        default=2.0,
        description="Per-strategy time budget",
    )
    strategy_max_concurrency: int = Field(
        default=4,
        description="Maximum strategies scored in parallel",
    )
    exploration_c: float = Field(
        default=1.0,
        description="UCB exploration coefficient",
    )
    weight_peer_similarity: float = Field(default=0.25, description="Base weight: peer similarity")
    weight_content_affinity: float = Field(default=0.25, description="Base weight: content affinity")
    weight_exploration: float = Field(default=0.15, description="Base weight: exploration bonus")
    weight_need_compatibility: float = Field(default=0.20, description="Base weight: need compatibility")
    weight_neurocognitive: float = Field(default=0.15, description="Base weight: neurocognitive fit")

    # ========================================
    # Diversification
    # ========================================
    diversity_output_size: int = Field(default=20, description="Recommendations returned")
    diversity_max_per_category: int = Field(default=4, description="Cap per content type")
    diversity_max_per_difficulty: int = Field(default=8, description="Cap per difficulty")
    diversity_unconditional_head: int = Field(default=3, description="Items admitted without checks")
    diversity_admission_probability: float = Field(
        default=0.3,
        description="Chance of admitting an item that adds no new type or difficulty",
    )
    diversity_seed: str = Field(
        default="personalization",
        description="Seed prefix for the diversifier's random source",
    )

    # ========================================
    # Assessment sessions
    # ========================================
    assessment_fast_seconds: float = Field(default=30.0, description="Responses faster than this are 'fast'")
    assessment_slow_seconds: float = Field(default=120.0, description="Responses slower than this are 'slow'")
    assessment_max_questions: int = Field(default=20, description="Questions per assessment session")
    session_lock_timeout_seconds: float = Field(
        default=2.0,
        description="Wait per attempt for the session lock",
    )
    session_lock_retries: int = Field(
        default=3,
        description="Lock attempts before a concurrency conflict is reported",
    )

    def get_strategy_weights(self) -> dict[str, float]:
        """Get base scoring strategy weights."""
        return {
            "peer_similarity": self.weight_peer_similarity,
            "content_affinity": self.weight_content_affinity,
            "exploration": self.weight_exploration,
            "need_compatibility": self.weight_need_compatibility,
            "neurocognitive": self.weight_neurocognitive,
        }

    def get_diversity_config(self) -> dict[str, float | int | str]:
        """Get diversifier settings."""
        return {
            "output_size": self.diversity_output_size,
            "max_per_category": self.diversity_max_per_category,
            "max_per_difficulty": self.diversity_max_per_difficulty,
            "unconditional_head": self.diversity_unconditional_head,
            "admission_probability": self.diversity_admission_probability,
            "seed": self.diversity_seed,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
