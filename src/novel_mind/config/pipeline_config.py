"""Configuration for the background analysis pipeline."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineConfig(BaseSettings):
    """
    Timing and concurrency settings for chunk analysis.

    Values can be overridden through PIPELINE_* environment variables,
    e.g. PIPELINE_PACING_DELAY=1.0.
    """

    model_config = SettingsConfigDict(env_prefix="PIPELINE_")

    # Pause between consecutive chunks to stay under provider rate limits
    pacing_delay: float = 0.5

    # Cooldown before the single controller-level retry of a failed chunk
    retry_cooldown: float = 3.0

    # Provider-level retry of transient errors (exponential backoff)
    max_attempts: int = 5
    backoff_base_delay: float = 2.0

    # Parallel sub-chapter summary requests while building outlines
    outline_concurrency: int = 3
