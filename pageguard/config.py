"""
Configuration management for pageguard
Environment-based configuration, every variable prefixed with PAGEGUARD_
"""
from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False

    # Semantic analysis
    semantic_enabled: bool = True
    embedding_provider: str = "openai"
    embedding_model: str = ""
    openai_api_key: Optional[str] = None
    ollama_base_url: str = "http://localhost:11434"
    vector_cache_size: int = 500
    anchor_similarity_threshold: float = 0.40
    outlier_distance_threshold: float = 0.50
    min_chunk_words: int = 5

    # Classification service (None = run the classifier in-process)
    analysis_url: Optional[str] = None
    analysis_timeout_seconds: float = 30.0

    # Scan scheduling
    scan_cooldown_ms: int = 1000
    debounce_ms: int = 500

    # Reporting
    activity_log_size: int = 100

    # Entity redaction
    safe_senders: str = ""

    class Config:
        env_file = ".env"
        env_prefix = "PAGEGUARD_"
        case_sensitive = False

    def get_safe_senders(self) -> List[str]:
        """Parse the comma-separated safe sender list."""
        if not self.safe_senders:
            return []
        return [s.strip() for s in self.safe_senders.split(",") if s.strip()]

    def uses_remote_analysis(self) -> bool:
        """Check whether semantic analysis is delegated to another process"""
        return bool(self.analysis_url)


# Global settings instance
settings = Settings()
