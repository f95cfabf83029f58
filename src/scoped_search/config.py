"""Configuration management for scoped search."""

from pydantic import BaseModel, Field
from pathlib import Path
from typing import Dict, List, Optional
import yaml


class ElasticsearchConfig(BaseModel):
    """Search engine connection configuration."""
    url: str = "http://localhost:9200"
    api_key: Optional[str] = None
    timeout: int = 30
    verify_certs: bool = True


class QuerySettings(BaseModel):
    """Query composition toggles and defaults, passed explicitly to builders."""
    multi_match_enabled: bool = True
    analyzer_suffixes: List[str] = Field(default_factory=list)
    hybrid_similarity: float = 0.6
    hybrid_boost: float = 5.0
    knn_k: int = 25
    knn_num_candidates: int = 100
    related_size: int = 100
    tie_breaker: str = "id"
    # Named sort aliases added on top of the built-in tables: {alias: {field: direction}}
    extra_sorts: Dict[str, Dict[str, str]] = Field(default_factory=dict)


class EmbeddingConfig(BaseModel):
    """Embedding model and rate limit configuration."""
    model: str = "bge-small"
    cache_dir: Path = Path("./models_cache")
    rate_limit: int = 60  # requests per window
    rate_window_seconds: int = 60


class IndexConfig(BaseModel):
    """Index name per document type."""
    issue: str = "issues"
    merge_request: str = "merge_requests"
    milestone: str = "milestones"
    project: str = "projects"
    work_item: str = "work_items"
    note: str = "notes"

    def index_for(self, doc_type: str) -> str:
        """Return the index name for a document type.

        Raises:
            ValueError: If doc_type has no configured index
        """
        if doc_type not in type(self).model_fields:
            raise ValueError(f"No index configured for doc type: {doc_type}")
        return getattr(self, doc_type)


class ScopedSearchConfig(BaseModel):
    """Root configuration."""
    elasticsearch: ElasticsearchConfig = Field(default_factory=ElasticsearchConfig)
    query: QuerySettings = Field(default_factory=QuerySettings)
    embeddings: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    indexes: IndexConfig = Field(default_factory=IndexConfig)


def load_config(config_path: Path) -> ScopedSearchConfig:
    """Load and validate configuration file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated ScopedSearchConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If config file content is invalid
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    return ScopedSearchConfig(**data)


def save_config(config: ScopedSearchConfig, config_path: Path):
    """Save configuration to file.

    Args:
        config: Configuration to save
        config_path: Path to save YAML file
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w') as f:
        yaml.dump(config.model_dump(mode='json'), f, default_flow_style=False)
