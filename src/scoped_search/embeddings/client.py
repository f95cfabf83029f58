"""Embedding services for vector (knn) queries, backed by FastEmbed."""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from pathlib import Path
from typing import List, Optional, Union

from fastembed import TextEmbedding

from ..errors import EmbeddingError

logger = logging.getLogger(__name__)

# Model configurations with dimensions
EMBEDDING_MODELS = {
    "bge-small": {
        "name": "BAAI/bge-small-en-v1.5",
        "dimensions": 384,
        "description": "BGE Small (384D, fastest)",
    },
    "bge-base": {
        "name": "BAAI/bge-base-en-v1.5",
        "dimensions": 768,
        "description": "BGE Base (768D, balanced)",
    },
    "bge-large": {
        "name": "BAAI/bge-large-en-v1.5",
        "dimensions": 1024,
        "description": "BGE Large (1024D, general purpose)",
    },
    "jina-base-en": {
        "name": "jinaai/jina-embeddings-v2-base-en",
        "dimensions": 768,
        "description": "Jina v2 Base English (768D, 8K context)",
    },
}


class EmbeddingService(ABC):
    """Turns query text into a vector."""

    @abstractmethod
    def execute(self, text: str) -> List[float]:
        """Return the embedding of ``text``.

        Raises:
            EmbeddingError: If no vector can be produced
        """


class FastEmbedService(EmbeddingService):
    """Embedding service running a FastEmbed ONNX model in-process.

    The model is loaded on first use and shared by all calls. Each call is
    bounded by ``timeout`` seconds.

    Args:
        model: Key of EMBEDDING_MODELS
        cache_dir: Directory to cache downloaded models
        timeout: Seconds to wait for one embedding
    """

    def __init__(self, model: str = "bge-small", cache_dir: Union[str, Path, None] = None,
                 timeout: float = 10.0):
        if model not in EMBEDDING_MODELS:
            raise ValueError(
                f"Unknown model: {model}. "
                f"Available models: {list(EMBEDDING_MODELS.keys())}"
            )
        self.model_name = model
        self.cache_dir = str(cache_dir) if cache_dir else None
        self.timeout = timeout
        self._model: Optional[TextEmbedding] = None
        self._lock = threading.Lock()

    @property
    def dimensions(self) -> int:
        return EMBEDDING_MODELS[self.model_name]["dimensions"]

    def get_model(self) -> TextEmbedding:
        """Get or initialize the embedding model."""
        with self._lock:
            if self._model is None:
                config = EMBEDDING_MODELS[self.model_name]
                logger.info(f"Loading embedding model {config['name']}")
                self._model = TextEmbedding(model_name=config["name"], cache_dir=self.cache_dir)
            return self._model

    def _embed(self, text: str) -> List[float]:
        vectors = list(self.get_model().embed([text]))
        return [float(x) for x in vectors[0]]

    def execute(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        executor = ThreadPoolExecutor(max_workers=1)
        try:
            return executor.submit(self._embed, text).result(timeout=self.timeout)
        except TimeoutError as e:
            raise EmbeddingError(f"Embedding timed out after {self.timeout}s") from e
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Embedding failed with {self.model_name}: {e}") from e
        finally:
            executor.shutdown(wait=False)

