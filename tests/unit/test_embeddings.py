"""Unit tests for embedding services."""

import sys
import threading
from types import SimpleNamespace

import pytest

from brain_protocol.core.config import Settings
from brain_protocol.core.embeddings import (
    EmbeddingError,
    LocalEmbeddingService,
    OpenAIEmbeddingService,
    ProviderType,
    create_embedding_service,
)
from fakes import FakeEmbeddingService


class TestCosineSimilarity:
    """Test cases for EmbeddingService.cosine_similarity."""

    def setup_method(self):
        self.service = FakeEmbeddingService()

    def test_identical_vectors(self):
        assert self.service.cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert self.service.cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert self.service.cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    @pytest.mark.parametrize("vec1,vec2", [
        ([], []),
        ([1.0, 0.0], [1.0]),
        ([0.0, 0.0], [1.0, 0.0]),
    ])
    def test_degenerate_vectors(self, vec1, vec2):
        assert self.service.cosine_similarity(vec1, vec2) == 0.0


@pytest.mark.asyncio
async def test_default_batch_embeds_each_text():
    service = FakeEmbeddingService(vectors={"a": [0.0, 1.0, 0.0]})

    assert await service.embed_batch(["a", "b"]) == [[0.0, 1.0, 0.0], [1.0, 0.0, 0.0]]


class TestProviderFactory:
    """Test cases for create_embedding_service."""

    def test_openai_when_key_configured(self):
        service = create_embedding_service(Settings(_env_file=None, openai_api_key="sk-test"))

        assert isinstance(service, OpenAIEmbeddingService)
        assert service.model_name == "openai:text-embedding-3-small"
        assert service.dimension == 1536

    def test_local_without_key(self):
        service = create_embedding_service(Settings(_env_file=None, openai_api_key=""))

        assert isinstance(service, LocalEmbeddingService)
        assert service.model_name == "local:all-MiniLM-L6-v2"
        assert service.dimension == 384
        assert service.model is None

    def test_explicit_provider_overrides_key(self):
        settings = Settings(_env_file=None, openai_api_key="sk-test", embedding_provider="local")

        assert isinstance(create_embedding_service(settings), LocalEmbeddingService)

    def test_openai_without_key(self):
        with pytest.raises(EmbeddingError):
            create_embedding_service(Settings(_env_file=None, openai_api_key=""), ProviderType.OPENAI)


class Vector:
    def __init__(self, values: list[float]):
        self.values = values

    def tolist(self) -> list[float]:
        return self.values


class RecordingSentenceTransformer:
    """Stands in for sentence_transformers.SentenceTransformer."""

    instances: list["RecordingSentenceTransformer"] = []

    def __init__(self, model_name: str):
        self.model_name = model_name
        self.thread_id = threading.get_ident()
        RecordingSentenceTransformer.instances.append(self)

    def encode(self, texts: list[str]) -> list[Vector]:
        return [Vector([float(len(text)), 1.0]) for text in texts]


@pytest.mark.asyncio
class TestLocalEmbeddingService:
    """Test cases for LocalEmbeddingService with a stand-in model."""

    @pytest.fixture(autouse=True)
    def fake_sentence_transformers(self, monkeypatch):
        RecordingSentenceTransformer.instances = []
        monkeypatch.setitem(
            sys.modules,
            "sentence_transformers",
            SimpleNamespace(SentenceTransformer=RecordingSentenceTransformer),
        )

    async def test_model_loaded_off_event_loop_thread(self):
        service = LocalEmbeddingService()

        assert await service.embed("abc") == [3.0, 1.0]

        [model] = RecordingSentenceTransformer.instances
        assert model.model_name == "all-MiniLM-L6-v2"
        assert model.thread_id != threading.get_ident()

    async def test_model_loaded_once(self):
        service = LocalEmbeddingService()

        await service.embed("a")
        assert await service.embed_batch(["ab", ""]) == [[2.0, 1.0], [0.0, 1.0]]

        assert len(RecordingSentenceTransformer.instances) == 1

    async def test_blank_text_skips_model(self):
        service = LocalEmbeddingService()

        assert await service.embed("  ") == [0.0] * 384
        assert RecordingSentenceTransformer.instances == []
