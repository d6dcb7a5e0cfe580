"""
Tests for witness answer sources.

Direct mode talks to an httpx.MockTransport; retrieval mode uses an in-memory
store, loader, and generator so no Ollama or Milvus is needed.
"""

import asyncio
import json
from unittest.mock import patch

import httpx
import pytest

from interrogator.core.errors import AuthorizationError, ConfigurationError, IngestionError, TransportError
from interrogator.ingest.loader import Document
from interrogator.schemas.interrogation import InterrogationConfig
from interrogator.services.answer_source import (
    DirectAnswerSource,
    RagSettings,
    RetrievalAnswerSource,
    WorkspaceChatClient,
    build_answer_source,
    build_witness_prompt,
)
from interrogator.services.text_processing import Chunk


# --- fakes ---

class FakeStore:
    def __init__(self) -> None:
        self.collection_name = "fake_collection"
        self.chunks: list[Chunk] = []
        self.clear_calls = 0
        self.add_calls = 0
        self.close_calls = 0
        self.searches: list[tuple[str, int, float | None]] = []

    async def create_or_connect(self) -> None:
        pass

    async def clear(self) -> None:
        self.clear_calls += 1
        self.chunks = []

    async def add(self, chunks: list[Chunk]) -> None:
        self.add_calls += 1
        await asyncio.sleep(0)
        self.chunks.extend(chunks)

    async def search(self, query: str, k: int = 5, score_threshold: float | None = None) -> list[Chunk]:
        self.searches.append((query, k, score_threshold))
        return self.chunks[:k]

    async def close(self) -> None:
        self.close_calls += 1


class FakeLoader:
    """Counts loads; raises the queued errors first, then returns the document."""

    def __init__(self, text: str = "Onboarding takes two weeks.\n\nEach hire gets a mentor.", errors=()) -> None:
        self.text = text
        self.errors = list(errors)
        self.calls = 0

    def __call__(self, path: str) -> Document:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return Document(text=self.text, metadata={"source": path, "filename": "doc.txt", "file_type": "txt"})


class RecordingGenerator:
    def __init__(self, answer: str = "I read that onboarding takes two weeks.") -> None:
        self.answer = answer
        self.calls: list[tuple[str, float | None]] = []

    async def generate(self, prompt: str, max_tokens: int = 256, temperature=None) -> str:
        self.calls.append((prompt, temperature))
        return self.answer


def make_retrieval(loader: FakeLoader, store: FakeStore, generator: RecordingGenerator | None = None):
    return RetrievalAnswerSource(
        document_path="data/doc.txt",
        collection_name="test_collection",
        settings=RagSettings(chunk_size=40, chunk_overlap=0),
        generator=generator or RecordingGenerator(),
        store_factory=lambda: store,
        loader=loader,
    )


# --- retrieval mode ---

class TestRetrievalAnswerSource:
    @pytest.mark.asyncio
    async def test_concurrent_first_questions_ingest_once(self) -> None:
        loader, store = FakeLoader(), FakeStore()
        witness = make_retrieval(loader, store)

        answers = await asyncio.gather(*(witness.ask(f"Question {i}?") for i in range(5)))

        assert loader.calls == 1
        assert store.add_calls == 1
        assert len(answers) == 5
        assert witness.document_processed
        assert witness.last_report.chunk_count == 2
        assert witness.last_report.estimated_chunk_count >= 1

    @pytest.mark.asyncio
    async def test_failed_ingestion_is_shared_then_retried(self) -> None:
        loader, store = FakeLoader(errors=[RuntimeError("disk on fire")]), FakeStore()
        witness = make_retrieval(loader, store)

        results = await asyncio.gather(witness.ask("A?"), witness.ask("B?"), return_exceptions=True)
        assert loader.calls == 1
        assert all(isinstance(r, IngestionError) for r in results)
        assert "Document processing failed" in str(results[0])
        assert isinstance(results[0].__cause__, RuntimeError)
        assert not witness.document_processed
        assert store.close_calls == 1

        answer = await witness.ask("C?")
        assert answer == "I read that onboarding takes two weeks."
        assert loader.calls == 2
        assert witness.document_processed

    @pytest.mark.asyncio
    async def test_reset_chat_clears_index_and_reingests(self) -> None:
        loader, store = FakeLoader(), FakeStore()
        witness = make_retrieval(loader, store)
        await witness.ask("First?")
        clears_after_ingest = store.clear_calls

        await witness.reset_chat()
        assert store.clear_calls == clears_after_ingest + 1
        assert store.close_calls == 1
        assert not witness.document_processed

        await witness.ask("Second?")
        assert loader.calls == 2
        assert witness.document_processed

    @pytest.mark.asyncio
    async def test_reset_before_any_ingestion_is_harmless(self) -> None:
        loader, store = FakeLoader(), FakeStore()
        witness = make_retrieval(loader, store)
        await witness.reset_chat()
        assert store.clear_calls == 0
        assert loader.calls == 0
        assert store.close_calls == 0

    @pytest.mark.asyncio
    async def test_close_releases_store_and_forgets_ingestion(self) -> None:
        loader, store = FakeLoader(), FakeStore()
        witness = make_retrieval(loader, store)
        await witness.ask("First?")

        await witness.close()
        assert store.close_calls == 1
        assert store.clear_calls == 1
        assert not witness.document_processed

        await witness.close()
        assert store.close_calls == 1

    @pytest.mark.asyncio
    async def test_store_closed_even_when_clear_fails(self) -> None:
        loader, store = FakeLoader(), FakeStore()
        witness = make_retrieval(loader, store)
        await witness.ask("First?")

        async def broken_clear() -> None:
            raise RuntimeError("collection locked")

        store.clear = broken_clear
        with pytest.raises(RuntimeError, match="collection locked"):
            await witness.reset_chat()
        assert store.close_calls == 1
        assert not witness.document_processed

    @pytest.mark.asyncio
    async def test_prompt_carries_context_and_question(self) -> None:
        loader, store, generator = FakeLoader(), FakeStore(), RecordingGenerator()
        witness = make_retrieval(loader, store, generator)
        await witness.ask("How long is onboarding?")

        assert store.searches == [("How long is onboarding?", 5, None)]
        prompt, temperature = generator.calls[0]
        assert "Onboarding takes two weeks." in prompt
        assert "Each hire gets a mentor." in prompt
        assert "Question: How long is onboarding?" in prompt
        assert prompt.rstrip().endswith("Answer as witness:")
        assert temperature == 0.1

    def test_required_fields(self) -> None:
        with pytest.raises(ConfigurationError, match="documentPath"):
            RetrievalAnswerSource(document_path="", collection_name="c")
        with pytest.raises(ConfigurationError, match="collectionName"):
            RetrievalAnswerSource(document_path="doc.txt", collection_name=" ")

    def test_invalid_settings(self) -> None:
        with pytest.raises(ConfigurationError):
            RetrievalAnswerSource("doc.txt", "c", settings=RagSettings(chunk_size=100, chunk_overlap=100))
        with pytest.raises(ConfigurationError):
            RetrievalAnswerSource("doc.txt", "c", settings=RagSettings(embedding_batch_size=0))


def test_witness_prompt_in_german() -> None:
    prompt = build_witness_prompt("Wie lange?", "Zwei Wochen.", "de")
    assert "Frage: Wie lange?" in prompt
    assert "Basierend auf diesem Kontext aus dem Dokument:" in prompt
    assert "Zwei Wochen." in prompt


# --- direct mode ---

class ChatServer:
    """MockTransport handler that records requests and replays queued responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(200, json={"textResponse": "I know this."})

    def payload(self, i: int) -> dict:
        return json.loads(self.requests[i].content)


def make_direct(server: ChatServer) -> DirectAnswerSource:
    client = WorkspaceChatClient("secret", "http://chat.local/", "handbook", transport=httpx.MockTransport(server))
    return DirectAnswerSource(api_key="secret", workspace_slug="handbook", client=client)


class TestDirectAnswerSource:
    @pytest.mark.asyncio
    async def test_first_message_resets_then_continues_session(self) -> None:
        server = ChatServer()
        witness = make_direct(server)

        assert await witness.ask("What is onboarding?") == "I know this."
        await witness.ask("And then?")

        first, second = server.payload(0), server.payload(1)
        assert first["reset"] is True and second["reset"] is False
        assert first["mode"] == "chat"
        assert first["sessionId"] == second["sessionId"] == witness.session_id
        assert "---" in first["message"]
        assert first["message"].endswith("Question: What is onboarding?")
        request = server.requests[0]
        assert request.url.path == "/api/v1/workspace/handbook/chat"
        assert request.headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_reset_chat_issues_new_session(self) -> None:
        server = ChatServer()
        witness = make_direct(server)
        await witness.ask("Q1?")
        old = witness.session_id

        await witness.reset_chat()
        assert witness.first_message
        assert witness.session_id != old
        await witness.ask("Q2?")
        assert server.payload(1)["reset"] is True
        assert server.payload(1)["sessionId"] == witness.session_id

    @pytest.mark.asyncio
    async def test_failed_first_call_keeps_reset_flag(self) -> None:
        server = ChatServer(httpx.Response(500, json={"error": "boom"}))
        witness = make_direct(server)

        with pytest.raises(TransportError) as excinfo:
            await witness.ask("Q?")
        assert excinfo.value.status == 500
        assert witness.first_message

        await witness.ask("Q?")
        assert server.payload(1)["reset"] is True
        assert not witness.first_message

    @pytest.mark.asyncio
    async def test_unauthorized(self) -> None:
        witness = make_direct(ChatServer(httpx.Response(401, json={"error": "bad key"})))
        with pytest.raises(AuthorizationError, match="Unauthorized"):
            await witness.ask("Q?")

    @pytest.mark.asyncio
    async def test_missing_text_response(self) -> None:
        witness = make_direct(ChatServer(httpx.Response(200, json={"sources": []})))
        with pytest.raises(TransportError, match="textResponse"):
            await witness.ask("Q?")

    def test_required_fields(self) -> None:
        with pytest.raises(ConfigurationError, match="apiKey"):
            DirectAnswerSource(api_key="", workspace_slug="handbook")
        with pytest.raises(ConfigurationError, match="workspaceSlug"):
            DirectAnswerSource(api_key="secret", workspace_slug="")
        with pytest.raises(ConfigurationError, match="Unsupported language"):
            DirectAnswerSource(api_key="secret", workspace_slug="handbook", language="fr")


class TestBuildAnswerSource:
    def test_direct_without_credentials(self) -> None:
        config = InterrogationConfig(hypothesis="Topic", witness_mode="direct", workspace_slug="handbook")
        with patch("interrogator.services.answer_source.ANYTHINGLLM_API_KEY", ""):
            with pytest.raises(ConfigurationError):
                build_answer_source(config)

    def test_direct_with_credentials(self) -> None:
        config = InterrogationConfig(hypothesis="Topic", witness_mode="direct", workspace_slug="handbook")
        with patch("interrogator.services.answer_source.ANYTHINGLLM_API_KEY", "secret"):
            witness = build_answer_source(config)
        assert isinstance(witness, DirectAnswerSource)
        assert witness.client.workspace_slug == "handbook"

    def test_retrieval_requires_document(self) -> None:
        config = InterrogationConfig(hypothesis="Topic", witness_mode="retrieval")
        with pytest.raises(ConfigurationError, match="documentPath"):
            build_answer_source(config)

    def test_retrieval_applies_overrides(self) -> None:
        config = InterrogationConfig(
            hypothesis="Topic",
            witness_mode="retrieval",
            document_path="data/doc.txt",
            collection_name="docs",
            ollama_base_url="http://gpu-box:11434",
            language="de",
        )
        witness = build_answer_source(config)
        assert isinstance(witness, RetrievalAnswerSource)
        assert witness.settings.ollama_base_url == "http://gpu-box:11434"
        assert witness.collection_name == "docs"
        assert witness.language == "de"

    def test_unknown_mode(self) -> None:
        class Config:
            witness_mode = "telepathy"

        with pytest.raises(ConfigurationError, match="Invalid witness mode"):
            build_answer_source(Config())
