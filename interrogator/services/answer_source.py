"""
Witness answer sources: direct workspace chat or local retrieval-augmented generation.

Responsibility: Resolve one question to one answer, speaking as a witness that
knows only its document. The variant is chosen once at construction
(build_answer_source); callers only see ask() and reset_chat().
"""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from interrogator.agent.llm import OllamaGenerator, TextGenerator
from interrogator.agent.prompts import SUPPORTED_LANGUAGES, locale
from interrogator.core.concurrency import SingleFlight
from interrogator.core.config import (
    ANYTHINGLLM_API_KEY,
    ANYTHINGLLM_BASE_URL,
    CHUNK_OVERLAP,
    CHUNK_SIZE,
    DEFAULT_COLLECTION_NAME,
    EMBED_BATCH_SIZE,
    GENERATION_MAX_TOKENS,
    GENERATION_TEMPERATURE,
    MILVUS_TOKEN,
    MILVUS_URI,
    OLLAMA_BASE_URL,
    OLLAMA_EMBED_MODEL,
    OLLAMA_GENERATION_MODEL,
    RETRIEVAL_TOP_K,
    SCORE_THRESHOLD,
    WITNESS_WORKSPACE_SLUG,
    WORKSPACE_CHAT_TIMEOUT,
)
from interrogator.core.errors import AuthorizationError, ConfigurationError, TransportError
from interrogator.ingest.loader import Document, load_document
from interrogator.services.embedding import OllamaEmbedder
from interrogator.services.ingestion_service import IngestionReport, ingest_document
from interrogator.services.text_processing import RecursiveTextSplitter
from interrogator.services.vector_store import MilvusVectorStore

logger = logging.getLogger(__name__)


class AnswerSource(ABC):
    """The party being interrogated."""

    language: str = "en"

    @abstractmethod
    async def ask(self, question: str) -> str:
        ...

    @abstractmethod
    async def reset_chat(self) -> None:
        ...

    async def close(self) -> None:
        """Release connections held by the source; it is not asked again afterwards."""


def _check_language(language: str) -> str:
    if language not in SUPPORTED_LANGUAGES:
        raise ConfigurationError(
            f"Unsupported language: {language!r} (supported: {', '.join(sorted(SUPPORTED_LANGUAGES))})"
        )
    return language


def _new_session_handle() -> str:
    return f"session-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


# --- Direct mode ---

class WorkspaceChatClient:
    """Conversational transport for an AnythingLLM-compatible workspace chat API."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        workspace_slug: str,
        timeout: float = WORKSPACE_CHAT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.workspace_slug = workspace_slug
        self.timeout = timeout
        self._transport = transport

    async def send(self, message: str, session_id: str, reset: bool) -> str:
        """
        Send one chat message. reset=True asks the service to drop earlier turns
        tied to session_id.

        Raises:
            AuthorizationError: on 401/403.
            TransportError: on any other failure, with the status when there is one.
        """
        url = f"{self.base_url}/api/v1/workspace/{self.workspace_slug}/chat"
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        payload = {"message": message, "mode": "chat", "sessionId": session_id, "reset": reset}
        logger.info("[workspace_chat:send] IN  slug=%s message_len=%d reset=%s", self.workspace_slug, len(message), reset)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"Workspace chat request failed: {e}") from e
        logger.info("[workspace_chat:send] status=%d", response.status_code)
        if response.status_code in (401, 403):
            raise AuthorizationError(f"Unauthorized: Invalid API key ({response.status_code})", response.status_code)
        if response.status_code >= 400:
            raise TransportError(
                f"Workspace chat request failed: {response.reason_phrase}", response.status_code
            )
        text = response.json().get("textResponse")
        if not text:
            raise TransportError("Invalid response from workspace chat: missing textResponse", response.status_code)
        return text


class DirectAnswerSource(AnswerSource):
    """Forwards questions to one workspace chat session, prefixed with the witness framing."""

    def __init__(
        self,
        api_key: str,
        workspace_slug: str,
        base_url: str = ANYTHINGLLM_BASE_URL,
        language: str = "en",
        client: WorkspaceChatClient | None = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ConfigurationError("apiKey is required for direct witness mode")
        if not workspace_slug or not workspace_slug.strip():
            raise ConfigurationError("workspaceSlug is required for direct witness mode")
        self.language = _check_language(language)
        self.client = client or WorkspaceChatClient(api_key, base_url or ANYTHINGLLM_BASE_URL, workspace_slug)
        self.session_id = _new_session_handle()
        self._first_message = True

    @property
    def first_message(self) -> bool:
        return self._first_message

    async def reset_chat(self) -> None:
        self.session_id = _new_session_handle()
        self._first_message = True
        logger.info("[witness:direct] reset_chat new session=%s", self.session_id)

    async def ask(self, question: str) -> str:
        table = locale(self.language)
        message = f"{table['witness_system_prompt']}\n\n---\n\n{table['question_label']} {question}"
        answer = await self.client.send(message, self.session_id, reset=self._first_message)
        # Only a successful call consumes the reset
        self._first_message = False
        logger.info("[witness:direct] OUT answer_len=%d", len(answer))
        return answer


# --- Retrieval mode ---

@dataclass
class RagSettings:
    chunk_size: int = CHUNK_SIZE
    chunk_overlap: int = CHUNK_OVERLAP
    embedding_model: str = OLLAMA_EMBED_MODEL
    embedding_batch_size: int = EMBED_BATCH_SIZE
    ollama_base_url: str = OLLAMA_BASE_URL
    milvus_uri: str = MILVUS_URI
    milvus_token: str = MILVUS_TOKEN
    retrieval_k: int = RETRIEVAL_TOP_K
    score_threshold: float = SCORE_THRESHOLD
    generation_model: str = OLLAMA_GENERATION_MODEL
    generation_temperature: float = GENERATION_TEMPERATURE

    def validate(self) -> None:
        if self.chunk_size <= 0:
            raise ConfigurationError("chunk_size must be positive")
        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise ConfigurationError("chunk_overlap must be >= 0 and smaller than chunk_size")
        if self.embedding_batch_size < 1:
            raise ConfigurationError("embedding_batch_size must be at least 1")
        if self.retrieval_k < 1:
            raise ConfigurationError("retrieval_k must be at least 1")
        if not self.ollama_base_url or not self.ollama_base_url.strip():
            raise ConfigurationError("ollamaBaseUrl is required for retrieval witness mode")


def build_witness_prompt(question: str, context: str, language: str = "en") -> str:
    table = locale(language)
    return (
        f"{table['witness_system_prompt']}\n\n"
        f"{table['context_label']}\n\n"
        f"{context}\n\n"
        f"{table['question_label']} {question}\n\n"
        f"{table['answer_label']}"
    )


class RetrievalAnswerSource(AnswerSource):
    """
    Answers from the witness document through a local RAG pipeline.

    The document is ingested lazily on the first ask(); concurrent callers share
    that single attempt. A failed attempt is not cached: the next ask() retries.
    """

    def __init__(
        self,
        document_path: str,
        collection_name: str = DEFAULT_COLLECTION_NAME,
        language: str = "en",
        settings: RagSettings | None = None,
        generator: TextGenerator | None = None,
        store_factory: Callable[[], Any] | None = None,
        loader: Callable[[str], Document] = load_document,
    ) -> None:
        if not document_path or not str(document_path).strip():
            raise ConfigurationError("documentPath is required for retrieval witness mode")
        if not collection_name or not collection_name.strip():
            raise ConfigurationError("collectionName is required for retrieval witness mode")
        self.settings = settings or RagSettings()
        self.settings.validate()
        self.language = _check_language(language)
        self.document_path = str(document_path)
        self.collection_name = collection_name
        self.splitter = RecursiveTextSplitter(self.settings.chunk_size, self.settings.chunk_overlap)
        self.generator = generator or OllamaGenerator(self.settings.ollama_base_url, self.settings.generation_model)
        self._store_factory = store_factory or self._default_store
        self._loader = loader
        self._flight: SingleFlight[Any] = SingleFlight(name=f"ingest:{collection_name}")
        self.last_report: IngestionReport | None = None

    def _default_store(self) -> MilvusVectorStore:
        embedder = OllamaEmbedder(
            base_url=self.settings.ollama_base_url,
            model=self.settings.embedding_model,
            batch_size=self.settings.embedding_batch_size,
        )
        return MilvusVectorStore(
            embedder, self.collection_name, uri=self.settings.milvus_uri, token=self.settings.milvus_token
        )

    @property
    def document_processed(self) -> bool:
        return self._flight.done

    async def _ingest(self) -> Any:
        store = self._store_factory()
        try:
            self.last_report = await ingest_document(self.document_path, self.splitter, store, loader=self._loader)
        except Exception:
            await self._close_store(store)
            raise
        return store

    async def _close_store(self, store: Any) -> None:
        try:
            await store.close()
        except Exception as e:
            logger.warning("[witness:retrieval] closing store for %s failed: %s", self.collection_name, e)

    async def ensure_ingested(self) -> Any:
        return await self._flight.run(self._ingest)

    async def ask(self, question: str) -> str:
        logger.info("[witness:retrieval] IN  question_len=%d", len(question))
        store = await self.ensure_ingested()
        threshold = self.settings.score_threshold or None
        chunks = await store.search(question, k=self.settings.retrieval_k, score_threshold=threshold)
        logger.info("[witness:retrieval] retrieved %d chunks", len(chunks))
        context = "\n\n".join(c.text for c in chunks)
        prompt = build_witness_prompt(question, context, self.language)
        answer = await self.generator.generate(
            prompt, max_tokens=GENERATION_MAX_TOKENS, temperature=self.settings.generation_temperature
        )
        logger.info("[witness:retrieval] OUT answer_len=%d", len(answer))
        return answer

    async def reset_chat(self) -> None:
        store = self._flight.result
        self._flight.reset()
        if store is not None:
            try:
                await store.clear()
            finally:
                await self._close_store(store)
            logger.info("[witness:retrieval] collection %s cleared", self.collection_name)
        logger.info("[witness:retrieval] reset; document will be reprocessed on next question")

    async def close(self) -> None:
        store = self._flight.result
        self._flight.reset()
        if store is not None:
            await self._close_store(store)


def build_answer_source(config: Any) -> AnswerSource:
    """
    Construct the witness for an interrogation request (see InterrogationConfig).

    Raises:
        ConfigurationError: missing credentials or mode-specific fields.
    """
    mode = getattr(config, "witness_mode", None)
    language = getattr(config, "language", "en")
    if mode == "direct":
        if not ANYTHINGLLM_API_KEY:
            raise ConfigurationError("Workspace chat credentials not configured (ANYTHINGLLM_API_KEY)")
        return DirectAnswerSource(
            api_key=ANYTHINGLLM_API_KEY,
            workspace_slug=config.workspace_slug or WITNESS_WORKSPACE_SLUG,
            base_url=config.anythingllm_base_url or ANYTHINGLLM_BASE_URL,
            language=language,
        )
    if mode == "retrieval":
        settings = RagSettings()
        if config.ollama_base_url:
            settings.ollama_base_url = config.ollama_base_url
        if config.milvus_uri:
            settings.milvus_uri = config.milvus_uri
        return RetrievalAnswerSource(
            document_path=config.document_path or "",
            collection_name=config.collection_name or DEFAULT_COLLECTION_NAME,
            language=language,
            settings=settings,
        )
    raise ConfigurationError(f"Invalid witness mode: {mode!r}. Must be 'direct' or 'retrieval'")
