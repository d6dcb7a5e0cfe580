"""Schemas for the interrogation endpoints and progress events."""

from typing import Literal

from pydantic import BaseModel, Field

from interrogator.agent.strategy import Strategy
from interrogator.core.config import DEFAULT_ITERATIONS, MAX_ITERATIONS, MIN_ITERATIONS

ProgressStatus = Literal["running", "completed", "limit-reached", "cancelled", "failed"]


class InterrogationConfig(BaseModel):
    """Request body for POST /interrogations. Mode-specific fields are checked when the witness is built."""

    hypothesis: str = Field(..., min_length=1, description="Topic or question to investigate.")
    iteration_limit: int = Field(
        DEFAULT_ITERATIONS, ge=MIN_ITERATIONS, le=MAX_ITERATIONS, description="Maximum number of question/answer turns."
    )
    detective_provider: Literal["openai", "huggingface", "auto"] = Field(
        "openai", description="LLM used to generate questions and analyze answers."
    )
    witness_mode: Literal["direct", "retrieval"] = Field(..., description="direct: workspace chat; retrieval: local RAG.")
    language: Literal["en", "de"] = Field("en", description="Prompt language for detective and witness.")
    initial_strategy: Strategy = Field(Strategy.DEEP_DIVE, description="Strategy the cycle starts (and ends) with.")

    # direct mode
    workspace_slug: str | None = Field(None, description="Workspace slug; falls back to WITNESS_WORKSPACE_SLUG.")
    anythingllm_base_url: str | None = Field(None, description="Workspace chat base URL override.")

    # retrieval mode
    document_path: str | None = Field(None, description="Path of the witness document (.txt, .html, .pdf, .xlsx).")
    collection_name: str | None = Field(None, description="Milvus collection for the document's chunks.")
    ollama_base_url: str | None = Field(None, description="Ollama base URL override.")
    milvus_uri: str | None = Field(None, description="Milvus URI override (file path for Milvus Lite).")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "hypothesis": "How does the onboarding process work?",
                    "iteration_limit": 10,
                    "detective_provider": "openai",
                    "witness_mode": "retrieval",
                    "document_path": "data/handbook.txt",
                    "collection_name": "handbook",
                }
            ]
        }
    }


class StartResponse(BaseModel):
    session_id: str = Field(..., description="Id of the started interrogation.")


class StopResponse(BaseModel):
    stopped: bool = True


class InterrogationProgress(BaseModel):
    """Progress event; sent after every iteration and on completion, failure, or stop."""

    session_id: str
    current_iteration: int
    total_iterations: int
    question: str = ""
    answer: str = ""
    findings: list[str] = Field(default_factory=list, description="Cumulative findings of the run.")
    strategy: Strategy | None = None
    status: ProgressStatus = "running"


class SessionSummary(BaseModel):
    session_id: str
    hypothesis: str
    status: ProgressStatus
    current_iteration: int
    total_iterations: int
    started_at: str
    ended_at: str | None = None


class SessionDetail(SessionSummary):
    findings: list[str] = Field(default_factory=list)
    events: list[InterrogationProgress] = Field(default_factory=list)
    error: str | None = None
