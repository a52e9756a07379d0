"""Diagram endpoints: the full pipeline plus each stage on its own.

Routes are sync so FastAPI runs them in its worker threadpool; the pipeline
makes blocking provider calls. Errors are mapped to status codes by the
handlers registered in mermaidq.api.app.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from mermaidq.api.models import (
    CodeResponse,
    GenerateDiagramRequest,
    GenerationResponse,
    IdentifyRequest,
    IdentifyResponse,
    ImproveResponse,
    TypedPromptRequest,
)
from mermaidq.diagrams.pipeline import DiagramPipeline
from mermaidq.observability.logging import get_logger
from mermaidq.observability.telemetry import counter

router = APIRouter(prefix="/api/diagrams", tags=["diagrams"])
logger = get_logger(__name__)


def get_pipeline(request: Request) -> DiagramPipeline:
    return request.app.state.pipeline


@router.post("", response_model=GenerationResponse)
def generate_mermaid_diagram(
    body: GenerateDiagramRequest, pipeline: DiagramPipeline = Depends(get_pipeline)
) -> GenerationResponse:
    """Classify, improve and generate in one call."""
    counter("api.diagrams.run")
    result = pipeline.run(body.prompt, body.chat_history())
    return GenerationResponse.model_validate(result.to_dict())


@router.post("/identify", response_model=IdentifyResponse)
def identify_diagram_type(
    body: IdentifyRequest, pipeline: DiagramPipeline = Depends(get_pipeline)
) -> IdentifyResponse:
    counter("api.diagrams.identify")
    result = pipeline.identify(body.prompt, body.chat_history())
    return IdentifyResponse.model_validate(result.to_dict())


@router.post("/improve", response_model=ImproveResponse)
def improve_prompt(
    body: TypedPromptRequest, pipeline: DiagramPipeline = Depends(get_pipeline)
) -> ImproveResponse:
    counter("api.diagrams.improve")
    improved = pipeline.improve(body.prompt, body.diagram_type, body.chat_history())
    return ImproveResponse(improved_prompt=improved)


@router.post("/generate", response_model=CodeResponse)
def generate_diagram(
    body: TypedPromptRequest, pipeline: DiagramPipeline = Depends(get_pipeline)
) -> CodeResponse:
    counter("api.diagrams.generate")
    code = pipeline.generate(body.prompt, body.diagram_type, body.chat_history())
    return CodeResponse(code=code)
