"""Health check endpoint for the mermaidq API.

Reports service status, version and whether each completion provider has a
credential configured (presence only, no API call).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from mermaidq.config import APP_VERSION, classifier_provider_config, generator_provider_config
from mermaidq.observability.telemetry import get_counters, get_latency_stats

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check() -> dict[str, Any]:
    classifier = classifier_provider_config()
    generator = generator_provider_config()

    return {
        "status": "healthy",
        "service": "mermaidq API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "llm": {
            "ready": classifier.has_credentials and generator.has_credentials,
            classifier.name: {"model": classifier.model, "configured": classifier.has_credentials},
            generator.name: {"model": generator.model, "configured": generator.has_credentials},
        },
        "telemetry": {
            "counters": get_counters(),
            "pipeline_latency_seconds": get_latency_stats("pipeline.run"),
        },
    }
