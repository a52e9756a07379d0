"""mermaidq - natural-language requests to Mermaid diagram markup"""

from __future__ import annotations

__version__ = "1.0.0"
