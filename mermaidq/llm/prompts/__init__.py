"""
Prompt Management Module

Loads and manages LLM prompts from the .txt templates next to this file, so
prompt wording can change without touching the stage code.
"""

from __future__ import annotations

from pathlib import Path

PROMPTS_DIR = Path(__file__).parent

IDENTIFY_PROMPT = "identify_prompt"
IMPROVE_PROMPT = "improve_prompt"
GENERATE_PROMPT = "generate_prompt"


class PromptLoader:
    """Load and cache prompt templates from files"""

    def __init__(self, prompts_dir: Path = PROMPTS_DIR):
        self.prompts_dir = prompts_dir
        self._cache: dict[str, str] = {}

    def load_prompt(self, prompt_name: str) -> str:
        """
        Load a prompt template from file.

        Args:
            prompt_name: Name of the prompt file (without .txt extension)

        Returns:
            Prompt template string
        """
        if prompt_name not in self._cache:
            prompt_path = self.prompts_dir / f"{prompt_name}.txt"

            if not prompt_path.exists():
                raise FileNotFoundError(f"Prompt file not found: {prompt_path}")

            with open(prompt_path, encoding="utf-8") as f:
                self._cache[prompt_name] = f.read()

        return self._cache[prompt_name]

    def render(self, prompt_name: str, **kwargs: str) -> str:
        """Fill a template. Values are inserted verbatim; braces in them are safe."""
        return self.load_prompt(prompt_name).format(**kwargs).strip()

    def reload(self) -> None:
        """Clear cache and reload prompts from disk"""
        self._cache.clear()


# Global instance
_loader = PromptLoader()


def get_identify_prompt(**kwargs: str) -> str:
    """
    Args:
        contextual_instruction: Preamble (differs with/without history)
        diagram_types: Comma-separated closed type set
        history_context: Formatted conversation history or ""
        prompt: Trimmed user prompt
    """
    return _loader.render(IDENTIFY_PROMPT, **kwargs)


def get_improve_prompt(**kwargs: str) -> str:
    """
    Args:
        contextual_instruction, history_context, diagram_type, prompt
    """
    return _loader.render(IMPROVE_PROMPT, **kwargs)


def get_generate_prompt(**kwargs: str) -> str:
    """
    Args:
        contextual_instruction, history_context, diagram_type, directive, prompt
    """
    return _loader.render(GENERATE_PROMPT, **kwargs)
