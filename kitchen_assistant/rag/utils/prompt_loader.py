"""
Jinja2 Prompt Template Loader

Centralized utility for loading and rendering Jinja2 prompt templates.
Prompts are stored in kitchen_assistant/rag/prompts/ as .jinja2 files.
"""

from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape
from loguru import logger

# Get the prompts directory path
PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


class PromptLoader:
    """
    Jinja2 template loader for LLM prompts.

    Autoescaping is disabled (prompts are not HTML) and undefined variables
    raise instead of rendering as empty strings.

    Usage:
        loader = PromptLoader()
        prompt = loader.render("recipe_generation.jinja2", user_query="tofu-free stir-fry", allergies=["soy"])
    """

    def __init__(self, prompts_dir: Path = PROMPTS_DIR):
        """Initialize Jinja2 environment with FileSystemLoader."""
        self.env = Environment(
            loader=FileSystemLoader(str(prompts_dir)),
            autoescape=select_autoescape(enabled_extensions=()),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        logger.debug(f"Initialized PromptLoader with templates from: {prompts_dir}")

    def render(self, template_name: str, **context: Dict[str, Any]) -> str:
        """
        Render a Jinja2 template with the given context.

        Raises:
            jinja2.TemplateNotFound: If template file doesn't exist
            jinja2.UndefinedError: If the template references a missing variable
        """
        template = self.env.get_template(template_name)
        rendered = template.render(**context)
        logger.debug(f"Rendered template: {template_name} (length: {len(rendered)})")
        return rendered


# Singleton instance for global use
_prompt_loader = PromptLoader()


def render_prompt(template_name: str, **context: Dict[str, Any]) -> str:
    """
    Convenience function to render a prompt template.

    Example:
        from kitchen_assistant.rag.utils.prompt_loader import render_prompt

        prompt = render_prompt("recipe_generation.jinja2", user_query="...", allergies=[], references=[])
    """
    return _prompt_loader.render(template_name, **context)
