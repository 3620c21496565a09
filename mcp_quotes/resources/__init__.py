"""MCP resource content."""

from mcp_quotes.resources.prompt_template import (
    PROMPT_TEMPLATE_URI,
    get_prompt_template_content,
    render_prompt_template,
)

__all__ = ["PROMPT_TEMPLATE_URI", "get_prompt_template_content", "render_prompt_template"]
