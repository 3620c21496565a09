"""Prompt template resource served at ``prompt-template://quote-request``."""

import copy
import json
from typing import Any

PROMPT_TEMPLATE_URI = "prompt-template://quote-request"
PROMPT_TEMPLATE_NAME = "prompt-template"
PROMPT_TEMPLATE_TITLE = "Quote Request Prompt Template"
PROMPT_TEMPLATE_DESCRIPTION = (
    "Structured template for generating prompts related to quote requests, "
    "including parameter specifications and usage examples"
)
PROMPT_TEMPLATE_MIME_TYPE = "application/json"

PROMPT_TEMPLATE_CONTENT: dict[str, Any] = {
    "template": {
        "basic": "Get a quote from {person}",
        "withTopic": "Get a quote from {person} about {topic}",
        "withCount": "Get {numberOfQuotes} quotes from {person}",
        "comprehensive": "Get {numberOfQuotes} quotes from {person} about {topic}",
    },
    "parameters": {
        "person": {
            "type": "string",
            "required": True,
            "description": "The name of the person to get quotes from",
            "validation": "Must not be empty",
        },
        "topic": {
            "type": "string",
            "required": False,
            "description": "Optional topic to filter quotes by",
        },
        "numberOfQuotes": {
            "type": "integer",
            "required": True,
            "description": "Number of quotes to retrieve",
            "validation": "Must be a positive integer between 1 and 10",
        },
    },
    "examples": [
        {
            "prompt": "Get 3 quotes from Albert Einstein about science",
            "parameters": {"person": "Albert Einstein", "topic": "science", "numberOfQuotes": 3},
        },
        {
            "prompt": "Get 5 quotes from Maya Angelou about courage",
            "parameters": {"person": "Maya Angelou", "topic": "courage", "numberOfQuotes": 5},
        },
        {
            "prompt": "Get 1 quote from Winston Churchill",
            "parameters": {"person": "Winston Churchill", "numberOfQuotes": 1},
        },
        {
            "prompt": "Get 10 quotes from Mark Twain about life",
            "parameters": {"person": "Mark Twain", "topic": "life", "numberOfQuotes": 10},
        },
    ],
    "bestPractices": [
        "Use specific person names for better results",
        "Topics should be general concepts rather than very specific terms",
        "Request reasonable numbers of quotes (1-10) for optimal performance",
        "Consider the context when selecting topics - broader topics yield more results",
        "Historical figures and well-known personalities typically have more available quotes",
        "When no topic is specified, you'll get a broader range of quotes from the person",
    ],
}


def get_prompt_template_content() -> dict[str, Any]:
    """Return a copy of the template content (callers may mutate it freely)."""
    return copy.deepcopy(PROMPT_TEMPLATE_CONTENT)


def render_prompt_template() -> str:
    """Template content serialized as JSON with 2-space indentation."""
    return json.dumps(PROMPT_TEMPLATE_CONTENT, indent=2)
