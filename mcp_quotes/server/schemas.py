"""Request schemas for MCP tool arguments.

Pydantic models validate tool input before it reaches the Serper client.

Example:
    from mcp_quotes.server.schemas import QuoteRequest

    # Valid request
    request = QuoteRequest.model_validate({"person": " Mark Twain ", "numberOfQuotes": 3})
    request.person  # "Mark Twain"

    # Invalid request (raises ValidationError)
    QuoteRequest.model_validate({"person": "", "numberOfQuotes": 11})
"""

from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    field_validator,
)

MIN_QUOTES = 1
MAX_QUOTES = 10

# =============================================================================
# Tool Argument Schemas
# =============================================================================


class QuoteRequest(BaseModel):
    """Arguments of the ``get_quote`` tool.

    Constraints:
    - person: required, surrounding whitespace stripped, must not be empty
    - topic: optional; blank becomes None
    - numberOfQuotes: integer 1-10 (booleans and floats rejected), default 1
    """

    person: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)] = Field(
        ...,
        description="The name of the person to get a quote from",
        examples=["Albert Einstein"],
    )
    topic: str | None = Field(
        default=None,
        description="Optional topic to filter quotes by",
        examples=["science"],
    )
    number_of_quotes: int = Field(
        default=MIN_QUOTES,
        alias="numberOfQuotes",
        strict=True,
        ge=MIN_QUOTES,
        le=MAX_QUOTES,
        description="Number of quotes to retrieve (1-10)",
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("topic")
    @classmethod
    def blank_topic_is_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


GET_QUOTE_INPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "person": {
            "type": "string",
            "description": "The name of the person to get a quote from",
        },
        "topic": {
            "type": "string",
            "description": "Optional topic to filter quotes by",
        },
        "numberOfQuotes": {
            "type": "integer",
            "minimum": MIN_QUOTES,
            "maximum": MAX_QUOTES,
            "default": MIN_QUOTES,
            "description": "Number of quotes to retrieve (1-10)",
        },
    },
    "required": ["person"],
}


def format_validation_errors(error: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into ``"field: message"`` strings."""
    messages = []
    for err in error.errors():
        field = ".".join(str(part) for part in err["loc"]) or "arguments"
        messages.append(f"{field}: {err['msg']}")
    return messages


__all__ = [
    "GET_QUOTE_INPUT_SCHEMA",
    "MAX_QUOTES",
    "MIN_QUOTES",
    "QuoteRequest",
    "format_validation_errors",
]
