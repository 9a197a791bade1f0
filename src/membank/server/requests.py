"""Validated request payloads, one model per tool.

Tool arguments arrive as an untyped JSON object. ``parse_request`` turns them
into exactly one of the models below or raises ``ValidationError`` with the
fixed message for the first offending field.
"""

from __future__ import annotations

from typing import Any, ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from membank.errors import ValidationError

DEFAULT_SECTION = "## General"

FIELD_MESSAGES = {
    "file_name": "Missing or invalid 'file_name' parameter.",
    "entry": "Missing or invalid 'entry' parameter.",
    "section_header": "Invalid 'section_header' parameter.",
    "project_brief_content": "Invalid 'project_brief_content' parameter.",
}


class ToolArguments(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    tool: ClassVar[str]


class InitializeRequest(ToolArguments):
    tool: ClassVar[str] = "initialize_memory_bank"

    project_brief_content: Optional[str] = Field(None, strict=True)


class StatusRequest(ToolArguments):
    tool: ClassVar[str] = "check_memory_bank_status"


class ReadRequest(ToolArguments):
    tool: ClassVar[str] = "read_memory_bank_file"

    file_name: str = Field(..., strict=True, min_length=1)


class AppendRequest(ToolArguments):
    tool: ClassVar[str] = "append_memory_bank_entry"

    file_name: str = Field(..., strict=True, min_length=1)
    entry: str = Field(..., strict=True, min_length=1)
    section_header: str = Field(DEFAULT_SECTION, strict=True)

    @field_validator("section_header", mode="before")
    @classmethod
    def default_section(cls, v):
        # Absent, null and "" all mean "use the default section"
        if v is None or v == "":
            return DEFAULT_SECTION
        return v


ToolRequest = Union[InitializeRequest, StatusRequest, ReadRequest, AppendRequest]

REQUEST_MODELS: dict[str, type[ToolArguments]] = {
    model.tool: model
    for model in (InitializeRequest, StatusRequest, ReadRequest, AppendRequest)
}


def parse_request(tool_name: str, arguments: Any) -> ToolRequest:
    """Validate raw tool arguments into the request model for ``tool_name``.

    Raises KeyError for an unknown tool and ValidationError for bad input.
    """
    model = REQUEST_MODELS[tool_name]
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ValidationError("Invalid arguments: expected a JSON object.")

    try:
        return model.model_validate(arguments)
    except PydanticValidationError as e:
        failed = {err["loc"][0] for err in e.errors() if err["loc"]}
        for name in model.model_fields:
            if name in failed:
                raise ValidationError(FIELD_MESSAGES[name]) from None
        raise ValidationError(str(e)) from None
