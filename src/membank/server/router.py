"""Tool catalog and dispatch for the memory bank.

Every call, successful or not, comes back as a ToolResult whose payload is
serialized as one JSON text block. This is the only place where store errors
become error envelopes.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from membank.bank.store import Created, MemoryBankStore
from membank.errors import MembankError, NotFound, ValidationError
from membank.server.requests import (
    AppendRequest,
    InitializeRequest,
    ReadRequest,
    REQUEST_MODELS,
    StatusRequest,
    parse_request,
)

logger = logging.getLogger(__name__)

WELL_KNOWN_DOCUMENTS = (
    "productContext.md",
    "activeContext.md",
    "progress.md",
    "decisionLog.md",
    "systemPatterns.md",
)
PRODUCT_CONTEXT_DOCUMENT = "productContext.md"
PRODUCT_CONTEXT_SECTION = "# Product Context"

# ── Tool definitions ─────────────────────────────────────────

TOOLS = [
    {
        "name": "initialize_memory_bank",
        "description": (
            "Initializes the memory bank database and its well-known documents. "
            "Safe to call repeatedly."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "project_brief_content": {
                    "type": "string",
                    "description": "(Optional) Content from projectBrief.md to pre-fill productContext.md",
                },
            },
            "required": [],
        },
    },
    {
        "name": "check_memory_bank_status",
        "description": "Checks if the database exists and lists the documents within it.",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "read_memory_bank_file",
        "description": "Reads the full content of a specified document from the database.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "file_name": {
                    "type": "string",
                    "description": "The name of the document (e.g., 'productContext.md')",
                },
            },
            "required": ["file_name"],
        },
    },
    {
        "name": "append_memory_bank_entry",
        "description": (
            "Appends a new, timestamped entry to a specified document, "
            "optionally under a specific header."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "file_name": {
                    "type": "string",
                    "description": "The name of the document to append to.",
                },
                "entry": {
                    "type": "string",
                    "description": "The content of the entry to append.",
                },
                "section_header": {
                    "type": "string",
                    "description": "(Optional) The exact markdown header (e.g., '## Decision') to append under.",
                },
            },
            "required": ["file_name", "entry"],
        },
    },
]


@dataclass
class ToolResult:
    """Uniform envelope for a tool call."""

    payload: dict[str, Any] = field(default_factory=dict)
    is_error: bool = False

    @classmethod
    def ok(cls, payload: dict[str, Any]) -> ToolResult:
        return cls(payload=payload)

    @classmethod
    def error(cls, message: str) -> ToolResult:
        return cls(payload={"status": "error", "message": message}, is_error=True)

    def to_dict(self) -> dict[str, Any]:
        """Render as an MCP tools/call result."""
        result: dict[str, Any] = {
            "content": [
                {"type": "text", "text": json.dumps(self.payload, indent=2)}
            ],
        }
        if self.is_error:
            result["isError"] = True
        return result


class MemoryBankRouter:
    """Maps tool names to store operations."""

    def __init__(self, store: MemoryBankStore) -> None:
        self.store = store
        self._handlers: dict[str, Callable[[Any], ToolResult]] = {
            InitializeRequest.tool: self.initialize_memory_bank,
            StatusRequest.tool: self.check_memory_bank_status,
            ReadRequest.tool: self.read_memory_bank_file,
            AppendRequest.tool: self.append_memory_bank_entry,
        }

    def list_tools(self) -> list[dict[str, Any]]:
        return TOOLS

    def call_tool(self, name: str, arguments: Any = None) -> ToolResult:
        """Validate arguments and dispatch. Never raises for store or input errors."""
        logger.info("Received call for tool: %r", name)
        if not isinstance(name, str) or name not in REQUEST_MODELS:
            logger.warning("Unknown tool requested: %r", name)
            return ToolResult.error(f"Unknown tool: {name}")

        try:
            request = parse_request(name, arguments)
        except ValidationError as e:
            logger.info("Rejected %s: %s", name, e)
            return ToolResult.error(str(e))

        return self._handlers[name](request)

    # ── Handlers ─────────────────────────────────────────────

    def initialize_memory_bank(self, request: InitializeRequest) -> ToolResult:
        messages: list[str] = []
        try:
            for name in WELL_KNOWN_DOCUMENTS:
                if isinstance(self.store.ensure_document(name), Created):
                    messages.append(f"Created document: {name}")
                else:
                    messages.append(f"Document {name} already exists.")

            if request.project_brief_content:
                self.store.append_entry(
                    PRODUCT_CONTEXT_DOCUMENT,
                    PRODUCT_CONTEXT_SECTION,
                    f"Based on project brief:\n\n{request.project_brief_content}",
                )
                messages.append(f"Added project brief to {PRODUCT_CONTEXT_DOCUMENT}")
        except MembankError as e:
            logger.error("Error initializing memory bank: %s", e)
            return ToolResult.error(str(e))

        return ToolResult.ok({"status": "success", "messages": messages})

    def check_memory_bank_status(self, request: StatusRequest) -> ToolResult:
        if not self.store.exists():
            return ToolResult.ok({"exists": False, "files": []})
        try:
            files = self.store.list_documents()
        except MembankError as e:
            logger.error("Error checking memory bank status: %s", e)
            return ToolResult.error(str(e))
        return ToolResult.ok({"exists": True, "files": files})

    def read_memory_bank_file(self, request: ReadRequest) -> ToolResult:
        name = request.file_name
        try:
            content = self.store.get_document_content(name)
            if content is None:
                raise NotFound(name)
        except NotFound as e:
            return ToolResult.error(str(e))
        except MembankError as e:
            logger.error("Error reading document %s: %s", name, e)
            return ToolResult.error(f"Failed to read document {name}: {e}")
        return ToolResult.ok({"content": content})

    def append_memory_bank_entry(self, request: AppendRequest) -> ToolResult:
        name = request.file_name
        try:
            self.store.append_entry(name, request.section_header, request.entry)
        except MembankError as e:
            logger.error("Error appending to document %s: %s", name, e)
            return ToolResult.error(f"Failed to append to document {name}: {e}")
        return ToolResult.ok({"status": "success", "message": f"Appended entry to {name}"})
