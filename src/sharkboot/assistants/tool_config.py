"""Typed view of an assistant's ``tool_config`` JSON column."""

import json
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

KNOWN_TOOLS = ("code_interpreter", "file_search")


class FileSearchConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    vector_store_ids: list[str] = Field(default_factory=list)


class ToolConfig(BaseModel):
    """Which tools an assistant has and the resources attached to them.

    Unknown keys are kept so a round trip never drops data written by
    someone else.
    """

    model_config = ConfigDict(extra="allow")

    code_interpreter: Optional[dict[str, Any]] = None
    file_search: Optional[FileSearchConfig] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "ToolConfig":
        """Parse a stored value (dict, JSON text or None)."""
        if raw is None or raw == "":
            return cls()
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Unparseable tool_config, treating as empty")
                return cls()
        if not isinstance(raw, dict):
            logger.warning("tool_config is not an object, treating as empty")
            return cls()
        try:
            return cls.model_validate(raw)
        except ValidationError:
            logger.warning("Malformed tool_config, treating as empty", exc_info=True)
            return cls()

    def to_raw(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)

    @property
    def vector_store_id(self) -> Optional[str]:
        if self.file_search and self.file_search.vector_store_ids:
            return self.file_search.vector_store_ids[0]
        return None

    def with_vector_store(self, store_id: str) -> "ToolConfig":
        """Copy with ``file_search.vector_store_ids = [store_id]``, other keys kept."""
        file_search = (
            self.file_search.model_copy(update={"vector_store_ids": [store_id]})
            if self.file_search is not None
            else FileSearchConfig(vector_store_ids=[store_id])
        )
        return self.model_copy(update={"file_search": file_search})

    def tools(self) -> list[dict[str, str]]:
        """Remote ``tools`` list for the enabled tools."""
        return [{"type": name} for name in KNOWN_TOOLS if getattr(self, name) is not None]

    def tool_resources(self) -> dict[str, Any]:
        """Remote ``tool_resources``; empty resources are omitted."""
        resources: dict[str, Any] = {}
        if self.code_interpreter and self.code_interpreter.get("file_ids"):
            resources["code_interpreter"] = {"file_ids": list(self.code_interpreter["file_ids"])}
        if self.file_search and self.file_search.vector_store_ids:
            resources["file_search"] = {"vector_store_ids": list(self.file_search.vector_store_ids)}
        return resources
