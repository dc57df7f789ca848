"""Project metadata stored inside the repository at .boom/config.json."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from buildstore.core import FileRecord, MalformedConfigError

if TYPE_CHECKING:
    from buildstore.store import BuildStore

CONFIG_DIR = ".boom"
CONFIG_PATH = f"{CONFIG_DIR}/config.json"
CONFIG_VERSION = "1.0.0"

ProjectType = Literal["website", "deck"]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProjectConfig(BaseModel):
    """Configuration for a buildstore project.

    Unknown keys in the stored JSON are dropped rather than passed along.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1)
    type: ProjectType = "website"
    version: str = CONFIG_VERSION
    created_at: str = Field(default_factory=_now, alias="createdAt")
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("created_at")
    @classmethod
    def check_timestamp(cls, v: str) -> str:
        try:
            datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError(f"createdAt is not an ISO timestamp: {v}") from e
        return v

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True), indent=2)

    def to_file(self) -> FileRecord:
        return FileRecord(path=CONFIG_PATH, content=self.to_json())


def parse_project_config(text: str) -> ProjectConfig:
    """Validate the raw text of a config file.

    Raises:
        MalformedConfigError: If the text is not JSON or fails the schema.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedConfigError(f"{CONFIG_PATH} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedConfigError(f"{CONFIG_PATH} must contain a JSON object")
    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise MalformedConfigError(f"{CONFIG_PATH} failed validation: {e}") from e


async def load_project_config(store: BuildStore, ref: Optional[str] = None) -> Optional[ProjectConfig]:
    """Load the project config.

    Returns:
        The config, or None if the repository has no config file.

    Raises:
        MalformedConfigError: If the file exists but is invalid.
    """
    text = await store.read_file(CONFIG_PATH, ref=ref)
    if text is None:
        return None
    return parse_project_config(text)


async def save_project_config(
    store: BuildStore, config: ProjectConfig, ref: Optional[str] = None
) -> str:
    """Commit the project config and return the commit id."""
    return await store.commit([config.to_file()], "chore: update project config", ref=ref)
