"""Request and response models for the bookmarking API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class UpdateInputsRequest(BaseModel):
    """User-driven changes to one or more inputs."""

    inputs: Dict[str, Any]


class SessionResponse(BaseModel):
    """A UI session and its current input values."""

    session_id: str
    inputs: Dict[str, Any]
    location: str = ""  # query string currently shown in the address bar
    store: str
    policy: str
    restored: bool = False
    applied: List[str] = Field(default_factory=list)
    ignored: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    created_at: float = 0.0  # unix time the session was opened


class UpdateInputsResponse(BaseModel):
    """Result of applying input changes."""

    session_id: str
    inputs: Dict[str, Any]
    changed: List[str]
    location: str = ""
    bookmark: Optional[str] = None  # set when an automatic capture ran


class BookmarkResponse(BaseModel):
    """A freshly captured bookmark."""

    session_id: str
    mode: str
    query: str
    url: str
    state_id: Optional[str] = None


class StoredBookmarksResponse(BaseModel):
    """State ids held by the server store."""

    state_ids: List[str]
    count: int
