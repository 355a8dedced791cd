from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    profile: str
    availableActions: List[str] = Field(default_factory=list)
    criteria: Dict[str, Optional[str]] = Field(default_factory=dict)

class CriteriaUpdate(BaseModel):
    criteria: Dict[str, Optional[str]]

class ActionsUpdate(BaseModel):
    availableActions: List[str] = Field(default_factory=list)

class SelectRequest(BaseModel):
    recordId: str

class CreateNewToggle(BaseModel):
    checked: bool

class SessionView(BaseModel):
    sessionId: str
    profile: str
    state: str
    criteria: Dict[str, str] = Field(default_factory=dict)
    availableActions: List[str] = Field(default_factory=list)
    records: List[Any] = Field(default_factory=list)
    message: str = ""
    resultKind: Optional[str] = None
    loading: bool = False
    showEmptyState: bool = False
    secondsRemaining: int = 0
    createNewChecked: bool = False
    createDisabled: bool = True
    createLabel: str = ""
    selectedExisting: bool = False
    selectedAccountId: str = ""
    advanced: bool = False
    advanceSource: Optional[str] = None
    closed: bool = False
    lastUpdatedAtEpoch: Optional[int] = None

class ActionResponse(BaseModel):
    # accepted: whether the action did anything (advance emitted, refetch issued, ...)
    accepted: bool
    session: SessionView
