from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

@dataclass(frozen=True)
class FetchRequest:
    # signature is derived from criteria; both are captured at change time
    signature: str
    criteria: Dict[str, str] = field(default_factory=dict)

@dataclass
class ResultSet:
    records: List[Any] = field(default_factory=list)
    message: str = ""
    kind: str = "empty"  # matches/empty/error/malformed
    signature: str = ""

    @property
    def has_records(self) -> bool:
        return len(self.records) > 0

@dataclass
class SessionSnapshot:
    # Core identifiers
    sessionId: str = ""
    profile: str = ""

    # FSM
    state: str = "IDLE"
    criteria: Dict[str, str] = field(default_factory=dict)
    availableActions: List[str] = field(default_factory=list)

    # Latest completed lookup
    records: List[Any] = field(default_factory=list)
    message: str = ""
    resultKind: Optional[str] = None

    # UI flags
    loading: bool = False
    showEmptyState: bool = False
    secondsRemaining: int = 0
    createNewChecked: bool = False
    createDisabled: bool = True
    createLabel: str = ""

    # Flow outputs
    selectedExisting: bool = False
    selectedAccountId: str = ""

    # Transition
    advanced: bool = False
    advanceSource: Optional[str] = None

    closed: bool = False
    lastUpdatedAtEpoch: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
