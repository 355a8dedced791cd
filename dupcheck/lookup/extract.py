"""
Lookup response parsing
-----------------------
The duplicate-search endpoints have answered with several envelope shapes
over time. Every shape goes through parse_lookup_response so the session
sees one LookupOutcome regardless of which one came back:

  [ {...}, ... ]                       bare list
  {"results": [...], "message": "..."} first of CANDIDATE_KEYS holding a list
  {"whatever": [...]}                  else the first property holding a list

Anything else is "malformed" and handled exactly like an empty result.
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional

CANDIDATE_KEYS = ("results", "records", "data", "items")

KIND_MATCHES = "matches"
KIND_EMPTY = "empty"
KIND_ERROR = "error"
KIND_MALFORMED = "malformed"


@dataclass
class LookupOutcome:
    records: List[Any] = field(default_factory=list)
    message: str = ""
    kind: str = KIND_EMPTY

    @classmethod
    def failure(cls, message: str = "") -> "LookupOutcome":
        return cls(records=[], message=message, kind=KIND_ERROR)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def extract_records(resp: Any) -> Optional[List[Any]]:
    """Returns the match list, or None when the shape is not recognised."""
    if _is_sequence(resp):
        return list(resp)
    if not isinstance(resp, dict):
        return None
    for key in CANDIDATE_KEYS:
        if _is_sequence(resp.get(key)):
            return list(resp[key])
    for value in resp.values():
        if _is_sequence(value):
            return list(value)
    return None


def extract_message(resp: Any) -> str:
    if isinstance(resp, dict) and isinstance(resp.get("message"), str):
        return resp["message"]
    return ""


def parse_lookup_response(resp: Any) -> LookupOutcome:
    records = extract_records(resp)
    message = extract_message(resp)
    if records is None:
        return LookupOutcome(records=[], message=message, kind=KIND_MALFORMED)
    return LookupOutcome(
        records=records,
        message=message,
        kind=KIND_MATCHES if records else KIND_EMPTY,
    )
