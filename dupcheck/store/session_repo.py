import json
import inspect
from typing import Optional
from dupcheck.store.redis_conn import get_redis
from dupcheck.store.models import SessionSnapshot
from dupcheck.settings import settings

PREFIX = "dupcheck:session:"

def _key(session_id: str) -> str:
    return f"{PREFIX}{session_id}"


def _filter_snapshot_kwargs(data: dict) -> dict:
    """
    Drop unknown fields so SessionSnapshot(**kwargs) never explodes
    on snapshots written by an older/newer release.
    """
    sig = inspect.signature(SessionSnapshot)
    allowed = set(sig.parameters.keys())
    return {k: v for k, v in data.items() if k in allowed}


def load_snapshot(session_id: str) -> Optional[SessionSnapshot]:
    r = get_redis()
    raw = r.get(_key(session_id))
    if not raw:
        return None
    data = json.loads(raw)
    if not isinstance(data, dict):
        return None
    return SessionSnapshot(**_filter_snapshot_kwargs(data))


def save_snapshot(snapshot: SessionSnapshot) -> None:
    r = get_redis()
    ttl = int(settings.SNAPSHOT_TTL_SEC or 0)
    payload = json.dumps(snapshot.to_dict(), default=str)
    if ttl > 0:
        r.set(_key(snapshot.sessionId), payload, ex=ttl)
    else:
        r.set(_key(snapshot.sessionId), payload)
