# audit.py
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

from models import AuditRecord, OverrideRequest, ValidationVerdict, InvalidInputError

logger = logging.getLogger("infusion-engine.audit")

Record = Union[AuditRecord, OverrideRequest]

class EventSink(Protocol):
    """Append-only, single writer. append() returns True once the record is stored."""

    def append(self, record: Record) -> bool:
        ...

class InMemoryEventSink:
    def __init__(self):
        self._records: List[Record] = []

    def append(self, record: Record) -> bool:
        self._records.append(record)
        return True

    @property
    def records(self) -> List[Record]:
        return list(self._records)

class JsonLinesEventSink:
    """One JSON object per line. Existing lines are never rewritten."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def append(self, record: Record) -> bool:
        line = json.dumps({"kind": type(record).__name__, **asdict(record)}, default=str)
        with open(self.path, "a", encoding="utf-8") as fh:
            fh.write(line + "\n")
        return True

    def read_all(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]


def log_event(sink: EventSink, event_type: str, payload: Optional[Dict[str, Any]] = None) -> AuditRecord:
    record = AuditRecord(event_type=event_type, payload=dict(payload or {}))
    if not sink.append(record):
        logger.error(f"Audit sink rejected event '{event_type}'")
    return record

def request_override(sink: EventSink, reason_text: str, user_id: str,
                     verdict: Optional[ValidationVerdict] = None) -> OverrideRequest:
    """
    Records a clinician's override of a blocked dose.
    Second-nurse verification happens downstream of the sink.
    """
    if not isinstance(reason_text, str) or not reason_text.strip():
        raise InvalidInputError("Override requires a reason")
    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidInputError("Override requires a user id")

    request = OverrideRequest(
        reason_text=reason_text.strip(),
        user_id=user_id.strip(),
        verdict_level=verdict.level.value if verdict else None,
        verdict_message=verdict.message if verdict else None
    )
    if not sink.append(request):
        logger.error(f"Audit sink rejected override by {request.user_id}")
    else:
        logger.info(f"Override recorded by {request.user_id} ({request.verdict_level})")
    return request
