"""
SSE Mock Definitions

Typed records for stored mock documents, plus the validation step that
decides whether a definition can be scheduled.
"""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field

from ..common import MatchPolicy
from .errors import MockDefinitionError


DEFAULT_STATUS_CODE = 200


def _is_int(value: Any) -> bool:
    # bool is an int subclass but never a valid offset, index or status
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class TimelineEntry:
    """One scheduled delivery of a mock's timeline."""

    offset_ms: Any
    payload_index: Any
    status_code: Any = DEFAULT_STATUS_CODE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimelineEntry':
        """Create entry from a document ``responses`` item."""
        return cls(
            offset_ms=data.get('time'),
            payload_index=data.get('response'),
            status_code=data.get('statusCode', DEFAULT_STATUS_CODE)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a document ``responses`` item."""
        return {
            'time': self.offset_ms,
            'response': self.payload_index,
            'statusCode': self.status_code
        }


@dataclass
class ValidationResult:
    """Outcome of validating a mock definition."""

    valid: bool
    errors: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


@dataclass
class MockDefinition:
    """
    A stored mock: the identity it answers and the events it replays.

    Values are kept as they appear in the document so that a malformed
    definition can still be represented and reported by ``validate()``.
    """

    identity: str
    timeline: List[TimelineEntry] = field(default_factory=list)
    payloads: List[Any] = field(default_factory=list)
    scenario: Optional[str] = None
    match_policy: Optional[MatchPolicy] = None
    stream_status: int = DEFAULT_STATUS_CODE
    domain: Optional[str] = None
    file_id: Optional[str] = None
    timeline_error: Optional[str] = None

    @classmethod
    def from_dict(
        cls,
        data: Any,
        domain: Optional[str] = None,
        file_id: Optional[str] = None
    ) -> 'MockDefinition':
        """
        Create definition from a store document.

        Args:
            data: Parsed JSON document
            domain: Domain the document is stored under
            file_id: Store file identifier

        Returns:
            MockDefinition (possibly invalid, see ``validate()``)

        Raises:
            MockDefinitionError: If the document is not an object or has no string url
        """
        if not isinstance(data, dict):
            raise MockDefinitionError(f"Mock document must be a JSON object, got {type(data).__name__}")

        identity = data.get('url')
        if not isinstance(identity, str) or not identity:
            raise MockDefinitionError("Mock document is missing a string 'url'")

        timeline_error = None
        responses = data.get('responses')
        timeline = []
        if not isinstance(responses, list):
            timeline_error = "'responses' must be a list"
        else:
            for index, item in enumerate(responses):
                if not isinstance(item, dict):
                    timeline_error = f"responses[{index}] must be an object"
                    break
                timeline.append(TimelineEntry.from_dict(item))

        payloads = data.get('data')
        if not isinstance(payloads, list):
            timeline_error = timeline_error or "'data' must be a list"
            payloads = []

        scenario = data.get('scenario')
        stream_status = data.get('statusCode', DEFAULT_STATUS_CODE)

        return cls(
            identity=identity,
            timeline=timeline,
            payloads=payloads,
            scenario=str(scenario) if scenario else None,
            match_policy=MatchPolicy.from_dict(data.get('matching')),
            stream_status=stream_status if _is_int(stream_status) else DEFAULT_STATUS_CODE,
            domain=domain,
            file_id=file_id,
            timeline_error=timeline_error
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a store document."""
        document = {
            'url': self.identity,
            'scenario': self.scenario,
            'matching': self.match_policy.to_dict() if self.match_policy else None,
            'responses': [entry.to_dict() for entry in self.timeline],
            'data': self.payloads
        }
        if self.stream_status != DEFAULT_STATUS_CODE:
            document['statusCode'] = self.stream_status
        return document

    def validate(self) -> ValidationResult:
        """
        Check that every timeline entry can be delivered.

        Requires a non-empty payload list, non-negative integer offsets,
        integer status codes and in-range payload indices.

        Returns:
            ValidationResult listing every problem found
        """
        errors = []

        if self.timeline_error:
            errors.append(self.timeline_error)

        if not self.payloads:
            errors.append("'data' must contain at least one payload")

        for index, entry in enumerate(self.timeline):
            if not _is_int(entry.offset_ms) or entry.offset_ms < 0:
                errors.append(f"responses[{index}].time must be a non-negative integer")
            if not _is_int(entry.status_code):
                errors.append(f"responses[{index}].statusCode must be an integer")
            if not _is_int(entry.payload_index):
                errors.append(f"responses[{index}].response must be an integer")
            elif not 0 <= entry.payload_index < len(self.payloads):
                errors.append(
                    f"responses[{index}].response index {entry.payload_index} out of bounds "
                    f"(data has {len(self.payloads)} item(s))"
                )

        return ValidationResult(valid=not errors, errors=errors)

    @property
    def label(self) -> str:
        """Short human-readable name for log lines."""
        suffix = f" [{self.scenario}]" if self.scenario else ""
        return f"{self.identity}{suffix}"
