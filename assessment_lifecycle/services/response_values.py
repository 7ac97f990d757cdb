"""Answer value codec.

A response stores its value in one of four slots (text, numeric, boolean, array).
Which slot is used depends on the question's input type. The encoded form is an
explicit variant so callers never have to reason about slot combinations:

- ``TextValue``       -> text slot
- ``NumericValue``    -> numeric slot
- ``BooleanValue``    -> boolean slot
- ``ListValue``       -> array slot holding a list
- ``StructuredValue`` -> object answers (numeric-open / text-open); the extracted
  number and text go to their slots and the whole object is kept in the array
  slot so it can be returned unchanged.
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from assessment_lifecycle.models.enums import InputType
from assessment_lifecycle.models.response import QuestionResponse

# Keys that identify an object answer kept as backup in the array slot
BACKUP_KEYS = ("answer", "url")


@dataclass(frozen=True)
class TextValue:
    text: Optional[str]

    def to_slots(self) -> Dict[str, Any]:
        return _slots(text_value=self.text)


@dataclass(frozen=True)
class NumericValue:
    number: Optional[float]

    def to_slots(self) -> Dict[str, Any]:
        return _slots(numeric_value=self.number)


@dataclass(frozen=True)
class BooleanValue:
    flag: bool

    def to_slots(self) -> Dict[str, Any]:
        return _slots(boolean_value=self.flag)


@dataclass(frozen=True)
class ListValue:
    items: List[Any] = field(default_factory=list)

    def to_slots(self) -> Dict[str, Any]:
        return _slots(array_value=list(self.items))


@dataclass(frozen=True)
class StructuredValue:
    original: Dict[str, Any]
    number: Optional[float] = None
    text: Optional[str] = None

    def to_slots(self) -> Dict[str, Any]:
        return _slots(
            text_value=self.text,
            numeric_value=self.number,
            array_value=dict(self.original),
        )


AnswerValue = Union[TextValue, NumericValue, BooleanValue, ListValue, StructuredValue]


def _slots(
    text_value: Optional[str] = None,
    numeric_value: Optional[float] = None,
    boolean_value: Optional[bool] = None,
    array_value: Any = None,
) -> Dict[str, Any]:
    # Every slot is written so a changed input type never leaves stale values behind
    return {
        "text_value": text_value,
        "numeric_value": numeric_value,
        "boolean_value": boolean_value,
        "array_value": array_value,
    }


def parse_number(raw: Any) -> Optional[float]:
    """Parse a float, returning None for absent or unparsable values."""
    if raw is None:
        return None
    if isinstance(raw, (bool, int, float)):
        number = float(raw)
    elif isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            number = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _to_text(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, (dict, list)):
        return json.dumps(raw)
    return str(raw)


def encode_value(raw: Any, input_type: str) -> AnswerValue:
    """Map a raw answer to its storage variant for the given input type."""
    if input_type == InputType.TEXT_OPEN:
        if isinstance(raw, dict):
            return StructuredValue(original=raw, text=_to_text(raw.get("answer")))
        return TextValue(_to_text(raw))

    if input_type == InputType.NUMERIC:
        return NumericValue(parse_number(raw))

    if input_type == InputType.NUMERIC_OPEN:
        if isinstance(raw, dict):
            return StructuredValue(
                original=raw,
                number=parse_number(raw.get("answer")),
                text=_to_text(raw.get("url")),
            )
        return NumericValue(parse_number(raw))

    if input_type == InputType.CHECKBOX:
        if isinstance(raw, list):
            return ListValue(list(raw))
        return BooleanValue(bool(raw))

    if input_type in (InputType.MULTIPLE_CHOICE, InputType.FILE_UPLOAD):
        if isinstance(raw, list):
            return ListValue(list(raw))
        return ListValue([] if raw is None else [raw])

    return TextValue(_to_text(raw))


def decode_value(
    text_value: Optional[str],
    numeric_value: Optional[float],
    boolean_value: Optional[bool],
    array_value: Any,
) -> Any:
    """Reconstruct the answer from its stored slots (inverse of ``encode_value``)."""
    if isinstance(array_value, dict) and any(key in array_value for key in BACKUP_KEYS):
        return array_value
    if isinstance(array_value, list):
        return array_value

    for slot in (text_value, numeric_value, boolean_value, array_value):
        if slot is not None:
            return slot
    return None


def decode_response(response: QuestionResponse) -> Any:
    return decode_value(
        response.text_value,
        response.numeric_value,
        response.boolean_value,
        response.array_value,
    )
