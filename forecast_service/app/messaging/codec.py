"""
Wire codec for forecast messages.

One JSON object per message:

    {"type": "ForecastEvent",  "data": {"date": "...", "temperatureC": 5, "summary": "Cool"}}
    {"type": "ForecastEvent2", "data": {... , "location": "Oslo"}}
"""

from __future__ import annotations

import json
from typing import Any, Dict, Type, Union

import pydantic

from forecast_service.app.core.errors import ValidationError
from forecast_service.app.forecasts.observations import (
    ExtendedObservation,
    LegacyObservation,
)

LEGACY_MESSAGE_TYPE = "ForecastEvent"
EXTENDED_MESSAGE_TYPE = "ForecastEvent2"

MESSAGE_TYPES: Dict[str, Type[Union[LegacyObservation, ExtendedObservation]]] = {
    LEGACY_MESSAGE_TYPE: LegacyObservation,
    EXTENDED_MESSAGE_TYPE: ExtendedObservation,
}


def message_type_of(observation: Union[LegacyObservation, ExtendedObservation]) -> str:
    if isinstance(observation, ExtendedObservation):
        return EXTENDED_MESSAGE_TYPE
    return LEGACY_MESSAGE_TYPE


def encode_observation(observation: Union[LegacyObservation, ExtendedObservation]) -> bytes:
    envelope = {
        "type": message_type_of(observation),
        "data": observation.model_dump(mode="json", by_alias=True, exclude={"kind"}),
    }
    return json.dumps(envelope).encode("utf-8")


def decode_observation(raw: Union[bytes, str]) -> Union[LegacyObservation, ExtendedObservation]:
    """Parse one message; raises ``ValidationError`` on anything malformed."""
    try:
        envelope: Any = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError(f"Message is not valid JSON: {exc}") from exc

    if not isinstance(envelope, dict):
        raise ValidationError("Message must be a JSON object")

    message_type = envelope.get("type")
    model = MESSAGE_TYPES.get(message_type)
    if model is None:
        raise ValidationError(
            f"Unknown message type: {message_type!r}",
            field="type",
            allowed=sorted(MESSAGE_TYPES),
        )

    data = envelope.get("data")
    if not isinstance(data, dict):
        raise ValidationError("Message data must be a JSON object", field="data")

    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"Invalid {message_type} payload",
            field="data",
            errors=[
                {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                for err in exc.errors()
            ],
        ) from exc
