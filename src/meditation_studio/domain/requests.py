"""Validated inbound requests for the generation workflow."""

from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

PersonalizationInput = str | dict[str, object] | None


class WorkflowTrigger(BaseModel):
    """Start request for one session's pipeline."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user_id: str = Field(alias="userID", min_length=1)
    session_id: UUID = Field(alias="sessionID")
    personalization_input: PersonalizationInput = Field(
        default=None, alias="personalizationInput"
    )

    def as_input(self) -> dict[str, object]:
        """Return the trigger as it was received, by alias."""
        return self.model_dump(mode="json", by_alias=True)


class DirectTriggerEvent(WorkflowTrigger):
    """Trigger event carrying the fields inline."""

    kind: Literal["direct"]

    def to_trigger(self) -> WorkflowTrigger:
        """Drop the tag and return the core trigger."""
        return WorkflowTrigger(
            user_id=self.user_id,
            session_id=self.session_id,
            personalization_input=self.personalization_input,
        )


class HttpTriggerEvent(BaseModel):
    """Trigger event wrapping a JSON-encoded request body."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["http"]
    body: str = Field(min_length=2)

    def to_trigger(self) -> WorkflowTrigger:
        """Decode and validate the embedded body."""
        return WorkflowTrigger.model_validate_json(self.body)


TriggerEvent = Annotated[
    DirectTriggerEvent | HttpTriggerEvent, Field(discriminator="kind")
]

_TRIGGER_EVENT_ADAPTER: TypeAdapter[DirectTriggerEvent | HttpTriggerEvent] = (
    TypeAdapter(TriggerEvent)
)


def parse_trigger_event(raw: str | bytes) -> WorkflowTrigger:
    """Validate a tagged trigger event and return the core trigger.

    Raises ``pydantic.ValidationError`` when the event or its body is malformed.
    """
    event = _TRIGGER_EVENT_ADAPTER.validate_json(raw)
    return event.to_trigger()
