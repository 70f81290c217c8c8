# backend/app/models/metadata_models.py

"""Structured payloads attached to assistant messages.

The agent emits these through its structured-output tools. Each tool has an
input model; the stored metadata is the same data tagged with a ``type``
discriminator. Field names are camelCase on the wire.
"""

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from app.core.logger import logger


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --------------------------
# Tool inputs
# --------------------------
class ChoiceOption(_CamelModel):
    id: str = Field(description="Unique identifier for this option")
    label: str = Field(description="Display text for this option")


class RecordingField(_CamelModel):
    key: str = Field(description="Field key: 'weight', 'reps', 'duration', 'distance', or custom")
    label: str = Field(description="Display label (e.g. 'Weight', 'Slow Blinks', 'Duration')")
    type: str = Field(description="Data type: 'decimal' (float), 'number' (int), 'duration' (seconds)")
    unit: str = Field(description="Unit label: 'kg', 'sec', 'km', '' etc.")
    required: Optional[bool] = Field(default=None, description="Whether the field is required to complete a set (default true)")


class TemplateExercise(_CamelModel):
    name: str = Field(description="Exercise name")
    sets: int = Field(description="Number of sets")
    reps: str = Field(description="Rep range or count (e.g. '8-12', '10', 'AMRAP')")
    muscle_group: str = Field(description="Primary muscle group")
    recording_fields: Optional[List[RecordingField]] = Field(
        default=None, description="Custom recording fields. Omit for standard weight+reps exercises."
    )
    target_values: Optional[Dict[str, str]] = Field(
        default=None, description='Target values per field key, e.g. {"reps": "10"}'
    )


class PresentChoicesInput(_CamelModel):
    question: str = Field(description="The question to ask the user")
    options: List[ChoiceOption] = Field(description="List of options for the user to choose from")


class TemplateProposalInput(_CamelModel):
    name: str = Field(description="Name of the workout template")
    description: Optional[str] = Field(default=None, description="Brief description of the template")
    exercises: List[TemplateExercise] = Field(description="List of exercises in the template")
    estimated_duration: Optional[int] = Field(default=None, description="Estimated workout duration in minutes")


class ExerciseProposalInput(_CamelModel):
    name: str = Field(description="Exercise name")
    muscle_group: str = Field(description="Primary muscle group")
    category: Optional[str] = Field(default=None, description="Exercise category (e.g. 'Compound', 'Isolation')")
    equipment: Optional[str] = Field(default=None, description="Required equipment")
    difficulty: Optional[str] = Field(default=None, description="Difficulty level")
    instructions: Optional[str] = Field(default=None, description="Step-by-step instructions")
    recording_fields: Optional[List[RecordingField]] = Field(
        default=None, description="Custom recording fields. Omit for standard weight+reps exercises."
    )


# --------------------------
# Tagged metadata variants
# --------------------------
class MultipleChoiceMetadata(PresentChoicesInput):
    type: Literal["multiple_choice"] = "multiple_choice"


class TemplateProposalMetadata(TemplateProposalInput):
    type: Literal["template_proposal"] = "template_proposal"


class ExerciseProposalMetadata(ExerciseProposalInput):
    type: Literal["exercise_proposal"] = "exercise_proposal"


MessageMetadata = Annotated[
    Union[MultipleChoiceMetadata, TemplateProposalMetadata, ExerciseProposalMetadata],
    Field(discriminator="type"),
]

_metadata_adapter: TypeAdapter = TypeAdapter(MessageMetadata)

METADATA_TYPES = ("multiple_choice", "template_proposal", "exercise_proposal")


def parse_metadata(value: Any) -> Optional[MessageMetadata]:
    """Validate a dict into a metadata variant.

    Unknown ``type`` values and invalid payloads yield None instead of
    failing, so newer clients or agents never break older readers.
    """
    if not isinstance(value, dict):
        return None
    if value.get("type") not in METADATA_TYPES:
        logger.debug(f"Ignoring metadata with unknown type: {value.get('type')!r}")
        return None
    try:
        return _metadata_adapter.validate_python(value)
    except ValidationError as e:
        logger.warning(f"Invalid {value.get('type')} metadata: {e.error_count()} errors")
        return None


def metadata_to_dict(metadata: MessageMetadata) -> Dict[str, Any]:
    return metadata.model_dump(by_alias=True, exclude_none=True)


def encode_metadata(metadata: Optional[MessageMetadata]) -> Optional[str]:
    if metadata is None:
        return None
    return json.dumps(metadata_to_dict(metadata))


def decode_metadata(raw: Optional[str]) -> Optional[MessageMetadata]:
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"Stored metadata is not valid JSON: {e}")
        return None
    return parse_metadata(value)
