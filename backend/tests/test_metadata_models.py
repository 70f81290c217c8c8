from __future__ import annotations

import json

from app.models.metadata_models import (
    ExerciseProposalMetadata,
    MultipleChoiceMetadata,
    decode_metadata,
    encode_metadata,
    metadata_to_dict,
    parse_metadata,
)


TEMPLATE = {
    "type": "template_proposal",
    "name": "Leg Day",
    "exercises": [
        {"name": "Squat", "sets": 3, "reps": "8-12", "muscleGroup": "Legs"},
        {
            "name": "Wall Sit",
            "sets": 3,
            "reps": "30s",
            "muscleGroup": "Legs",
            "recordingFields": [{"key": "duration", "label": "Duration", "type": "duration", "unit": "sec"}],
            "targetValues": {"duration": "30"},
        },
    ],
}


def test_template_proposal_round_trip_keeps_optional_fields_absent():
    decoded = decode_metadata(encode_metadata(parse_metadata(TEMPLATE)))

    assert metadata_to_dict(decoded) == TEMPLATE
    assert "description" not in metadata_to_dict(decoded)
    assert "estimatedDuration" not in metadata_to_dict(decoded)


def test_multiple_choice_is_field_preserving():
    payload = {"type": "multiple_choice", "question": "Goal?", "options": [{"id": "a", "label": "Strength"}]}
    parsed = parse_metadata(payload)

    assert isinstance(parsed, MultipleChoiceMetadata)
    assert metadata_to_dict(parsed) == payload


def test_exercise_proposal_uses_camel_case_on_the_wire():
    parsed = parse_metadata({
        "type": "exercise_proposal",
        "name": "Romanian Deadlift",
        "muscleGroup": "Hamstrings",
        "equipment": "Barbell",
        "difficulty": None,
    })

    assert isinstance(parsed, ExerciseProposalMetadata)
    assert parsed.muscle_group == "Hamstrings"
    assert json.loads(encode_metadata(parsed)) == {
        "type": "exercise_proposal",
        "name": "Romanian Deadlift",
        "muscleGroup": "Hamstrings",
        "equipment": "Barbell",
    }


def test_unknown_type_is_treated_as_absent():
    assert parse_metadata({"type": "goal_proposal", "name": "Bench 100kg"}) is None
    assert parse_metadata({"question": "no type"}) is None
    assert parse_metadata(["not", "a", "dict"]) is None


def test_invalid_payload_is_treated_as_absent():
    assert parse_metadata({"type": "multiple_choice", "question": "Goal?"}) is None
    assert parse_metadata({"type": "template_proposal", "name": "x", "exercises": [{"name": "Squat"}]}) is None


def test_decode_handles_empty_and_corrupt_blobs():
    assert decode_metadata(None) is None
    assert decode_metadata("") is None
    assert decode_metadata("{not json") is None
    assert encode_metadata(None) is None
