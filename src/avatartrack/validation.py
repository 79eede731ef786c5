"""Validation utilities for published rig state documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema

from avatartrack.models import RigState

_SCHEMA_PATH = Path(__file__).parent / "schemas" / "rig_state.schema.json"


def load_rig_schema() -> dict[str, Any]:
    return json.loads(_SCHEMA_PATH.read_text())


def validate_rig_json(data: dict[str, object]) -> None:
    """Validate a serialized rig state against rig_state.schema.json.

    Parameters
    ----------
    data:
        A rig state as produced by ``RigState.model_dump(mode="json")``.

    Raises
    ------
    jsonschema.ValidationError
        If the data does not conform to the schema.
    """
    jsonschema.validate(data, load_rig_schema())


def validate_rig_state(state: RigState) -> None:
    """Validate a :class:`RigState` instance by its JSON form."""
    validate_rig_json(state.model_dump(mode="json"))
