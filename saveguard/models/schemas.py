"""
saveguard/models/schemas.py -- Per-version JSON Schemas for save documents.

Each supported save format version has one Draft 2020-12 JSON Schema
describing the fields that are *required* at that version.  Schemas never
set ``additionalProperties: false``: fields written by newer builds or by
mods must survive a load untouched.

Rules that JSON Schema cannot express (id uniqueness, ``max_radius`` not
smaller than ``radius``) live in ``saveguard.schema_validator``.

Usage::

    from saveguard.models.schemas import get_schema

    schema = get_schema(3)
"""

from __future__ import annotations

import copy

from saveguard.models.catalog import (
    ACTOR_ROLES,
    CURRENT_VERSION,
    OLDEST_VERSION,
    STRUCTURE_STATUSES,
    STRUCTURE_TYPES,
    TIERS,
)

_ID = {"type": "string", "minLength": 1}
_NUMBER = {"type": "number"}
_NON_NEGATIVE = {"type": "number", "minimum": 0}
_COUNTER = {"type": "integer", "minimum": 0}

POSITION_SCHEMA = {
    "type": "object",
    "required": ["x", "y", "z"],
    "properties": {"x": _NUMBER, "y": _NUMBER, "z": _NUMBER},
}


def _structure_schema(version: int) -> dict:
    schema = {
        "type": "object",
        "required": ["id", "type", "position", "status", "progress"],
        "properties": {
            "id": _ID,
            "type": {"enum": list(STRUCTURE_TYPES)},
            "position": POSITION_SCHEMA,
            "status": {"enum": list(STRUCTURE_STATUSES)},
            "progress": _NON_NEGATIVE,
        },
    }
    if version >= 4:
        schema["required"].append("work_slots")
        schema["properties"]["work_slots"] = {
            "type": "array",
            "items": {"type": ["string", "null"]},
        }
    return schema


ACTOR_SCHEMA = {
    "type": "object",
    "required": ["id", "name", "role", "morale", "skills"],
    "properties": {
        "id": _ID,
        "name": {"type": "string", "minLength": 1, "pattern": r"\S"},
        "role": {"enum": list(ACTOR_ROLES)},
        "morale": {"type": "number", "minimum": 0, "maximum": 100},
        "skills": {"type": "object", "additionalProperties": _NUMBER},
        "assigned_structure_id": {"type": ["string", "null"]},
    },
}

REGION_SCHEMA = {
    "type": "object",
    "required": ["id", "center", "radius", "max_radius", "expansion_count", "structure_ids"],
    "properties": {
        "id": _ID,
        "name": {"type": "string"},
        "center": POSITION_SCHEMA,
        "radius": {"type": "number", "exclusiveMinimum": 0},
        "max_radius": {"type": "number", "exclusiveMinimum": 0},
        "expansion_count": _COUNTER,
        "structure_ids": {"type": "array", "items": _ID},
        "population": _COUNTER,
        "bonuses": {"type": "object", "additionalProperties": _NUMBER},
    },
}

MIGRATION_RECORD_SCHEMA = {
    "type": "object",
    "required": ["from_version", "to_version", "timestamp", "action"],
    "properties": {
        "from_version": {"type": "integer", "minimum": 1},
        "to_version": {"type": "integer", "minimum": 2},
        "timestamp": _COUNTER,
        "action": {"type": "string", "minLength": 1},
    },
}

PROGRESSION_SCHEMA = {
    "type": "object",
    "required": ["tier", "unlocked", "researched", "research_points"],
    "properties": {
        "tier": {"enum": list(TIERS)},
        "unlocked": {"type": "array", "items": {"type": "string"}},
        "researched": {"type": "array", "items": {"type": "string"}},
        "research_points": _NON_NEGATIVE,
    },
}


def _document_schema(version: int) -> dict:
    structure_list = {"type": "array", "items": _structure_schema(version)}
    schema = {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "title": f"Settlement save document v{version}",
        "type": "object",
        "required": ["structures", "resources"],
        "properties": {
            "structures": structure_list,
            "resources": {"type": "object", "additionalProperties": _NUMBER},
            "timestamp": {"type": ["number", "string"]},
            "playtime": _NON_NEGATIVE,
            "tier": {"enum": list(TIERS)},
        },
    }
    if version == OLDEST_VERSION:
        # The earliest builds called the roster "buildings".
        schema["required"] = ["resources"]
        schema["properties"]["buildings"] = structure_list
        return schema

    props = schema["properties"]
    schema["required"] += [
        "version", "timestamp", "playtime", "tier",
        "actors", "next_actor_id", "migrations",
    ]
    props["version"] = {"type": "integer", "const": version}
    props["actors"] = {"type": "array", "items": ACTOR_SCHEMA}
    props["next_actor_id"] = _COUNTER
    props["migrations"] = {"type": "array", "items": MIGRATION_RECORD_SCHEMA}

    if version >= 3:
        schema["required"] += ["regions", "next_region_id"]
        props["regions"] = {"type": "array", "items": REGION_SCHEMA}
        props["next_region_id"] = _COUNTER

    if version >= 5:
        schema["required"].append("progression")
        props["progression"] = PROGRESSION_SCHEMA

    return schema


_SCHEMAS = {
    version: _document_schema(version)
    for version in range(OLDEST_VERSION, CURRENT_VERSION + 1)
}


def supported_versions() -> list[int]:
    return sorted(_SCHEMAS)


def get_schema(version: int) -> dict | None:
    """Return a copy of the schema for *version*, or ``None`` if unknown."""
    schema = _SCHEMAS.get(version)
    return copy.deepcopy(schema) if schema is not None else None
