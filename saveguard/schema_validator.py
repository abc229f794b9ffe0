"""
saveguard/schema_validator.py -- Structural validation of save documents.

Checks that a document has the shape required by its format version and
returns *every* violation found, never just the first.  Two layers run:

    Layer 1 (Schema):  the version's JSON Schema (``jsonschema``,
                       Draft 2020-12), walked with ``iter_errors``.
    Layer 2 (Rules):   structural rules JSON Schema cannot express --
                       unique ids per roster, region ``max_radius`` not
                       below ``radius``, legacy roster presence.

Semantic consistency (dangling references, negative amounts) is *not* a
structural concern; see ``saveguard.consistency_checker``.

Usage::

    from saveguard.schema_validator import SchemaValidator

    result = SchemaValidator().validate(document)
    if not result.is_valid:
        print(result.format_human())
"""

from __future__ import annotations

import logging

try:
    import jsonschema
except ImportError:
    raise ImportError(
        "The 'jsonschema' package is required but not installed. "
        "Install it with: pip install jsonschema"
    )

from saveguard.models.catalog import CURRENT_VERSION, OLDEST_VERSION
from saveguard.models.records import ValidationResult
from saveguard.models.schemas import get_schema

logger = logging.getLogger(__name__)


def is_version_number(value) -> bool:
    """True for a positive ``int`` (``bool`` is not a version)."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


class SchemaValidator:
    """Version-dispatching structural validator.

    Parameters
    ----------
    current_version : int
        Newest format this build understands.  Anything above it is
        rejected as an unsupported future version.
    """

    def __init__(self, current_version: int = CURRENT_VERSION):
        self.current_version = current_version
        self._validators: dict[int, jsonschema.Draft202012Validator] = {}

    def _get_validator(self, version: int):
        if version not in self._validators:
            schema = get_schema(version)
            if schema is None:
                return None
            self._validators[version] = jsonschema.Draft202012Validator(schema)
        return self._validators[version]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, document, version: int | None = None) -> ValidationResult:
        """Validate *document* against the schema of its version.

        Parameters
        ----------
        document : dict
            The save document.
        version : int, optional
            Version to validate against.  Defaults to ``document["version"]``;
            pass it explicitly for untagged legacy documents whose version
            came from the detector.

        Returns
        -------
        ValidationResult
            ``is_valid`` is True only when ``errors`` is empty.
        """
        if not isinstance(document, dict):
            return ValidationResult.from_errors(
                [f"Save document must be an object, got {type(document).__name__}."]
            )

        if version is None:
            version = document.get("version")

        if version is None:
            return ValidationResult.from_errors(
                ["Save document has no 'version' field."]
            )
        if not is_version_number(version):
            return ValidationResult.from_errors(
                [f"Invalid save version: {version!r} (expected a positive integer)."]
            )
        if version > self.current_version:
            return ValidationResult.from_errors(
                [f"Unsupported future version {version}: this build understands "
                 f"up to version {self.current_version}."],
                version=version,
            )

        validator = self._get_validator(version)
        if validator is None:
            return ValidationResult.from_errors(
                [f"Unsupported save version {version}: no schema is known for it."],
                version=version,
            )

        errors: list[str] = []
        schema_errors = sorted(
            validator.iter_errors(document),
            key=lambda e: [str(p) for p in e.absolute_path],
        )
        errors.extend(self._humanize_error(e) for e in schema_errors)
        errors.extend(self._check_rules(document, version))

        result = ValidationResult.from_errors(errors, version=version)
        if not result.is_valid:
            logger.debug("v%s document failed validation with %d error(s)",
                         version, len(errors))
        return result

    # ------------------------------------------------------------------
    # Layer 2: rules
    # ------------------------------------------------------------------

    def _check_rules(self, document: dict, version: int) -> list[str]:
        errors: list[str] = []

        if version == OLDEST_VERSION:
            if not isinstance(document.get("structures", document.get("buildings")), list):
                errors.append(
                    "Missing required field at (root): a legacy save needs a "
                    "'structures' (or 'buildings') list."
                )
            errors.extend(_duplicate_ids(document.get("structures"), "structures"))
            errors.extend(_duplicate_ids(document.get("buildings"), "buildings"))
            return errors

        errors.extend(_duplicate_ids(document.get("structures"), "structures"))
        errors.extend(_duplicate_ids(document.get("actors"), "actors"))

        if version >= 3:
            regions = document.get("regions")
            errors.extend(_duplicate_ids(regions, "regions"))
            if isinstance(regions, list):
                for i, region in enumerate(regions):
                    if not isinstance(region, dict):
                        continue
                    radius = region.get("radius")
                    max_radius = region.get("max_radius")
                    if (_is_number(radius) and _is_number(max_radius)
                            and max_radius < radius):
                        errors.append(
                            f"Invalid value at 'regions -> {i} -> max_radius': "
                            f"{max_radius} is smaller than the current radius {radius}."
                        )
        return errors

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    @staticmethod
    def _humanize_error(error) -> str:
        """Convert a ``jsonschema.ValidationError`` into plain English."""
        path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "(root)"
        msg = error.message
        if error.validator == "required":
            return f"Missing required field at {path}: {msg}"
        if error.validator == "type":
            return f"Wrong data type at '{path}': {msg}"
        if error.validator in ("enum", "const"):
            return f"Invalid value at '{path}': {msg}"
        if error.validator in ("minimum", "maximum", "exclusiveMinimum", "minLength", "pattern"):
            return f"Out-of-range value at '{path}': {msg}"
        return f"Issue at '{path}': {msg}"


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _duplicate_ids(items, roster: str) -> list[str]:
    if not isinstance(items, list):
        return []
    seen: set[str] = set()
    errors: list[str] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            continue
        item_id = item.get("id")
        if not isinstance(item_id, str):
            continue
        if item_id in seen:
            errors.append(
                f"Duplicate id at '{roster} -> {i} -> id': '{item_id}' is used "
                f"by more than one entry."
            )
        seen.add(item_id)
    return errors


_default_validator: SchemaValidator | None = None


def validate(document, version: int | None = None) -> ValidationResult:
    """Validate with a shared default ``SchemaValidator``."""
    global _default_validator
    if _default_validator is None:
        _default_validator = SchemaValidator()
    return _default_validator.validate(document, version)
