# Version: v1.0
"""
semsplit.schema — Structural validation for the small JSON-schema subset the
analyzers use.

Supported keywords: type, required, properties, minimum, maximum. Arrays are
checked by type only and enum lists are not enforced, so a model that invents
a new relationship label still yields a usable reply.
"""

from typing import Any, Mapping

from jsonschema import Draft202012Validator, validators

from semsplit.exceptions import SchemaViolation

STRUCTURAL_KEYWORDS = ("type", "required", "properties", "minimum", "maximum")

StructuralValidator = validators.create(
    meta_schema=Draft202012Validator.META_SCHEMA,
    validators={k: Draft202012Validator.VALIDATORS[k] for k in STRUCTURAL_KEYWORDS},
    type_checker=Draft202012Validator.TYPE_CHECKER,
)


def collect_errors(value: Any, schema: Mapping[str, Any]) -> list[str]:
    """Return every structural violation of *value* against *schema*.

    Each message is prefixed with the dotted location of the offending
    value, or ``value`` for the top level.
    """
    errors = []
    for error in StructuralValidator(dict(schema)).iter_errors(value):
        label = ".".join(str(part) for part in error.absolute_path) or "value"
        errors.append(f"{label}: {error.message}")
    return errors


def validate(value: Any, schema: Mapping[str, Any]) -> Any:
    """Validate *value* against *schema* and return it unchanged.

    Raises:
        SchemaViolation: Listing every violation found.
    """
    errors = collect_errors(value, schema)
    if errors:
        raise SchemaViolation("Schema validation failed: " + "; ".join(errors))
    return value
