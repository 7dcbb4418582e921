"""
Structured output schemas and their default-fill policy.

Validation runs in two passes. The model output is validated against the
JSON schema; if the only failures are missing required properties, absent
properties receive the defaults the fill policy knows for them and the
object is validated once more. Anything else is a validation error.
Defaults are filled into nested objects but not into array items.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from jsonschema import Draft7Validator
from loguru import logger

from ..errors import ValidationError


def _path_key(path: List[Any]) -> str:
    return ".".join(str(p) for p in path)


@dataclass
class DefaultFillPolicy:
    """Decides which missing properties may be filled and with what.

    ``defaults`` maps a property path (``"confidence"``, ``"meta.source"``)
    to the value to insert and takes precedence over ``"default"`` keywords
    in the schema. With ``use_schema_defaults`` disabled, only ``defaults``
    are used. A disabled policy never fills anything.
    """
    enabled: bool = True
    use_schema_defaults: bool = True
    defaults: Dict[str, Any] = field(default_factory=dict)

    def default_for(self, path: List[Any], property_schema: Dict[str, Any]) -> Tuple[bool, Any]:
        """Look up the default of a missing property.

        Returns:
            ``(True, value)`` if a default is known, ``(False, None)`` otherwise
        """
        key = _path_key(path)
        if key in self.defaults:
            return True, copy.deepcopy(self.defaults[key])
        if self.use_schema_defaults and "default" in property_schema:
            return True, copy.deepcopy(property_schema["default"])
        return False, None

    @classmethod
    def disabled(cls) -> "DefaultFillPolicy":
        return cls(enabled=False)


@dataclass
class OutputSchema:
    """JSON schema for a structured model response.

    Args:
        schema: JSON schema (draft 7) of the response object
        name: Name used in logs and errors
        requires_profile: The query fails if the profile cannot be fetched
        fill_policy: Rule for filling missing properties
    """
    schema: Dict[str, Any]
    name: str = "response"
    requires_profile: bool = False
    fill_policy: DefaultFillPolicy = field(default_factory=DefaultFillPolicy)

    def __post_init__(self):
        """Check the schema itself and build its validator."""
        Draft7Validator.check_schema(self.schema)
        self._validator = Draft7Validator(self.schema)

    def errors_for(self, obj: Any) -> List[Dict[str, Any]]:
        """Describe every validation failure of ``obj``."""
        return [
            {
                "path": _path_key(list(error.absolute_path)),
                "validator": error.validator,
                "message": error.message,
            }
            for error in self._validator.iter_errors(obj)
        ]

    def is_valid(self, obj: Any) -> bool:
        return self._validator.is_valid(obj)

    def validate(self, obj: Any) -> Any:
        """Validate ``obj`` and fill the defaults of absent properties.

        Absent properties, required or not, receive the default the fill
        policy knows for them. A required property without a default, or any
        other kind of failure, is an error.

        Args:
            obj: Decoded model output

        Returns:
            A schema-valid copy of ``obj`` with defaults filled

        Raises:
            ValidationError: If ``obj`` cannot be made valid by the fill policy
        """
        errors = list(self._validator.iter_errors(obj))
        if any(error.validator != "required" for error in errors) or (errors and not self.fill_policy.enabled):
            raise ValidationError(
                f"Model output does not match schema '{self.name}'",
                errors=self.errors_for(obj),
                raw_object=obj,
            )

        if not self.fill_policy.enabled or not isinstance(obj, dict):
            return obj

        filled = copy.deepcopy(obj)
        filled_paths: List[str] = []
        self._fill_defaults(filled, self.schema, [], filled_paths)

        remaining = self.errors_for(filled)
        if remaining:
            raise ValidationError(
                f"Model output does not match schema '{self.name}' after filling defaults",
                errors=remaining,
                raw_object=obj,
            )

        if errors:
            logger.warning(f"OutputSchema: Filled missing required {filled_paths} in '{self.name}'")
        elif filled_paths:
            logger.debug(f"OutputSchema: Filled optional {filled_paths} in '{self.name}'")
        return filled

    def _fill_defaults(
        self,
        instance: Dict[str, Any],
        schema: Dict[str, Any],
        path: List[Any],
        filled_paths: List[str],
    ) -> None:
        for name, property_schema in schema.get("properties", {}).items():
            if not isinstance(property_schema, dict):
                continue
            if name not in instance:
                known, value = self.fill_policy.default_for(path + [name], property_schema)
                if known:
                    instance[name] = value
                    filled_paths.append(_path_key(path + [name]))
            elif isinstance(instance[name], dict) and "properties" in property_schema:
                self._fill_defaults(instance[name], property_schema, path + [name], filled_paths)
