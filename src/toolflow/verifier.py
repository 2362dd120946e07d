# verifier.py
# Static verification of workflow documents against a function registry.
#
# Nothing is executed. Checks run in layers and accumulate, so one pass
# reports every problem:
#   shape → identity → tools & parameters → cross-action references → UI
#
# Only a malformed root (wrong type, no actions) short-circuits.

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from toolflow.errors import ParameterValidationError
from toolflow.models import VerificationResult
from toolflow.schema import ObjectField

if TYPE_CHECKING:
    from toolflow.registry import FunctionDescriptor, FunctionRegistry

logger = logging.getLogger(__name__)

USER_INPUT_PREFIX = "userInput."
DIRECTIVE_KEYS = ("_generate", "_transform")
INPUT_COMPONENT_KINDS = ("string", "number", "boolean", "enum", "text", "csv", "array")
OUTPUT_COMPONENT_KINDS = ("table", "dataCard")

_REFERENCE = re.compile(
    r"^(?P<action>[A-Za-z_][\w-]*)(?P<each>\[\*\])?"
    r"\.(?P<path>[\w-]+(?:\.[\w-]+|\[(?:\d+|\*)\])*)$"
)


# ---------------------------------------------------------------------------
# Parameter value classification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Reference:
    """`<action>.<path>` or `<action>[*].<path>`."""

    action_id: str
    path: str
    each: bool = False

    @property
    def leading_field(self) -> str:
        return self.path.split(".", 1)[0]


def is_placeholder(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(USER_INPUT_PREFIX)


def is_directive(value: Any) -> bool:
    return isinstance(value, dict) and any(key in value for key in DIRECTIVE_KEYS)


def parse_reference(value: Any) -> Reference | None:
    if not isinstance(value, str) or is_placeholder(value):
        return None
    match = _REFERENCE.match(value)
    if not match:
        return None
    return Reference(match["action"], match["path"], each=match["each"] is not None)


def placeholder_key(value: str) -> str:
    """userInput.csvData[*].email -> userInput.csvData"""
    return value.split("[*]", 1)[0]


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------


def _prefix(index: int, action: Any) -> str:
    action_id = action.get("id") if isinstance(action, dict) else None
    return f"Action #{index + 1} ({action_id if action_id else '<no id>'})"


def _parameters(action: dict[str, Any]) -> dict[str, Any] | None:
    parameters = action.get("parameters", {})
    if parameters is None:
        return {}
    return parameters if isinstance(parameters, dict) else None


def _lookup(registry: "FunctionRegistry", tool: Any) -> "FunctionDescriptor | None":
    if isinstance(tool, str) and tool in registry:
        return registry.get(tool)
    return None


def _check_identity(actions: list[Any], errors: list[str]) -> dict[str, int]:
    positions: dict[str, int] = {}
    for index, action in enumerate(actions):
        action_id = action.get("id") if isinstance(action, dict) else None
        if not action_id or not isinstance(action_id, str):
            errors.append("Each action must have a string id.")
            continue
        if action_id in positions:
            errors.append(f"Duplicate action id: {action_id}")
            continue
        positions[action_id] = index
    return positions


def _check_parameters(actions: list[Any], registry: "FunctionRegistry", errors: list[str]) -> None:
    for index, action in enumerate(actions):
        if not isinstance(action, dict):
            continue
        prefix = _prefix(index, action)
        tool = action.get("tool")
        descriptor = _lookup(registry, tool)
        if descriptor is None:
            errors.append(f'{prefix}: Unknown tool "{tool}".')
            continue

        parameters = _parameters(action)
        if parameters is None:
            errors.append(f'{prefix}: "parameters" must be an object.')
            parameters = {}

        for param in descriptor.params:
            provided = param.name in parameters
            if param.required and not provided:
                errors.append(
                    f'{prefix}: Missing required parameter "{param.name}" for tool "{tool}".'
                )
                continue
            if not provided:
                continue

            value = parameters[param.name]
            if value is None and not param.required:
                continue
            if is_placeholder(value) or is_directive(value) or parse_reference(value) is not None:
                continue
            try:
                param.validate_value(value)
            except ParameterValidationError as exc:
                errors.append(f'{prefix}: Parameter "{param.name}" failed validation: {exc}')


def _check_references(
    actions: list[Any],
    registry: "FunctionRegistry",
    positions: dict[str, int],
    errors: list[str],
) -> None:
    for index, action in enumerate(actions):
        if not isinstance(action, dict):
            continue
        parameters = _parameters(action) or {}
        prefix = _prefix(index, action)

        for name, value in parameters.items():
            reference = parse_reference(value)
            if reference is None:
                continue

            target = positions.get(reference.action_id)
            if target is None:
                errors.append(
                    f'{prefix}: Parameter "{name}" references non-existent action '
                    f'"{reference.action_id}".'
                )
                continue
            if target == index:
                errors.append(
                    f'{prefix}: Parameter "{name}" cannot reference action '
                    f'"{reference.action_id}" that comes after it (an action cannot '
                    "reference its own output)."
                )
                continue
            if target > index:
                errors.append(
                    f'{prefix}: Parameter "{name}" cannot reference action '
                    f'"{reference.action_id}" that comes after it.'
                )
                continue

            # Only the leading segment of a plain path is checked. Deeper and
            # indexed paths are accepted as-is.
            if reference.each or "[" in reference.leading_field:
                continue
            source = _lookup(registry, actions[target].get("tool"))
            if source is None or not isinstance(source.return_type, ObjectField):
                continue
            available = source.return_type.field_names()
            if reference.leading_field not in available:
                errors.append(
                    f'{prefix}: Parameter "{name}" references field "{reference.leading_field}" '
                    f'that does not exist on the output of action "{reference.action_id}". '
                    f"Available fields: {', '.join(available)}"
                )


def _check_input_components(components: list[Any], errors: list[str]) -> None:
    # Depth-first, pre-order, without recursion: nested array groups have no
    # depth limit.
    stack = [(component, f"inputComponent[{i}]") for i, component in enumerate(components)]
    stack.reverse()

    while stack:
        component, prefix = stack.pop()
        if not isinstance(component, dict):
            errors.append(f"{prefix}: Must be an object with key, label and type.")
            continue

        if "component" in component and "props" in component:
            errors.append(
                f"{prefix}: Using incorrect schema - use {{key, label, type}} "
                "instead of {component, props}"
            )
        for field in ("key", "label"):
            value = component.get(field)
            if not value or not isinstance(value, str):
                errors.append(f"{prefix}: Missing or invalid '{field}' field (required string)")

        kind = component.get("type")
        if not kind or not isinstance(kind, str):
            errors.append(f"{prefix}: Missing or invalid 'type' field (required string)")
            continue
        if kind not in INPUT_COMPONENT_KINDS:
            errors.append(
                f"{prefix}: Invalid 'type' \"{kind}\" "
                f"(expected one of: {', '.join(INPUT_COMPONENT_KINDS)})"
            )
            continue

        if kind == "enum":
            values = component.get("enumValues")
            if not isinstance(values, list) or not values:
                errors.append(f"{prefix}: 'enum' components require a non-empty 'enumValues' list")
        elif kind == "array":
            sub_fields = component.get("subFields")
            if not isinstance(sub_fields, list) or not sub_fields:
                errors.append(f"{prefix}: 'array' components require a non-empty 'subFields' list")
                continue
            children = [
                (sub, f"{prefix}.subFields[{j}]") for j, sub in enumerate(sub_fields)
            ]
            stack.extend(reversed(children))


def _collect_placeholders(actions: list[Any]) -> list[str]:
    seen: dict[str, None] = {}
    for action in actions:
        if not isinstance(action, dict):
            continue
        for value in (_parameters(action) or {}).values():
            if is_placeholder(value):
                seen.setdefault(placeholder_key(value), None)
    return list(seen)


def _check_ui(document: dict[str, Any], actions: list[Any], positions: dict[str, int], errors: list[str]) -> None:
    ui = document.get("ui")
    if ui is None:
        ui = {}
    elif not isinstance(ui, dict):
        errors.append('"ui" must be an object.')
        ui = {}

    inputs = ui.get("inputComponents")
    if inputs is not None and not isinstance(inputs, list):
        errors.append('"ui.inputComponents" must be an array.')
        inputs = None
    if inputs is not None:
        _check_input_components(inputs, errors)

    placeholders = _collect_placeholders(actions)
    if placeholders:
        if inputs is None:
            errors.append("Workflow has userInput parameters but no UI inputComponents defined")
        else:
            keys = {
                c["key"] for c in inputs if isinstance(c, dict) and isinstance(c.get("key"), str)
            }
            for placeholder in placeholders:
                if placeholder not in keys:
                    errors.append(f"Missing UI component for parameter: {placeholder}")

    outputs = ui.get("outputComponents")
    if outputs is None:
        return
    if not isinstance(outputs, list):
        errors.append('"ui.outputComponents" must be an array.')
        return
    for index, component in enumerate(outputs):
        prefix = f"outputComponent[{index}]"
        if not isinstance(component, dict):
            errors.append(f"{prefix}: Must be an object with actionId, component and props.")
            continue

        action_id = component.get("actionId")
        if not action_id or not isinstance(action_id, str):
            errors.append(f"{prefix}: Missing or invalid 'actionId' field (required string)")
        elif action_id not in positions:
            errors.append(
                f"{prefix}: actionId '{action_id}' does not match any action in the workflow"
            )

        kind = component.get("component")
        if not kind or not isinstance(kind, str):
            errors.append(f"{prefix}: Missing or invalid 'component' field (required string)")
        elif kind not in OUTPUT_COMPONENT_KINDS:
            errors.append(
                f"{prefix}: Invalid 'component' \"{kind}\" "
                f"(expected one of: {', '.join(OUTPUT_COMPONENT_KINDS)})"
            )

        if not isinstance(component.get("props"), dict):
            errors.append(f"{prefix}: Missing or invalid 'props' field (required object)")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def verify_workflow(document: Any, registry: "FunctionRegistry") -> VerificationResult:
    """
    Check a workflow document against `registry` without executing anything.

    Never raises. Returns every violation found, in discovery order.
    """
    errors: list[str] = []

    if not isinstance(document, dict) or document.get("type") != "workflow":
        errors.append('Root object must have type="workflow".')
        return VerificationResult(valid=False, errors=errors)

    actions = document.get("actions")
    if not isinstance(actions, list) or not actions:
        errors.append("Workflow must contain a non-empty actions array.")
        return VerificationResult(valid=False, errors=errors)

    positions = _check_identity(actions, errors)
    _check_parameters(actions, registry, errors)
    _check_references(actions, registry, positions, errors)
    _check_ui(document, actions, positions, errors)

    logger.debug("Verified workflow with %d action(s): %d error(s)", len(actions), len(errors))
    return VerificationResult(valid=not errors, errors=errors)
