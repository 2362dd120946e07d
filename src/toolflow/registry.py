# registry.py
# Function descriptors and the registry that owns them.
#
# The registry is the only path through which a function is invoked:
#   lookup → active? → coerce args → strict tuple check
#   → forward (remote) or call (local, awaited if needed) → return check
#
# invoke() never raises past its boundary for runtime data problems. Every
# failure becomes a descriptive string, because the caller is usually an LLM
# tool-call loop that expects a textual result. Administrative misses
# (unknown names) do raise.

import inspect
import logging
from typing import Any, Callable

from pydantic import ValidationError

from toolflow import exporter, verifier
from toolflow.errors import (
    MissingParameterNameError,
    ParameterValidationError,
    RemoteForwardingError,
    UnknownFunctionError,
)
from toolflow.models import FunctionAttributes, FunctionMetadata, ToolChunk, VerificationResult
from toolflow.remote import RemoteForwarder
from toolflow.schema import build_tuple_validator, descriptor_from_dict, to_parameter_error

logger = logging.getLogger(__name__)

FUNCTION_NOT_ACTIVE = "This function is not available"


def parameter_issue_message(name: str, error: ParameterValidationError) -> str:
    return f'There was an issue with the parameters you provided for the function "{name}": {error}'


def unexpected_error_message(name: str) -> str:
    return f'An unexpected error occurred while calling the function "{name}". Please try again.'


# ---------------------------------------------------------------------------
# FunctionDescriptor
# ---------------------------------------------------------------------------


class FunctionDescriptor:
    """
    The callable contract for one backend operation.

    Built fluently:

        add = (
            FunctionDescriptor("add", "Adds two numbers")
            .args(PrimitiveField(name="a", kind="number"), PrimitiveField(name="b", kind="number"))
            .returns(PrimitiveField(name="sum", kind="number"))
            .implement(lambda a, b: a + b)
        )

    A descriptor with a `remote_handle` is invoked by forwarding, never by
    running `implementation` locally.
    """

    def __init__(
        self,
        name: str,
        description: str,
        remote_handle: str | None = None,
        needs_confirmation: bool = False,
        hidden: bool = False,
        visualization: bool = False,
    ) -> None:
        self._name = name
        self._description = description
        self._remote_handle = remote_handle
        self._needs_confirmation = needs_confirmation
        self._hidden = hidden
        self._visualization = visualization
        self._params: list[Any] = []
        self._return_type: Any = None
        self._implementation: Callable[..., Any] = lambda *args: None

    def args(self, *params: Any) -> "FunctionDescriptor":
        self._params = list(params)
        return self

    def returns(self, descriptor: Any) -> "FunctionDescriptor":
        self._return_type = descriptor
        return self

    def implement(self, fn: Callable[..., Any]) -> "FunctionDescriptor":
        self._implementation = fn
        return self

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def params(self) -> list[Any]:
        return list(self._params)

    @property
    def return_type(self) -> Any:
        return self._return_type

    @property
    def remote_handle(self) -> str | None:
        return self._remote_handle

    @property
    def needs_confirmation(self) -> bool:
        return self._needs_confirmation

    @property
    def hidden(self) -> bool:
        return self._hidden

    @property
    def visualization(self) -> bool:
        return self._visualization

    @property
    def implementation(self) -> Callable[..., Any]:
        return self._implementation

    def get_param(self, name: str) -> Any | None:
        for param in self._params:
            if param.name == name:
                return param
        return None

    # ------------------------------------------------------------------
    # Schema and validation
    # ------------------------------------------------------------------

    def describe(self) -> dict[str, Any]:
        """Tool schema in the function-calling format the planner consumes."""
        function: dict[str, Any] = {
            "name": self._name,
            "description": self._description,
            "parameters": {
                "type": "object",
                "properties": {p.name: p.describe() for p in self._params},
                "required": [p.name for p in self._params if p.required],
            },
        }
        if self._return_type is not None:
            function["returns"] = self._return_type.describe()
        return {"type": "function", "function": function}

    def validate_args(self, args: tuple[Any, ...] | list[Any]) -> tuple[Any, ...]:
        """
        Coerce each positional argument, then strictly validate the tuple.

        Trailing optional parameters may be omitted; they are passed as None.
        Raises ParameterValidationError.
        """
        params = self._params
        if len(args) > len(params):
            raise ParameterValidationError(
                "arguments", f"Expected at most {len(params)} arguments, got {len(args)}"
            )
        if not params:
            return ()

        coerced: list[Any] = []
        for index, param in enumerate(params):
            value = args[index] if index < len(args) else None
            if value is None:
                if param.required:
                    raise ParameterValidationError(param.name, "Missing required parameter")
                coerced.append(None)
                continue
            coerced.append(param.coerce(value))

        try:
            return build_tuple_validator(params).validate_python(tuple(coerced))
        except ValidationError as exc:
            raise to_parameter_error(exc, names=[p.name for p in params]) from exc

    def check_result(self, result: Any) -> Any:
        """Strictly validate an implementation result against the return type."""
        if self._return_type is None:
            return result
        return self._return_type.check(result)


# ---------------------------------------------------------------------------
# FunctionRegistry
# ---------------------------------------------------------------------------


class FunctionRegistry:
    """
    Name → FunctionDescriptor mapping plus per-name attributes.

    One process-wide instance is available from get_registry(); tests and
    embedders construct their own and inject it.
    """

    def __init__(self, forwarder: RemoteForwarder | None = None) -> None:
        self._functions: dict[str, FunctionDescriptor] = {}
        self._attributes: dict[str, FunctionAttributes] = {}
        self._forwarder = forwarder

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def register(self, descriptor: FunctionDescriptor, name: str | None = None) -> FunctionDescriptor:
        key = name or descriptor.name
        if key in self._functions:
            logger.warning("Function %r is already registered. Overwriting.", key)
        self._functions[key] = descriptor
        self._attributes[key] = FunctionAttributes(
            active=True,
            hidden=descriptor.hidden,
            is_visualization=descriptor.visualization,
        )
        logger.debug("Registered function %r", key)
        return descriptor

    def register_remote(self, payload: dict[str, Any], handle: str) -> FunctionDescriptor:
        """
        Register a function described by a remote collaborator.

        `payload` is {name, description, params: [descriptor dicts],
        returns?: descriptor dict, needsConfirmation?: bool, hidden?: bool}.
        """
        descriptor = FunctionDescriptor(
            payload["name"],
            payload.get("description", ""),
            remote_handle=handle,
            needs_confirmation=payload.get("needsConfirmation", False),
            hidden=payload.get("hidden", False),
        ).args(*[descriptor_from_dict(p) for p in payload.get("params", [])])
        if payload.get("returns") is not None:
            descriptor.returns(descriptor_from_dict(payload["returns"]))
        return self.register(descriptor)

    def get(self, name: str) -> FunctionDescriptor:
        try:
            return self._functions[name]
        except KeyError:
            raise UnknownFunctionError(name) from None

    def attributes(self, name: str) -> FunctionAttributes:
        try:
            return self._attributes[name]
        except KeyError:
            raise UnknownFunctionError(name) from None

    def toggle_active(self, name: str) -> bool:
        attributes = self.attributes(name)
        attributes.active = not attributes.active
        logger.info("Function %r is now %s", name, "active" if attributes.active else "inactive")
        return attributes.active

    def set_hidden(self, name: str, hidden: bool) -> None:
        self.attributes(name).hidden = hidden

    def clear(self) -> None:
        self._functions.clear()
        self._attributes.clear()

    def names(self) -> list[str]:
        return list(self._functions)

    def items(self) -> list[tuple[str, FunctionDescriptor]]:
        return list(self._functions.items())

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    async def invoke(self, name: str, *args: Any) -> Any:
        descriptor = self.get(name)

        if not self._attributes[name].active:
            return FUNCTION_NOT_ACTIVE

        try:
            coerced = descriptor.validate_args(args)
        except ParameterValidationError as exc:
            logger.info("Rejected arguments for %r: %s", name, exc)
            return parameter_issue_message(name, exc)

        try:
            if descriptor.remote_handle is not None:
                if self._forwarder is None:
                    raise RemoteForwardingError(f"No remote forwarder configured for {name!r}.")
                return await self._forwarder.forward(name, list(coerced), descriptor.remote_handle)

            result = descriptor.implementation(*coerced)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            logger.exception("Function %r raised during invocation", name)
            return unexpected_error_message(name)

        try:
            return descriptor.check_result(result)
        except ParameterValidationError as exc:
            logger.info("Return value of %r failed validation: %s", name, exc)
            return parameter_issue_message(name, exc)

    async def invoke_by_named_args(self, name: str, args_by_name: dict[str, Any]) -> Any:
        descriptor = self.get(name)
        positional: list[Any] = []
        for param in descriptor.params:
            param_name = getattr(param, "name", None)
            if not param_name:
                raise MissingParameterNameError(
                    f"Parameter {param!r} of function {name!r} is missing a valid name"
                )
            positional.append(args_by_name.get(param_name))
        return await self.invoke(name, *positional)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def describe_all(self) -> list[dict[str, Any]]:
        return exporter.describe_all(self)

    def split_tool_schemas(self, budget: int) -> list[ToolChunk]:
        return exporter.split_tool_schemas(self, budget)

    def metadata(self) -> list[FunctionMetadata]:
        return exporter.function_metadata(self)

    def verify(self, document: Any) -> VerificationResult:
        return verifier.verify_workflow(document, self)


_default_registry: FunctionRegistry | None = None


def get_registry() -> FunctionRegistry:
    """The process-wide registry, created on first use."""
    global _default_registry
    if _default_registry is None:
        _default_registry = FunctionRegistry(forwarder=RemoteForwarder.from_config())
    return _default_registry
