# errors.py
# Exception hierarchy shared by the registry, verifier and planner.
#
# Administrative misses raise. The invoke path and the verifier convert these
# into strings before they reach a tool-call loop.


class ToolflowError(Exception):
    """Base class for every error raised by toolflow."""


class UnknownFunctionError(ToolflowError, KeyError):
    """Raised when a function name is not present in the registry."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Function {self.name!r} is not registered"


class MissingParameterNameError(ToolflowError):
    """Raised when a parameter descriptor cannot report its own name."""


class DescriptorCycleError(ToolflowError, ValueError):
    """Raised when an object descriptor would contain itself."""


class RemoteForwardingError(ToolflowError):
    """Raised when a delegated call to a remote collaborator fails."""


class WorkflowParseError(ToolflowError):
    """Raised when planner output does not contain a parseable workflow."""


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------


class ParameterValidationError(ToolflowError, ValueError):
    """A value failed coercion or strict type validation.

    Carries the dotted field path and a short reason. ``str()`` renders as
    ``<field>: <reason>``, which is the form surfaced to callers.
    """

    reason = "Invalid value"

    def __init__(self, field: str, reason: str | None = None) -> None:
        self.field = field
        if reason is not None:
            self.reason = reason
        super().__init__(f"{field}: {self.reason}")


class InvalidNumber(ParameterValidationError):
    reason = "Invalid number"


class InvalidBoolean(ParameterValidationError):
    reason = "Invalid boolean"


class InvalidArray(ParameterValidationError):
    reason = "Invalid array"


class InvalidEnumValue(ParameterValidationError):
    reason = "Invalid enum value"
