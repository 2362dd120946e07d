# models.py
# Data contracts for workflow documents, verification reports and the
# registry's exported views.
# No business logic lives here, only schema.

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Action(BaseModel):
    """A single function call node in a workflow."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Unique within the workflow document.")
    tool: str = Field(..., description="Function name; must exist in the registry.")
    description: str = Field(default="", description="Human-readable intent of this action.")
    parameters: dict[str, Any] = Field(default_factory=dict)
    map: bool = Field(default=False, description="Apply per element of a [*] reference.")


class InputComponent(BaseModel):
    """A form field that resolves one userInput.* placeholder."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    key: str
    label: str
    kind: Literal["string", "number", "boolean", "enum", "text", "csv", "array"] = Field(
        ..., alias="type"
    )
    required: bool = True
    enum_values: list[str] | None = Field(default=None, alias="enumValues")
    expected_columns: list[str] | None = Field(default=None, alias="expectedColumns")
    sub_fields: list["InputComponent"] | None = Field(default=None, alias="subFields")


class OutputComponent(BaseModel):
    """Binds an action's result to a display component."""

    model_config = ConfigDict(populate_by_name=True)

    action_id: str = Field(..., alias="actionId")
    component: Literal["table", "dataCard"]
    props: dict[str, Any]


class WorkflowUI(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    input_components: list[InputComponent] = Field(default_factory=list, alias="inputComponents")
    output_components: list[OutputComponent] = Field(default_factory=list, alias="outputComponents")


class Workflow(BaseModel):
    """A complete, verified workflow document emitted by the planner."""

    model_config = ConfigDict(extra="allow")

    type: Literal["workflow"] = "workflow"
    description: str = ""
    actions: list[Action] = Field(..., min_length=1)
    ui: WorkflowUI | None = None


class VerificationResult(BaseModel):
    """Outcome of a static workflow check. Errors keep discovery order."""

    valid: bool
    errors: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Registry views
# ---------------------------------------------------------------------------


class FunctionAttributes(BaseModel):
    """Per-name registry flags."""

    active: bool = True
    hidden: bool = False
    is_visualization: bool = False


class FunctionMetadata(BaseModel):
    """UI listing entry for one visible function."""

    name: str
    description: str
    needs_confirmation: bool = False
    active: bool = True
    is_visualization: bool = False


class ToolChunk(BaseModel):
    """A size-bounded group of exported tool schemas."""

    tools: list[dict[str, Any]] = Field(default_factory=list)
