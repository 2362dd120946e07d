# planner.py
# Thin client for the LLM planner that produces workflow documents.
#
# The planner is an external collaborator. This module only owns the seams:
#   registry → tool-schema chunks → system messages → model call
#   → workflow block parsing → static verification (→ retry with errors)
#
# Nothing here executes a workflow.

import json
import logging
import re
from typing import Any

from openai import OpenAI
from pydantic import ValidationError

from toolflow import config
from toolflow.errors import WorkflowParseError
from toolflow.models import VerificationResult, Workflow
from toolflow.registry import FunctionRegistry, get_registry

logger = logging.getLogger(__name__)


WORKFLOW_SYSTEM_PROMPT = """\
You are a workflow planner. Compose the available backend functions into a \
workflow that accomplishes the user's request.

Respond with the workflow inside a ```workflow fenced block containing valid \
JSON that matches this exact shape:

```workflow
{
  "type": "workflow",
  "description": "<short description of workflow>",
  "actions": [
    {
      "id": "<unique_action_id>",
      "tool": "<backend_function_name>",
      "description": "<description of the action>",
      "parameters": {"<parameter_name>": "<value_or_reference>"},
      "map": false
    }
  ],
  "ui": {
    "inputComponents": [
      {"key": "userInput.<field>", "label": "<label>", "type": "string|number|boolean|enum|text|csv|array", "required": true}
    ],
    "outputComponents": [
      {"actionId": "<action_id>", "component": "dataCard|table", "props": {}}
    ]
  }
}
```

RULES FOR PARAMETER VALUES:
- Use literal values when the request states them.
- Use "userInput.<field>" for values the user must supply, and add one \
inputComponent whose key is exactly that placeholder.
- Use "<action_id>.<field>" to pass the output of an EARLIER action. Only \
fields declared in that function's "returns" schema exist.
- Use "<action_id>[*].<field>" with "map": true to run once per element.
- "enum" inputs need "enumValues"; "array" inputs need non-empty "subFields".

Only use functions listed in the available backend functions. If no workflow \
is needed, respond directly and do not emit the block.\
"""

_FENCED = re.compile(r"```(?:workflow|json)\s*(.*?)```", re.DOTALL)


def parse_workflow(response: str) -> dict[str, Any] | None:
    """
    Extract the workflow JSON from a planner response.

    Returns None when the response carries no workflow (direct answer path).
    Raises WorkflowParseError when a workflow block is present but invalid.
    """
    match = _FENCED.search(response)
    if match:
        raw = match.group(1).strip()
    elif response.strip().startswith("{"):
        raw = response.strip()
    else:
        return None

    try:
        document = json.loads(raw, strict=False)
    except json.JSONDecodeError as exc:
        raise WorkflowParseError(f"Workflow JSON is malformed: {exc}\nPayload: {raw}") from exc
    if not isinstance(document, dict):
        raise WorkflowParseError("Workflow JSON must be an object.")
    return document


def format_errors(result: VerificationResult) -> str:
    return "\n".join(f"- {error}" for error in result.errors)


class WorkflowPlanner:
    """
    Asks an OpenRouter-hosted model for a workflow and verifies it.

    Example:
        planner = WorkflowPlanner()
        workflow, report = planner.plan("Email every user who signed up today.")
    """

    def __init__(
        self,
        model: str = config.PLANNER_MODEL,
        registry: FunctionRegistry | None = None,
        budget: int = config.CHUNK_BUDGET,
        max_attempts: int = 2,
        client: OpenAI | None = None,
    ) -> None:
        self._model = model
        self._registry = registry if registry is not None else get_registry()
        self._budget = budget
        self._max_attempts = max_attempts
        self._client = client or OpenAI(
            base_url=config.OPENROUTER_BASE_URL,
            api_key=config.OPENROUTER_API_KEY,
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def build_messages(self, request: str) -> list[dict]:
        """System prompt, one system message per tool-schema chunk, then the request."""
        messages: list[dict] = [{"role": "system", "content": WORKFLOW_SYSTEM_PROMPT}]
        for index, chunk in enumerate(self._registry.split_tool_schemas(self._budget)):
            tools = json.dumps(chunk.tools, indent=2)
            if index == 0:
                content = f"Available backend functions:\n{tools}"
            else:
                content = f"Additional backend functions (part {index + 1}):\n{tools}"
            messages.append({"role": "system", "content": content})
        messages.append({"role": "user", "content": request})
        return messages

    def _call_model(self, messages: list[dict]) -> str:
        response = self._client.chat.completions.create(
            model=self._model,
            messages=messages,
        )
        return response.choices[0].message.content.strip()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def plan(self, request: str) -> tuple[Workflow | None, VerificationResult]:
        """
        Request a workflow, verify it, and feed violations back for another
        attempt until it passes or attempts run out.

        Returns (None, valid report) when the model answered directly.
        """
        messages = self.build_messages(request)
        report = VerificationResult(valid=False, errors=["No workflow was produced."])

        for attempt in range(1, self._max_attempts + 1):
            response = self._call_model(messages)
            document = parse_workflow(response)
            if document is None:
                logger.info("Planner answered directly without a workflow")
                return None, VerificationResult(valid=True)

            report = self._registry.verify(document)
            if report.valid:
                try:
                    return Workflow.model_validate(document), report
                except ValidationError as exc:
                    raise WorkflowParseError(f"Verified workflow failed to load: {exc}") from exc

            logger.warning(
                "Workflow attempt %d/%d failed verification with %d error(s)",
                attempt,
                self._max_attempts,
                len(report.errors),
            )
            messages = messages + [
                {"role": "assistant", "content": response},
                {
                    "role": "user",
                    "content": (
                        "The workflow failed validation. Fix these errors and respond "
                        f"with the corrected workflow:\n{format_errors(report)}"
                    ),
                },
            ]

        return None, report
