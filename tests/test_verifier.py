import pytest

from toolflow.registry import FunctionDescriptor, FunctionRegistry
from toolflow.schema import ArrayField, EnumField, ObjectField, PrimitiveField
from toolflow.verifier import (
    is_directive,
    is_placeholder,
    parse_reference,
    placeholder_key,
    verify_workflow,
)


def _string(name: str, required: bool = True) -> PrimitiveField:
    return PrimitiveField(name=name, kind="string", description=name, required=required)


def _number(name: str, required: bool = True) -> PrimitiveField:
    return PrimitiveField(name=name, kind="number", description=name, required=required)


@pytest.fixture
def registry():
    reg = FunctionRegistry()
    survey = (
        ObjectField(name="SurveyResult")
        .field(PrimitiveField(name="success", kind="boolean"))
        .field(_string("message"))
        .field(_string("surveyId"))
    )
    reg.register(
        FunctionDescriptor("create_survey", "Creates a survey")
        .args(_string("title"), _string("description", required=False))
        .returns(survey)
    )
    reg.register(
        FunctionDescriptor("add_question", "Adds a question to a survey")
        .args(_string("surveyId"), _string("question"))
    )
    reg.register(
        FunctionDescriptor("get_user", "Looks up a user")
        .args(_number("userId"))
        .returns(ObjectField(name="User").field(_string("email")).field(_string("name")))
    )
    reg.register(
        FunctionDescriptor("send_email", "Sends an email")
        .args(_string("to"), _string("subject"), _string("attachment", required=False))
    )
    reg.register(
        FunctionDescriptor("set_role", "Sets a role")
        .args(_string("email"), EnumField(name="role", values=["ADMIN", "USER"]))
    )
    reg.register(
        FunctionDescriptor("sum_all", "Sums numbers")
        .args(ArrayField(name="numbers", item_type=_number("n")))
    )
    return reg


def _workflow(*actions, ui=None) -> dict:
    document = {"type": "workflow", "description": "test", "actions": list(actions)}
    if ui is not None:
        document["ui"] = ui
    return document


def _action(action_id, tool, **parameters) -> dict:
    return {"id": action_id, "tool": tool, "description": "", "parameters": parameters}


# ---------------------------------------------------------------------------
# Value classification
# ---------------------------------------------------------------------------

def test_placeholder_and_directive_detection():
    assert is_placeholder("userInput.email")
    assert not is_placeholder("user.email")
    assert is_directive({"_generate": "a subject line"})
    assert is_directive({"_transform": "uppercase"})
    assert not is_directive({"other": 1})


def test_parse_reference():
    reference = parse_reference("get_user.email")
    assert reference.action_id == "get_user"
    assert reference.path == "email"
    assert reference.each is False

    mapped = parse_reference("rows[*].email")
    assert mapped.each is True
    assert mapped.leading_field == "email"

    assert parse_reference("userInput.email") is None
    assert parse_reference("plain text") is None


def test_placeholder_key_strips_mapping():
    assert placeholder_key("userInput.csvData[*].email") == "userInput.csvData"
    assert placeholder_key("userInput.email") == "userInput.email"


# ---------------------------------------------------------------------------
# Shape
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("document", [None, [], "workflow", {"type": "plan", "actions": []}])
def test_root_must_be_a_workflow(registry, document):
    result = verify_workflow(document, registry)
    assert result.valid is False
    assert result.errors == ['Root object must have type="workflow".']


@pytest.mark.parametrize("actions", [None, [], {"id": "a"}])
def test_actions_must_be_a_non_empty_array(registry, actions):
    result = verify_workflow({"type": "workflow", "actions": actions}, registry)
    assert result.errors == ["Workflow must contain a non-empty actions array."]


def test_valid_workflow(registry):
    result = registry.verify(
        _workflow(
            _action("user", "get_user", userId=42),
            _action("mail", "send_email", to="user.email", subject="Hello"),
        )
    )
    assert result.valid is True
    assert result.errors == []


# ---------------------------------------------------------------------------
# Identity and tools
# ---------------------------------------------------------------------------

def test_missing_and_duplicate_ids(registry):
    result = verify_workflow(
        _workflow(
            {"tool": "get_user", "parameters": {"userId": 1}},
            _action("user", "get_user", userId=1),
            _action("user", "get_user", userId=2),
        ),
        registry,
    )
    assert "Each action must have a string id." in result.errors
    assert "Duplicate action id: user" in result.errors


def test_unknown_tool_is_reported_with_position(registry):
    result = verify_workflow(_workflow(_action("x", "does_not_exist")), registry)
    assert result.errors == ['Action #1 (x): Unknown tool "does_not_exist".']


def test_duplicate_id_and_unknown_tool_are_both_reported_in_order(registry):
    result = verify_workflow(
        _workflow(
            _action("a", "get_user", userId=1),
            _action("a", "nope"),
        ),
        registry,
    )
    assert result.errors == [
        "Duplicate action id: a",
        'Action #2 (a): Unknown tool "nope".',
    ]


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------

def test_missing_required_parameter(registry):
    result = verify_workflow(_workflow(_action("s", "create_survey")), registry)
    assert result.errors == ['Action #1 (s): Missing required parameter "title" for tool "create_survey".']


def test_parameters_must_be_an_object(registry):
    action = {"id": "s", "tool": "get_user", "parameters": ["bad"]}
    result = verify_workflow(_workflow(action), registry)
    assert 'Action #1 (s): "parameters" must be an object.' in result.errors


def test_literal_values_are_validated(registry):
    result = verify_workflow(
        _workflow(
            _action("u", "get_user", userId="not-a-number"),
            _action("r", "set_role", email="a@b.c", role="ROOT"),
            _action("n", "sum_all", numbers=[1, "x"]),
        ),
        registry,
    )
    assert result.errors[0] == 'Action #1 (u): Parameter "userId" failed validation: userId: Invalid number'
    assert result.errors[1].startswith('Action #2 (r): Parameter "role" failed validation: role: Invalid enum value')
    assert result.errors[2] == (
        'Action #3 (n): Parameter "numbers" failed validation: numbers.1: Input should be a valid number'
    )


def test_literal_strings_are_coerced_like_invoke(registry):
    result = verify_workflow(
        _workflow(
            _action("u", "get_user", userId="42"),
            _action("n", "sum_all", numbers="[1, 2, 3]"),
        ),
        registry,
    )
    assert result.valid is True


def test_placeholders_and_directives_skip_validation(registry):
    result = verify_workflow(
        _workflow(
            _action("u", "get_user", userId="userInput.userId"),
            _action("m", "send_email", to="u.email", subject={"_generate": "a friendly subject"}),
            ui={"inputComponents": [{"key": "userInput.userId", "label": "User", "type": "number"}]},
        ),
        registry,
    )
    assert result.valid is True


def test_misspelled_reference_on_string_parameter_is_reported(registry):
    result = verify_workflow(
        _workflow(
            _action("user", "get_user", userId=1),
            _action("mail", "send_email", to="usr.email", subject="hi"),
        ),
        registry,
    )
    assert result.errors == ['Action #2 (mail): Parameter "to" references non-existent action "usr".']


def test_emails_and_free_text_are_not_references(registry):
    result = verify_workflow(
        _workflow(
            _action("m", "send_email", to="john.doe@example.com", subject="Q3 report. Please read"),
        ),
        registry,
    )
    assert result.valid is True


def test_dotted_value_for_non_string_parameter_is_a_reference(registry):
    result = verify_workflow(_workflow(_action("u", "get_user", userId="profile.id")), registry)
    assert result.errors == ['Action #1 (u): Parameter "userId" references non-existent action "profile".']


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------

def test_forward_reference_is_rejected(registry):
    result = verify_workflow(
        _workflow(
            _action("addQuestion", "add_question", surveyId="createSurvey.surveyId", question="Why?"),
            _action("createSurvey", "create_survey", title="Feedback"),
        ),
        registry,
    )
    assert result.errors == [
        'Action #1 (addQuestion): Parameter "surveyId" cannot reference action '
        '"createSurvey" that comes after it.'
    ]


def test_self_reference_is_rejected(registry):
    result = verify_workflow(
        _workflow(_action("u", "get_user", userId="u.email")),
        registry,
    )
    assert result.errors == [
        'Action #1 (u): Parameter "userId" cannot reference action "u" that comes after it '
        "(an action cannot reference its own output)."
    ]


def test_reference_to_undeclared_output_field(registry):
    result = verify_workflow(
        _workflow(
            _action("createSurvey", "create_survey", title="Feedback"),
            _action("addQuestion", "add_question", surveyId="createSurvey.id", question="Why?"),
        ),
        registry,
    )
    assert result.errors == [
        'Action #2 (addQuestion): Parameter "surveyId" references field "id" that does not '
        'exist on the output of action "createSurvey". Available fields: success, message, surveyId'
    ]


def test_reference_to_declared_output_field(registry):
    result = verify_workflow(
        _workflow(
            _action("createSurvey", "create_survey", title="Feedback"),
            _action("addQuestion", "add_question", surveyId="createSurvey.surveyId", question="Why?"),
        ),
        registry,
    )
    assert result.valid is True


def test_mapped_reference_only_checks_ordering(registry):
    mapped = _action("mail", "send_email", to="users[*].email", subject="Hi")
    mapped["map"] = True
    result = verify_workflow(
        _workflow(
            _action("users", "get_user", userId=1),
            mapped,
        ),
        registry,
    )
    assert result.valid is True


def test_mapped_reference_to_missing_action(registry):
    result = verify_workflow(
        _workflow(_action("mail", "send_email", to="ghost[*].email", subject="Hi")),
        registry,
    )
    assert result.errors == ['Action #1 (mail): Parameter "to" references non-existent action "ghost".']


# ---------------------------------------------------------------------------
# UI
# ---------------------------------------------------------------------------

def test_user_input_requires_input_components(registry):
    result = verify_workflow(_workflow(_action("u", "get_user", userId="userInput.userId")), registry)
    assert result.errors == ["Workflow has userInput parameters but no UI inputComponents defined"]


def test_each_placeholder_needs_a_component(registry):
    result = verify_workflow(
        _workflow(
            _action("m", "send_email", to="userInput.email", subject="userInput.subject"),
            ui={"inputComponents": [{"key": "userInput.email", "label": "Email", "type": "string"}]},
        ),
        registry,
    )
    assert result.errors == ["Missing UI component for parameter: userInput.subject"]


def test_mapped_placeholder_is_normalized(registry):
    mapped = _action("mail", "send_email", to="userInput.csvData[*].email", subject="Hi")
    mapped["map"] = True
    result = verify_workflow(
        _workflow(
            mapped,
            ui={
                "inputComponents": [
                    {
                        "key": "userInput.csvData",
                        "label": "Recipients",
                        "type": "csv",
                        "expectedColumns": ["email"],
                    }
                ]
            },
        ),
        registry,
    )
    assert result.valid is True


def test_input_component_field_errors(registry):
    result = verify_workflow(
        _workflow(
            _action("u", "get_user", userId=1),
            ui={
                "inputComponents": [
                    {"component": "form", "props": {}},
                    {"key": "userInput.a", "label": "A", "type": "date"},
                    {"key": "userInput.b", "label": "B", "type": "enum", "enumValues": []},
                    {"key": "userInput.c", "label": "C", "type": "array"},
                ]
            },
        ),
        registry,
    )
    assert result.errors == [
        "inputComponent[0]: Using incorrect schema - use {key, label, type} instead of {component, props}",
        "inputComponent[0]: Missing or invalid 'key' field (required string)",
        "inputComponent[0]: Missing or invalid 'label' field (required string)",
        "inputComponent[0]: Missing or invalid 'type' field (required string)",
        "inputComponent[1]: Invalid 'type' \"date\" (expected one of: string, number, boolean, enum, text, csv, array)",
        "inputComponent[2]: 'enum' components require a non-empty 'enumValues' list",
        "inputComponent[3]: 'array' components require a non-empty 'subFields' list",
    ]


def test_nested_sub_fields_are_checked_at_every_depth(registry):
    nested = {
        "key": "userInput.people",
        "label": "People",
        "type": "array",
        "subFields": [
            {"key": "name", "label": "Name", "type": "string"},
            {
                "key": "pets",
                "label": "Pets",
                "type": "array",
                "subFields": [
                    {"key": "kind", "label": "Kind", "type": "enum"},
                    {"key": "age", "type": "number"},
                ],
            },
        ],
    }
    result = verify_workflow(
        _workflow(_action("u", "get_user", userId=1), ui={"inputComponents": [nested]}),
        registry,
    )
    assert result.errors == [
        "inputComponent[0].subFields[1].subFields[0]: 'enum' components require a non-empty 'enumValues' list",
        "inputComponent[0].subFields[1].subFields[1]: Missing or invalid 'label' field (required string)",
    ]


def test_deeply_nested_sub_fields_do_not_recurse(registry):
    component = {"key": "leaf", "label": "Leaf", "type": "string"}
    for depth in range(2000):
        component = {"key": f"k{depth}", "label": "L", "type": "array", "subFields": [component]}
    result = verify_workflow(
        _workflow(_action("u", "get_user", userId=1), ui={"inputComponents": [component]}),
        registry,
    )
    assert result.valid is True


def test_output_component_errors(registry):
    result = verify_workflow(
        _workflow(
            _action("u", "get_user", userId=1),
            ui={
                "outputComponents": [
                    {"actionId": "u", "component": "dataCard", "props": {}},
                    {"actionId": "ghost", "component": "chart", "props": {}},
                    {"component": "table", "props": "wide"},
                ]
            },
        ),
        registry,
    )
    assert result.errors == [
        "outputComponent[1]: actionId 'ghost' does not match any action in the workflow",
        "outputComponent[1]: Invalid 'component' \"chart\" (expected one of: table, dataCard)",
        "outputComponent[2]: Missing or invalid 'actionId' field (required string)",
        "outputComponent[2]: Missing or invalid 'props' field (required object)",
    ]


def test_errors_follow_layer_order(registry):
    result = verify_workflow(
        _workflow(
            _action("a", "get_user", userId="later.email"),
            _action("a", "nope"),
            _action("later", "get_user", userId="x"),
            _action("m", "send_email", to="userInput.to", subject="Hi"),
        ),
        registry,
    )
    assert result.errors == [
        "Duplicate action id: a",
        'Action #2 (a): Unknown tool "nope".',
        'Action #3 (later): Parameter "userId" failed validation: userId: Invalid number',
        'Action #1 (a): Parameter "userId" cannot reference action "later" that comes after it.',
        "Workflow has userInput parameters but no UI inputComponents defined",
    ]


def test_verifier_never_raises_on_junk(registry):
    result = verify_workflow(
        {"type": "workflow", "actions": [None, 3, {"id": 5, "tool": None, "parameters": None}], "ui": "x"},
        registry,
    )
    assert result.valid is False
    assert '"ui" must be an object.' in result.errors


def test_non_string_component_key_is_reported_not_raised(registry):
    result = verify_workflow(
        _workflow(
            _action("m", "send_email", to="userInput.to", subject="Hi"),
            ui={"inputComponents": [{"key": ["userInput.to"], "label": "To", "type": "string"}]},
        ),
        registry,
    )
    assert result.errors == [
        "inputComponent[0]: Missing or invalid 'key' field (required string)",
        "Missing UI component for parameter: userInput.to",
    ]


def test_deeply_nested_array_literal_is_reported_not_raised(registry):
    result = verify_workflow(_workflow(_action("n", "sum_all", numbers="[" * 100000)), registry)
    assert result.errors == ['Action #1 (n): Parameter "numbers" failed validation: numbers: Invalid array']
