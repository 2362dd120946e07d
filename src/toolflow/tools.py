# tools.py
# Built-in utility functions, registered on demand by category.
#
# All of them are hidden: the planner can call them, the UI listing does not
# show them. Most return {result, operation}; system functions add a
# timestamp and filter returns the kept items. Failures raise and surface
# through FunctionRegistry.invoke as its generic error string.

import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from toolflow.registry import FunctionDescriptor, FunctionRegistry
from toolflow.schema import ArrayField, ObjectField, PrimitiveField


def _number(name: str, description: str, required: bool = True) -> PrimitiveField:
    return PrimitiveField(name=name, kind="number", description=description, required=required)


def _text(name: str, description: str, required: bool = True) -> PrimitiveField:
    return PrimitiveField(name=name, kind="string", description=description, required=required)


def _numbers(description: str) -> ArrayField:
    return ArrayField(
        name="numbers",
        description=description,
        item_type=_number("number", "a number"),
    )


def _result_type(name: str, kind: str, description: str) -> ObjectField:
    return (
        ObjectField(name=name, description=description)
        .field(PrimitiveField(name="result", kind=kind, description="the operation result"))
        .field(_text("operation", "the operation that was performed"))
    )


def _builtin(name: str, description: str) -> FunctionDescriptor:
    return FunctionDescriptor(name, description, hidden=True)


def _format(values: list[Any]) -> str:
    return ", ".join(str(v) for v in values)


# ---------------------------------------------------------------------------
# Math
# ---------------------------------------------------------------------------

MathResult = _result_type("MathResult", "number", "result of a mathematical operation")


def _add(numbers: list[float]) -> dict:
    return {"result": sum(numbers), "operation": f"add({_format(numbers)})"}


def _subtract(numbers: list[float]) -> dict:
    if len(numbers) < 2:
        raise ValueError("At least 2 numbers are required for subtraction")
    result = numbers[0]
    for n in numbers[1:]:
        result -= n
    return {"result": result, "operation": f"subtract({_format(numbers)})"}


def _multiply(numbers: list[float]) -> dict:
    result = 1
    for n in numbers:
        result *= n
    return {"result": result, "operation": f"multiply({_format(numbers)})"}


def _divide(numbers: list[float]) -> dict:
    if len(numbers) < 2:
        raise ValueError("At least 2 numbers are required for division")
    result = numbers[0]
    for n in numbers[1:]:
        if n == 0:
            raise ZeroDivisionError("Cannot divide by zero")
        result /= n
    return {"result": result, "operation": f"divide({_format(numbers)})"}


def _round(number: float, decimals: float | None = None) -> dict:
    places = int(decimals or 0)
    return {"result": round(number, places), "operation": f"round({number}, {places})"}


# ---------------------------------------------------------------------------
# Text and data
# ---------------------------------------------------------------------------

TextResult = _result_type("TextResult", "string", "result of a text operation")


def _extract(text: str, start: float, end: float | None = None) -> dict:
    stop = None if end is None else int(end)
    return {"result": text[int(start):stop], "operation": f"extract({text!r}, {start}, {end})"}


def _replace(text: str, search: str, replacement: str) -> dict:
    return {
        "result": text.replace(search, replacement),
        "operation": f"replace({text!r}, {search!r}, {replacement!r})",
    }


def _split(text: str, delimiter: str | None = None) -> dict:
    sep = "," if delimiter is None else delimiter
    return {"result": text.split(sep), "operation": f"split({text!r}, {sep!r})"}


def _join(items: list[str], delimiter: str | None = None) -> dict:
    sep = "," if delimiter is None else delimiter
    return {"result": sep.join(items), "operation": f"join({len(items)} items, {sep!r})"}


def _as_float(text: str) -> float:
    try:
        return float(text.strip() or 0)
    except ValueError:
        return math.nan


def _filter(items: list[str], condition: str) -> list[str]:
    def keep(item: str) -> bool:
        if ">" in condition:
            return _as_float(item) > _as_float(condition.split(">", 1)[1])
        if "<" in condition:
            return _as_float(item) < _as_float(condition.split("<", 1)[1])
        if "contains" in condition:
            parts = condition.split('"')
            return (parts[1] if len(parts) > 1 else "") in item
        return True

    return [item for item in items if keep(item)]


def _to_uppercase(text: str) -> dict:
    return {"result": text.upper(), "operation": f"to_uppercase({text!r})"}


def _to_lowercase(text: str) -> dict:
    return {"result": text.lower(), "operation": f"to_lowercase({text!r})"}


def _trim(text: str) -> dict:
    return {"result": text.strip(), "operation": f"trim({text!r})"}


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

DateResult = _result_type("DateResult", "string", "result of a date operation")


def _iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_date(text: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValueError("Invalid date format") from None
    # Naive dates are read as UTC.
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_date(date: str, fmt: str | None = None) -> dict:
    style = fmt or "ISO"
    moment = _parse_date(date)
    if style.lower() == "yyyy-mm-dd":
        result = moment.strftime("%Y-%m-%d")
    elif style.lower() == "mm/dd/yyyy":
        result = moment.strftime("%m/%d/%Y")
    else:
        result = _iso(moment)
    return {"result": result, "operation": f"format_date({date!r}, {style!r})"}


def _add_days(date: str, days: float) -> dict:
    moment = _parse_date(date) + timedelta(days=days)
    return {"result": _iso(moment), "operation": f"add_days({date!r}, {days})"}


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------

SystemResult = (
    _result_type("SystemResult", "string", "result of a system operation")
    .field(_text("timestamp", "when the operation was performed"))
)


def _get_current_time() -> dict:
    now = _iso(datetime.now(timezone.utc))
    return {"result": now, "operation": "get_current_time", "timestamp": now}


def _generate_uuid() -> dict:
    return {
        "result": str(uuid.uuid4()),
        "operation": "generate_uuid",
        "timestamp": _iso(datetime.now(timezone.utc)),
    }


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


def _math_functions() -> list[FunctionDescriptor]:
    return [
        _builtin("add", "add two or more numbers together")
        .args(_numbers("array of numbers to add together"))
        .returns(MathResult)
        .implement(_add),
        _builtin("subtract", "subtract numbers from left to right")
        .args(_numbers("array of numbers to subtract (first number minus the rest)"))
        .returns(MathResult)
        .implement(_subtract),
        _builtin("multiply", "multiply two or more numbers together")
        .args(_numbers("array of numbers to multiply together"))
        .returns(MathResult)
        .implement(_multiply),
        _builtin("divide", "divide numbers from left to right")
        .args(_numbers("array of numbers to divide (first number divided by the rest)"))
        .returns(MathResult)
        .implement(_divide),
        _builtin("round", "round a number to the nearest integer or specified decimal places")
        .args(
            _number("number", "the number to round"),
            _number("decimals", "number of decimal places (default: 0)", required=False),
        )
        .returns(MathResult)
        .implement(_round),
    ]


def _data_functions() -> list[FunctionDescriptor]:
    split_result = (
        ObjectField(name="SplitResult", description="result of splitting text")
        .field(
            ArrayField(
                name="result",
                description="the parts",
                item_type=_text("part", "one part"),
            )
        )
        .field(_text("operation", "the operation that was performed"))
    )
    return [
        _builtin("extract", "extract a substring from text using start and end positions")
        .args(
            _text("text", "the text to extract from"),
            _number("start", "start position (inclusive)"),
            _number("end", "end position (exclusive)", required=False),
        )
        .returns(TextResult)
        .implement(_extract),
        _builtin("replace", "replace text in a string")
        .args(
            _text("text", "the text to search"),
            _text("search", "the text to find"),
            _text("replacement", "the replacement text"),
        )
        .returns(TextResult)
        .implement(_replace),
        _builtin("split", "split a string into an array")
        .args(
            _text("text", "the text to split"),
            _text("delimiter", "the delimiter (default: ',')", required=False),
        )
        .returns(split_result)
        .implement(_split),
        _builtin("join", "join an array of strings into a single string")
        .args(
            ArrayField(name="items", description="strings to join", item_type=_text("item", "a string")),
            _text("delimiter", "the delimiter (default: ',')", required=False),
        )
        .returns(TextResult)
        .implement(_join),
        _builtin("filter", "filter an array based on a condition")
        .args(
            ArrayField(name="array", description="array to filter", item_type=_text("item", "a value")),
            _text("condition", "condition to filter by (e.g., '> 5', 'contains \"text\"', 'is not null')"),
        )
        .implement(_filter),
    ]


def _datetime_functions() -> list[FunctionDescriptor]:
    return [
        _builtin("format_date", "format a date string")
        .args(
            _text("date", "date string or timestamp"),
            _text("format", "format string (e.g., 'YYYY-MM-DD', 'MM/DD/YYYY', 'ISO')", required=False),
        )
        .returns(DateResult)
        .implement(_format_date),
        _builtin("add_days", "add or subtract days from a date")
        .args(
            _text("date", "date string or timestamp"),
            _number("days", "number of days to add (negative to subtract)"),
        )
        .returns(DateResult)
        .implement(_add_days),
    ]


def _text_functions() -> list[FunctionDescriptor]:
    return [
        _builtin("to_uppercase", "convert text to uppercase")
        .args(_text("text", "text to convert"))
        .returns(TextResult)
        .implement(_to_uppercase),
        _builtin("to_lowercase", "convert text to lowercase")
        .args(_text("text", "text to convert"))
        .returns(TextResult)
        .implement(_to_lowercase),
        _builtin("trim", "remove whitespace from beginning and end of text")
        .args(_text("text", "text to trim"))
        .returns(TextResult)
        .implement(_trim),
    ]


def _system_functions() -> list[FunctionDescriptor]:
    return [
        _builtin("get_current_time", "get the current date and time")
        .returns(SystemResult)
        .implement(_get_current_time),
        _builtin("generate_uuid", "generate a random UUID")
        .returns(SystemResult)
        .implement(_generate_uuid),
    ]


CATEGORIES = {
    "math": _math_functions,
    "data": _data_functions,
    "datetime": _datetime_functions,
    "text": _text_functions,
    "system": _system_functions,
}


def register_default_functions(
    registry: FunctionRegistry, categories: list[str] | None = None
) -> list[str]:
    """
    Register built-in functions into `registry`.

    With no categories every category is loaded. Unknown category names raise
    ValueError. Returns the registered function names.
    """
    selected = list(CATEGORIES) if not categories else categories
    unknown = [c for c in selected if c not in CATEGORIES]
    if unknown:
        raise ValueError(
            f"Unknown function categories: {', '.join(unknown)}. "
            f"Available: {', '.join(CATEGORIES)}"
        )

    names: list[str] = []
    for category in selected:
        for descriptor in CATEGORIES[category]():
            registry.register(descriptor)
            names.append(descriptor.name)
    return names
