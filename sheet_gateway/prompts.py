# sheet_gateway/prompts.py
"""
System prompt for command interpretation.

There is a single template. Platform wording (Excel vs Google Sheets), whether
compound commands may return an `operations` array, and the operation vocabulary
are parameters; the live sheet snapshot is interpolated last so the model grounds
column references in the actual headers.
"""
from __future__ import annotations
from typing import Dict, List, Sequence

from .schemas import SheetContext

VOCABULARY_VERSION = 2

# version -> operations, in prompt order
VOCABULARIES: Dict[int, List[str]] = {
    1: [
        "merge", "sum", "average", "count", "format", "sort", "filter", "insert",
        "delete", "formula", "chart", "conditional_format", "translate", "compress",
    ],
    2: [
        "merge", "sum", "average", "count", "format", "sort", "filter", "insert",
        "delete", "formula", "chart", "conditional_format", "translate", "compress",
        "remove_border", "border_format",
    ],
}

OPERATIONS: List[str] = VOCABULARIES[VOCABULARY_VERSION]

OPERATION_SUMMARIES: Dict[str, str] = {
    "merge": "Merge cells",
    "sum": "Sum values in a range or column",
    "average": "Calculate the average of a range or column",
    "count": "Count cells (all, numbers only, or by condition)",
    "format": "Format cells (bold, italic, font color, background color, number format, font size)",
    "sort": "Sort data by a column",
    "filter": "Filter rows by a condition",
    "insert": "Insert rows or columns",
    "delete": "Delete rows or columns",
    "formula": "Write a custom formula",
    "chart": "Create a chart",
    "conditional_format": "Add conditional formatting",
    "translate": "Translate cell contents to another language",
    "compress": "Remove empty rows inside a column range",
    "remove_border": "Remove cell borders",
    "border_format": "Add or style cell borders",
}

NAMED_COLORS: Dict[str, str] = {
    "파란색": "#0000FF",
    "빨간색": "#FF0000",
    "초록색": "#00FF00",
    "노란색": "#FFFF00",
    "검정색": "#000000",
    "흰색": "#FFFFFF",
    "회색": "#808080",
    "주황색": "#FFA500",
    "보라색": "#800080",
    "분홍색": "#FFC0CB",
}

SORT_DEFAULT_ORDER = "ascending"
CHART_DEFAULT_TYPE = "bar"

_PLATFORM_NAMES = {
    "excel": ("Excel", "Excel operations"),
    "google-sheets": ("Google Sheets", "Google Sheets operations (Apps Script compatible A1 notation)"),
}

_PARAMETER_RULES = """\
Column references:
- A column named by letter (e.g. "D열", "column D") -> {{"column": "D"}}.
- A column named by header text (e.g. "totalToken 열", "Amount column") -> {{"columnName": "<header label>"}}.
  Look the label up in the headers below; when it matches, also include "column": "<its letter>".
- Never guess a raw range for a whole column when a column reference is available.

sum / average:
- Column by header or letter: {{"sumType": "column", "column": "D", "columnName": "Amount"}}
- Explicit range: {{"sourceRange": "A2:A10"}}
- "add a total below the selection": {{"addNewRow": true}}
- Optional "targetCell" for where the result goes.

count:
- "sourceRange", optional "targetCell"
- "countType": "count" (numbers), "counta" (non-empty) or "countif"
- for countif: "condition" (value) and "operator": "contains", "equals", ">", "<", ">=", "<=", "!="

format:
- number format ("숫자 형식") -> {{"numberFormat": "number"}}; currency ("원화/통화 형식") -> {{"numberFormat": "currency"}}
- text color ("파란색으로", "빨간 글자") -> "fontColor"; background ("배경색", "셀 색상") -> "backgroundColor"
- "bold", "italic" (true/false), "fontSize" (number), "range" (e.g. "E101") when a cell is named
- named colors map to hex: {colors}

sort:
- "column" and/or "columnName", "order": "ascending" | "descending". Default order is "{sort_default}".
- "hasHeader": true when the first row is a header row.

filter / conditional_format:
- "column" and/or "columnName"
- "condition": "greater_than", "greater_than_or_equal", "less_than", "less_than_or_equal", "equal_to",
  "not_equal_to", "text_contains", "not_empty", "empty"
- "value": numeric thresholds as numbers ("100 이상" -> condition "greater_than_or_equal", value 100)
- conditional_format also takes "backgroundColor", "fontColor", "bold"

insert / delete:
- "type": "row" | "column", "position" (row number or column letter), "count" (default 1)

merge: {{"range": "A1:C1"}} (defaults to the active range)
formula: {{"targetCell": "E2", "formula": "=SUM(A2:D2)", "fillDown": true|false}}
chart: {{"chartType": "bar" | "line" | "pie" | "column" | "scatter", "sourceRange": "A1:B10", "title": "..."}}. Default chartType is "{chart_default}".
translate: {{"targetLanguage": "English", "sourceRange": "A2:A20", "targetColumn": "B"}}
compress: {{"column": "A", "startRow": 2, "endRow": 100}}
remove_border: {{"range": "A1:D10"}}
border_format: {{"range": "A1:D10", "style": "thin" | "medium" | "thick" | "dashed", "color": "#000000", "sides": ["top","bottom","left","right","inside"]}}"""

_SINGLE_SHAPE = """\
Return ONLY a JSON object in this format (no markdown, no code fences):
{
  "operation": "operation_name",
  "parameters": { ... operation-specific parameters ... }
}"""

_MULTI_SHAPE = """\
Return ONLY JSON (no markdown, no code fences) in exactly one of these two shapes.
Single step:
{
  "operation": "operation_name",
  "parameters": { ... }
}
Several steps (e.g. "D열 합계 구하고 굵게"):
{
  "operations": [
    {"operation": "sum", "parameters": { ... }},
    {"operation": "format", "parameters": { ... }}
  ]
}
Never combine "operation" and "operations" in the same response."""


def describe_headers(context: SheetContext) -> str:
    if not context.headers:
        return "(none)"
    return ", ".join(f'Column {h.column_letter}: "{h.label}"' for h in context.headers)


def describe_vocabulary(operations: Sequence[str]) -> str:
    return "\n".join(
        f"{i}. {op}: {OPERATION_SUMMARIES.get(op, op)}" for i, op in enumerate(operations, start=1)
    )


def build_system_prompt(
    context: SheetContext,
    platform: str = "excel",
    allow_multi: bool = True,
    vocabulary_version: int = VOCABULARY_VERSION,
) -> str:
    product, ops_label = _PLATFORM_NAMES.get(platform, _PLATFORM_NAMES["excel"])
    operations = VOCABULARIES[vocabulary_version]
    colors = ", ".join(f"{name}={hex_}" for name, hex_ in NAMED_COLORS.items())
    rules = _PARAMETER_RULES.format(
        colors=colors,
        sort_default=SORT_DEFAULT_ORDER,
        chart_default=CHART_DEFAULT_TYPE,
    )
    shape = _MULTI_SHAPE if allow_multi else _SINGLE_SHAPE

    rows = context.last_row if context.last_row is not None else "?"
    cols = context.last_column if context.last_column is not None else "?"

    return (
        f"You are a {product} assistant that interprets natural language commands "
        f"and returns JSON instructions for {ops_label}.\n\n"
        f"Available operations (use these names exactly):\n{describe_vocabulary(operations)}\n\n"
        f"{rules}\n\n"
        f"Current sheet context:\n"
        f"- Sheet: {context.sheet_name or '(active sheet)'}\n"
        f"- Active range: {context.address or '(none)'}\n"
        f"- Sheet dimensions: {rows} rows x {cols} columns\n"
        f"- Headers: {describe_headers(context)}\n\n"
        f"{shape}"
    )


def build_user_prompt(command: str) -> str:
    return f"User command: {command}"
