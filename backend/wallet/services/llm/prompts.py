import json

SYSTEM_PROMPT = """
You are the parser for a personal expense tracker.
Return valid JSON only with this exact root object:
{
  "expenses": [
    {
      "name": string|null,
      "category": string|null,
      "quantity": number|null,
      "unit": string|null,
      "total": number|null,
      "description": string|null
    }
  ],
  "needs_clarification": boolean,
  "clarification_questions": [string]
}

Rules:
- Never invent data.
- Parse multiple expenses from one message, receipt or voice note.
- total is the amount paid for the line, not the unit price.
- category must be lowercase. Prefer one of known_categories when it clearly matches.
- If quantity is not stated, use 1. If unit is not stated, use "unit".
- If the amount is unclear, set total=null and ask a clarification question.
- description is a short human-readable summary of what was purchased.
"""


def build_user_prompt(
    reference_date: str,
    known_categories: list[str] | None = None,
    text: str | None = None,
) -> str:
    lines = [
        f"reference_date: {reference_date}",
        f"known_categories: {json.dumps(known_categories or [])}",
    ]
    if text is not None:
        lines.append(f"input_text: {text}")
    else:
        lines.append("input: attached media")
    return "\n".join(lines)
