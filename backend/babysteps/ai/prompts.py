"""Prompt text for the split advisor and the coaching chat."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

SPLIT_GUIDANCE = """
Investment Strategy Guidelines:

Equity mutual funds suit:
- Long-term wealth creation (5-15 years)
- Retirement corpus building
- Higher education or a house down payment 5+ years away
- Age: 20-40 years
- Risk tolerance: medium to high
- Time horizon: at least 5-10 years

Debt mutual funds suit:
- Short to medium-term savings (1-5 years)
- Emergency fund or contingency planning
- Regular income or capital protection
- Age: 35+ years
- Risk tolerance: low to moderate
- Time horizon: 6 months to 5 years
""".strip()

SPLIT_RESPONSE_FORMAT = """
Respond with ONLY a JSON object in this exact format (no other text):
{
  "percentage_equity": <number between 0 and 100>,
  "percentage_debt": <number between 0 and 100>
}

The percentages must sum to exactly 100.
""".strip()

CHAT_SYSTEM_PROMPT_BASE = """
You are a helpful financial assistant and teacher. Your role is to:
1. Explain financial concepts in simple, easy-to-understand terms
2. Provide thoughtful advice about spending decisions
3. Help users understand their financial situation better
4. Be supportive and educational, not preachy

When answering questions about purchases or expenditures, consider:
- The user's financial goals and current situation
- Whether the purchase aligns with their budget
- Long-term financial implications
- Pros and cons when appropriate

Keep responses conversational, helpful, and educational.
""".strip()


def _format_money(value: Any) -> str:
    return f"${Decimal(str(value)):,.2f}"


def build_split_prompt(goal: dict[str, Any], questionnaire_answers: Any | None) -> str:
    """Embed goal attributes and the opaque questionnaire into the split request."""
    if questionnaire_answers:
        questionnaire_context = (
            "User Questionnaire Answers:\n"
            f"{json.dumps(questionnaire_answers, indent=2, default=str)}"
        )
    else:
        questionnaire_context = "No questionnaire answers provided"

    description = (goal.get("description") or "").strip() or "No description provided"

    return (
        "You are a financial advisor helping determine the optimal equity/debt split "
        "for a user's investment goal.\n\n"
        f"{questionnaire_context}\n\n"
        "Goal Details:\n"
        f"- Name: {goal['name']}\n"
        f"- Description: {description}\n"
        f"- Target Amount: {_format_money(goal['target_amount'])}\n\n"
        f"{SPLIT_GUIDANCE}\n\n"
        "Based on the user's questionnaire answers and goal details, determine the "
        "optimal equity/debt percentage split.\n\n"
        f"{SPLIT_RESPONSE_FORMAT}"
    )


def build_chat_system_prompt(
    categories: list[dict[str, Any]],
    progress: dict[str, Any] | None,
) -> str:
    """Attach the caller's budget and baby-step position to the base prompt."""
    if categories:
        budget_line = "Budget Categories: " + ", ".join(
            f"{row['name']} ({_format_money(row['size'])})" for row in categories
        )
    else:
        budget_line = "No budget categories set yet"

    if progress:
        progress_line = f"Current Financial Step: {progress['current_step']}"
    else:
        progress_line = "No progress tracked yet"

    return (
        f"{CHAT_SYSTEM_PROMPT_BASE}\n\n"
        "User Financial Context:\n"
        f"{budget_line}\n"
        f"{progress_line}\n\n"
        "Based on the user's financial context above, provide personalized advice."
    )
