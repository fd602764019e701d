import json

from loguru import logger
from openai import OpenAI
from pydantic import ValidationError

from rupeesplit.llm.prompts import SYSTEM_PROMPT
from rupeesplit.models.schemas import ParsedExpense, Participant


class ExpenseParser:
    def __init__(self, api_key: str, model: str, client: OpenAI | None = None):
        self.client = client or OpenAI(
            base_url="https://openrouter.ai/api/v1",
            api_key=api_key,
        )
        self.model = model

    def parse(self, user_message: str) -> ParsedExpense | None:
        """Turn free text into a candidate expense, or None if nothing usable came back."""
        if not user_message.strip():
            return None

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_message},
        ]

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0.1,
            )

            raw = (response.choices[0].message.content or "").strip()
            logger.debug("LLM raw response: {}", raw)
            if not raw:
                return None

            # Strip markdown code fences if present
            if raw.startswith("```"):
                lines = raw.split("\n")
                lines = [l for l in lines if not l.startswith("```")]
                raw = "\n".join(lines)

            parsed_json = json.loads(raw)
            return ParsedExpense.model_validate(parsed_json)

        except json.JSONDecodeError as e:
            logger.error("Failed to parse LLM response as JSON: {}", e)
            return None
        except ValidationError as e:
            logger.error("LLM response did not describe an expense: {}", e)
            return None
        except Exception as e:
            logger.error("LLM request failed: {}", e)
            return None


def match_participants(names: list[str], participants: list[Participant]) -> list[str]:
    """Ids of participants whose name contains any of ``names``, case-insensitively."""
    fragments = [n.lower() for n in names if n.strip()]
    return [
        p.id
        for p in participants
        if any(fragment in p.name.lower() for fragment in fragments)
    ]


def suggest_split(
    parsed: ParsedExpense | None, participants: list[Participant], current_user_id: str
) -> list[str]:
    """Pre-select split participants: the user plus anyone named, else everyone."""
    everyone = [p.id for p in participants]
    if parsed is None or not parsed.mentioned_names:
        return everyone

    matched = match_participants(parsed.mentioned_names, participants)
    if not matched:
        return everyone
    return list(dict.fromkeys([current_user_id, *matched]))
