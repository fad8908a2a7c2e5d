from __future__ import annotations

import json
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PromptEnvelope:
    system_text: str
    user_text: str

    def to_messages(self) -> list[dict]:
        return [
            {"role": "system", "content": self.system_text},
            {"role": "user", "content": self.user_text},
        ]


def build_system_prompt(current_year: int) -> str:
    return f"""
Ты создаешь правдоподобные сценарии альтернативной истории на русском языке.
Нельзя писать markdown, пояснения, префиксы или блоки кода.
Верни только корректный JSON-объект с полями:
- "narrative": строка 220-420 слов.
- "timeline": массив из ровно 4 объектов:
  {{"year": number, "title": string, "details": string}}
  Годы должны идти по возрастанию и быть конкретными числами.
  Последняя точка timeline должна быть про текущий год {current_year}.
- "branches": массив из 2-3 коротких вариантов продолжения (действие/развилка).
- "image_prompts": массив из 1-2 подробных промптов для иллюстраций альтернативного мира (без текста на изображении).

Ограничения:
- Это гипотеза, а не факт.
- Строгая причинно-следственная логика.
- Без мистики и фантастики.
""".strip()


def build_user_prompt(*, event: str, branch: str, context: list[dict], current_year: int) -> str:
    serialized_context = json.dumps(context, ensure_ascii=False, indent=2) if context else "[]"

    if branch:
        return f"""
Исходное событие: {event}
Выбранная развилка: {branch}
Текущий год: {current_year}
Краткий контекст прошлых шагов:
{serialized_context}

Продолжи именно эту альтернативную ветку.
""".strip()

    return f"""
Исходное событие: {event}
Текущий год: {current_year}
Контекст прошлых шагов (если пусто, это первый шаг):
{serialized_context}

Построй первый шаг альтернативной истории.
""".strip()


def build_scenario_prompt(*, event: str, branch: str, context: list[dict], current_year: int) -> PromptEnvelope:
    return PromptEnvelope(
        system_text=build_system_prompt(current_year),
        user_text=build_user_prompt(event=event, branch=branch, context=context, current_year=current_year),
    )
