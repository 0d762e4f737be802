"""Localized prompts and user-facing messages (English and Russian)."""

from docreport.models import PartPlan

SUPPORTED_LANGUAGES = ("en", "ru")

EN_SYSTEM_PROMPT = "\n".join(
    [
        "You are a document-analysis assistant with access to retrieved fragments and full pages.",
        "CRITICAL: Write ONLY about the current part's topic. DO NOT mention other topics or parts.",
        "DO NOT create your own headings - use only the provided part heading.",
        "DO NOT write content that belongs to other parts of the report.",
        "Answer strictly using the provided context and ONLY within the scope of the current part's topic.",
        "If the context lacks information specifically about this part's topic - state this explicitly.",
        "Do not invent facts and do not cite materials that are not in the context.",
        "Always cite sources in the format [File name, page X] for full pages and [File name, section X] for fragments.",
        "Respond in English only.",
    ]
)

RU_SYSTEM_PROMPT = "\n".join(
    [
        "Вы - помощник по анализу документов с доступом к извлеченным фрагментам и полным страницам.",
        "КРИТИЧЕСКИ ВАЖНО: пишите ТОЛЬКО по теме текущей части. НЕ упоминайте другие темы или части.",
        "НЕ создавайте собственные заголовки - используйте только заданный заголовок части.",
        "НЕ пишите содержимое, которое относится к другим частям отчета.",
        "Отвечайте строго в рамках предоставленного контекста и только в рамках темы текущей части.",
        "Если в контексте нет информации именно по теме этой части - так и укажите.",
        "Не выдумывайте факты и не цитируйте материалы, которых нет в контексте.",
        "Всегда указывайте источники в формате [Имя файла, страница X] для полных страниц и [Имя файла, раздел X] для фрагментов.",
        "Отвечайте только на русском языке.",
    ]
)

MESSAGES = {
    "empty_query": {
        "en": "The query is empty. Please provide a question.",
        "ru": "Запрос пуст. Пожалуйста, сформулируйте вопрос.",
    },
    "length_infeasible": {
        "en": "The requested length exceeds what can be generated even when split into parts. Please reduce the requirements.",
        "ru": "Запрошенный объем превышает то, что можно сгенерировать даже при разбиении на части. Уменьшите требования.",
    },
    "no_context": {
        "en": "No relevant context was found for this section. The uploaded documents may not contain matching information.",
        "ru": "Не удалось подобрать контекст для этой части. Возможно, в загруженных документах нет подходящих материалов.",
    },
    "empty_answer": {
        "en": "The model did not return a meaningful answer. Please reformulate your request.",
        "ru": "Модель не вернула содержательный ответ. Попробуйте переформулировать запрос.",
    },
    "truncated": {
        "en": "\n\n[System note: the answer was truncated due to the token limit.]",
        "ru": "\n\n[Системное примечание: ответ был обрезан по лимиту токенов.]",
    },
}


def normalize_language(language: str | None) -> str:
    language = (language or "").lower()
    return language if language in SUPPORTED_LANGUAGES else "en"


def message(key: str, language: str) -> str:
    return MESSAGES[key][normalize_language(language)]


def system_prompt(language: str) -> str:
    return RU_SYSTEM_PROMPT if normalize_language(language) == "ru" else EN_SYSTEM_PROMPT


def build_part_prompt(question: str, part: PartPlan, context: str, language: str) -> str:
    """User prompt for one part: context, question, part brief, requirements."""
    focus = ", ".join(part.keywords)
    if normalize_language(language) == "ru":
        lines = [
            "Контекст (используйте только эти материалы):",
            context,
            "Основной исследовательский вопрос:",
            question,
            "Текущая часть исследования:",
            f"Название: {part.title}",
            f"Целевой объем: не менее {part.tokens} токенов",
            f"Ключевые темы: {focus}",
            "Требования к ответу:",
            "- Пишите развернутыми абзацами, без списков.",
            "- Приводите факты и формулировки только из контекста, указывая источники в формате [Имя файла, раздел X], [Имя файла, страница X].",
            "- Свяжите выводы этой части с общей темой исследования.",
            "- Не забегайте в другие части; сосредоточьтесь на текущем разделе.",
        ]
    else:
        lines = [
            "Context (use only the following materials):",
            context,
            "Primary research question:",
            question,
            "Current section of the report:",
            f"Title: {part.title}",
            f"Target length: at least {part.tokens} tokens",
            f"Focus areas: {focus}",
            "Response requirements:",
            "- Structure your response with numbered subsections and rich paragraphs.",
            "- Use evidence from the context and cite sources in the format [File name, section X] or [File name, page X].",
            "- Connect the findings of this section to the overall research aim.",
            "- Do not summarise future sections; stay within the current part.",
        ]
    return "\n\n".join(lines)
