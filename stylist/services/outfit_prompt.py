from __future__ import annotations

from stylist.services.domain import BUDGET_RANGES, OutfitRequest
from stylist.services.vocabulary import BODY_TYPE_FITS

GENDER_LABELS = {"female": "женщина", "male": "мужчина"}

OCCASION_LABELS = {
    "casual": "повседневный выход",
    "business": "работа и деловые встречи",
    "evening": "вечернее мероприятие",
    "sport": "активный отдых",
    "party": "вечеринка",
    "date": "свидание",
}

SEASON_LABELS = {
    "spring": "весна",
    "summer": "лето",
    "autumn": "осень",
    "fall": "осень",
    "winter": "зима",
}

MEASUREMENT_LABELS = {
    "height": "рост",
    "weight": "вес",
    "chest": "обхват груди",
    "waist": "обхват талии",
    "hips": "обхват бедер",
    "shoulders": "ширина плеч",
}

RESPONSE_SCHEMA = """{
  "name": "Название образа",
  "description": "Краткое описание образа",
  "items": [
    {
      "category": "Верх",
      "name": "Название вещи",
      "description": "Описание вещи",
      "colors": ["цвет1", "цвет2"],
      "style": "стиль",
      "fit": "посадка",
      "price": "2000-4000"
    }
  ],
  "styleNotes": "Советы по стилю",
  "colorPalette": ["цвет1", "цвет2", "цвет3"],
  "totalPrice": "10000 ₽",
  "whyItWorks": "Почему этот образ подходит"
}"""


def build_outfit_prompt(request: OutfitRequest) -> str:
    lines = [
        "Ты профессиональный стилист. Подбери один законченный образ для клиента.",
        "",
        "Данные клиента:",
        f"- пол: {GENDER_LABELS.get(request.gender, request.gender)}",
    ]
    if request.body_type:
        fit = BODY_TYPE_FITS.get(request.body_type)
        suffix = f" (рекомендуемая посадка: {fit})" if fit else ""
        lines.append(f"- тип фигуры: {request.body_type}{suffix}")
    for key, value in request.measurements.items():
        lines.append(f"- {MEASUREMENT_LABELS.get(key, key)}: {value:g}")
    if request.style_preferences:
        lines.append(f"- предпочитаемые стили: {', '.join(request.style_preferences)}")
    if request.color_preferences:
        lines.append(f"- любимые цвета: {', '.join(request.color_preferences)}")
    lines.append(f"- повод: {OCCASION_LABELS.get(request.occasion, request.occasion)}")
    lines.append(f"- сезон: {SEASON_LABELS.get(request.season, request.season)}")
    budget = BUDGET_RANGES.get(request.budget)
    if budget:
        lines.append(f"- бюджет на образ: {budget[0]:.0f}-{budget[1]:.0f} ₽")

    lines.extend(
        [
            "",
            "Образ должен содержать 3-5 вещей: верх, низ, обувь и при необходимости аксессуары.",
            "Цены указывай диапазоном в рублях, как на российских маркетплейсах.",
            "Ответь ТОЛЬКО валидным JSON без пояснений, строго в формате:",
            RESPONSE_SCHEMA,
        ]
    )
    return "\n".join(lines)
