from __future__ import annotations

import re

# Stems match at word starts; a trailing \b marks a whole word. The earliest stem in
# the text wins, table order breaks ties.
CATEGORY_STEMS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("outerwear", ("outerwear", "верхняя одежда", "пальто", "куртк", "пиджак", "жакет", "тренч", "плащ", "пуховик", "coat", "jacket", "blazer")),
    ("dress", ("dress", "плать", "сарафан")),
    ("footwear", ("footwear", "обув", "кроссов", "кед", "туфл", "ботин", "сапог", "лофер", "балетк", "босонож", "мокасин", "shoe", "sneaker", "boot", "loafer")),
    ("accessory", ("accessor", "аксессуар", "сумк", "ремен", "ремн", "пояс", "очки", "часы", "шарф", "шапк", "платок", "украшен", "серьг", "bag", "handbag", "belt", "scarf", "watch")),
    ("bottom", ("bottom", r"низ\b", "брюк", r"джинс(?!ов)", "юбк", "шорт", "чинос", "легинс", "pants", "jeans", "skirt", "trousers", "shorts")),
    ("top", ("top", r"верх\b", "рубаш", "блуз", "футбол", r"топ(?:ы|ик)?\b", "свитер", "джемпер", "кардиган", "худи", "свитшот", "лонгслив", r"поло\b", "водолазк", "shirt", "blouse", r"tee\b", "sweater", "hoodie")),
)

_CATEGORY_PATTERNS = tuple(
    (canonical, re.compile(r"\b(?:" + "|".join(stems) + ")")) for canonical, stems in CATEGORY_STEMS
)

CATEGORY_SEARCH_TERMS = {
    "outerwear": "верхняя одежда",
    "dress": "платье",
    "footwear": "обувь",
    "accessory": "аксессуар",
}

GENDER_KEYWORDS = {"female": "женская", "male": "мужская"}

OCCASION_KEYWORDS = {
    "casual": "повседневная",
    "business": "деловая",
    "evening": "вечерняя",
    "sport": "спортивная",
    "party": "вечерняя",
    "date": "вечерняя",
}

STYLE_KEYWORDS = {
    "casual": "повседневный",
    "business": "деловой",
    "classic": "классический",
    "elegant": "элегантный",
    "sport": "спортивный",
    "sporty": "спортивный",
    "romantic": "романтичный",
    "minimalist": "минимализм",
    "boho": "бохо",
}

SEASON_KEYWORDS = {
    "spring": "весенняя",
    "summer": "летняя",
    "autumn": "осенняя",
    "fall": "осенняя",
    "winter": "зимняя",
}

BODY_TYPE_FITS = {
    "apple": "свободный в области талии",
    "pear": "акцент на верхнюю часть",
    "hourglass": "приталенный",
    "rectangle": "прямой крой",
    "inverted-triangle": "акцент на нижнюю часть",
}


def normalize_text(value: str | None) -> str:
    return (value or "").strip().lower().replace("ё", "е")


def canonical_category(value: str | None) -> str:
    """Map a free-text category or product name onto top/bottom/footwear/accessory/outerwear/dress."""
    text = normalize_text(value)
    if not text:
        return ""
    best, best_pos = "", len(text) + 1
    for canonical, pattern in _CATEGORY_PATTERNS:
        match = pattern.search(text)
        if match is not None and match.start() < best_pos:
            best, best_pos = canonical, match.start()
    return best


def detect_gender(text: str | None) -> str | None:
    lowered = normalize_text(text)
    if "женск" in lowered or "female" in lowered:
        return "female"
    if "мужск" in lowered or "male" in lowered:
        return "male"
    return None
