from __future__ import annotations

import json
import random

import pytest

from stylist.core.errors import ParseError
from stylist.services.domain import OutfitRequest
from stylist.services.fallback import FallbackLadder
from stylist.services.outfit_parser import (
    extract_json_candidate,
    is_truncated_json,
    load_repaired,
    parse_outfit_response,
    repair_json_text,
)

VALID_FENCED = """Вот ваш образ:
```json
{"name": "Летний образ", "description": "Легкий комплект", "items": [{"category": "Верх", "name": "Льняная рубашка", "description": "Рубашка из льна", "colors": ["белый"], "style": "casual", "fit": "свободный", "price": "2000-4000"}], "styleNotes": "Светлые ткани", "colorPalette": ["белый", "бежевый"], "totalPrice": "3000 ₽"}
```
Надеюсь, понравится!"""

SINGLE_QUOTED_ARRAYS = (
    '{"name": "Образ", "items": [{"category": "Низ", "name": "Джинсы", '
    "\"colors\": ['синий', \"голубой\"], \"price\": \"3000-5000\"},], "
    "\"colorPalette\": ['синий', 'белый']}"
)

BARE_KEYS_AND_DOUBLED_QUOTES = (
    '{name: ""Вечерний образ"", items: [{category: "Платье", name: "Платье миди", '
    'colors: ["черный"], price: "5000-9000"}]}'
)

TRUNCATED = (
    'Конечно! {"name": "Осенний образ", "items": [{"category": "Верх", "name": "Свитер", '
    '"colors": ["бежевый"], "price": "3000-5000"}, {"category": "Низ", "name": "Брю'
)

UNESCAPED_INNER_QUOTES = (
    '{"name": "Образ "Город"", "items": [{"category": "Верх", "name": "Рубашка "Оксфорд"", '
    '"colors": ["голубой"], "price": "2500-4000"}, {"category": "Обувь", "name": "Лоферы", '
    '"colors": ["черный"], "price": "4000-7000"}], "styleNotes": "Классика"}'
)

BALANCED_DEFECT_IN_LAST_ITEM = (
    '{"name": "Городской образ", "items": ['
    '{"category": "Верх", "name": "Рубашка", "colors": ["белый"], "price": "2000-4000"}, '
    '{"category": "Низ", "name": "Брюки", "colors": ["черный"], "price": "3000-5000"}, '
    '{"category": "Аксессуары", "name": "Сумка "Город"", "colors": ["черный"], "price": "3000-6000"}], '
    '"styleNotes": "Классика"}'
)

MALFORMED_FIXTURES = [
    VALID_FENCED,
    SINGLE_QUOTED_ARRAYS,
    BARE_KEYS_AND_DOUBLED_QUOTES,
    TRUNCATED,
    UNESCAPED_INNER_QUOTES,
    BALANCED_DEFECT_IN_LAST_ITEM,
    "Извините, я не могу помочь с этим запросом.",
    '{"name": "Пустой", "items": []}',
    "{{{{",
    "}",
    "",
    "```json\n",
    '{"items": "не список"}',
    '[{"category": "Верх", "name": "Футболка"}]',
]


@pytest.fixture()
def ladder() -> FallbackLadder:
    return FallbackLadder(rng=random.Random(3), clock=lambda: 1_700_000_000_000)


def _parse(text: str, request: OutfitRequest, ladder: FallbackLadder):
    return parse_outfit_response(
        text,
        request,
        fallback=ladder.synthetic_outfit,
        rng=random.Random(1),
        epoch_ms=1_700_000_000_000,
    )


@pytest.mark.parametrize("text", MALFORMED_FIXTURES)
def test_parser_always_returns_outfit_with_items(text: str, outfit_request: OutfitRequest, ladder: FallbackLadder):
    outfit = _parse(text, outfit_request, ladder)

    assert len(outfit.items) >= 1
    assert 0.0 < outfit.confidence <= 0.95
    assert outfit.name
    assert outfit.id.startswith("outfit_")


def test_fenced_valid_json_is_a_full_parse(outfit_request: OutfitRequest, ladder: FallbackLadder):
    outfit = _parse(VALID_FENCED, outfit_request, ladder)

    assert outfit.source == "model"
    assert outfit.confidence == 0.95
    assert outfit.name == "Летний образ"
    assert outfit.items[0].name == "Льняная рубашка"
    assert outfit.items[0].colors == ("белый",)
    assert outfit.color_palette == ("белый", "бежевый")
    assert outfit.total_price == "3000 ₽"
    assert outfit.occasion == outfit_request.occasion


def test_single_quoted_arrays_and_trailing_comma_are_repaired(outfit_request: OutfitRequest, ladder: FallbackLadder):
    outfit = _parse(SINGLE_QUOTED_ARRAYS, outfit_request, ladder)

    assert outfit.source == "repaired"
    assert outfit.confidence == 0.9
    assert outfit.items[0].colors == ("синий", "голубой")
    assert outfit.color_palette == ("синий", "белый")


def test_bare_keys_and_doubled_quotes_are_repaired(outfit_request: OutfitRequest, ladder: FallbackLadder):
    outfit = _parse(BARE_KEYS_AND_DOUBLED_QUOTES, outfit_request, ladder)

    assert outfit.source == "repaired"
    assert outfit.name == "Вечерний образ"
    assert outfit.items[0].category == "Платье"


def test_truncated_answer_keeps_complete_items(outfit_request: OutfitRequest, ladder: FallbackLadder):
    outfit = _parse(TRUNCATED, outfit_request, ladder)

    assert outfit.source == "repaired"
    assert [item.name for item in outfit.items] == ["Свитер"]


def test_field_extraction_when_repairs_fail(outfit_request: OutfitRequest, ladder: FallbackLadder):
    outfit = _parse(UNESCAPED_INNER_QUOTES, outfit_request, ladder)

    assert outfit.source == "extracted"
    assert outfit.confidence == 0.85
    assert [item.category for item in outfit.items] == ["Верх", "Обувь"]
    assert outfit.items[1].name == "Лоферы"
    assert outfit.items[1].price == "4000-7000"
    assert outfit.style_notes == "Классика"


def test_prose_without_json_uses_synthetic_outfit(outfit_request: OutfitRequest, ladder: FallbackLadder):
    outfit = _parse("Извините, я не могу помочь с этим запросом.", outfit_request, ladder)

    assert outfit.source in {"template", "generic"}
    assert outfit.confidence == 0.7


def test_missing_fields_get_placeholders(outfit_request: OutfitRequest, ladder: FallbackLadder):
    outfit = _parse('{"items": [{"name": "Кардиган"}]}', outfit_request, ladder)

    item = outfit.items[0]
    assert item.category == "clothing"
    assert item.price == "1000-3000"
    assert item.colors == ("серый",)
    assert outfit.name == "Персональный образ"
    assert outfit.color_palette == ("белый", "голубой")
    assert outfit.total_price == "2000 ₽"


def test_extract_json_candidate_prefers_fenced_block():
    text = 'intro {"ignored": true}\n```json\n{"a": 1}\n```'

    assert extract_json_candidate(text) == '{"a": 1}'
    assert extract_json_candidate("no braces here") is None
    assert extract_json_candidate('prefix {"a": [1, 2') == '{"a": [1, 2'


def test_repair_json_text_normalizes_color_arrays():
    repaired = repair_json_text("{\"colors\": ['красный', \"синий' ]}")

    assert json.loads(repaired) == {"colors": ["красный", "синий"]}


def test_load_repaired_closes_open_string_and_brackets():
    data = load_repaired('{"items": [{"name": "Плать')

    assert data == {"items": [{"name": "Плать"}]}


def test_balanced_answer_with_broken_last_item_keeps_every_item(outfit_request: OutfitRequest, ladder: FallbackLadder):
    outfit = _parse(BALANCED_DEFECT_IN_LAST_ITEM, outfit_request, ladder)

    assert outfit.source == "extracted"
    assert outfit.confidence == 0.85
    assert [item.name for item in outfit.items] == ["Рубашка", "Брюки", "Сумка"]
    assert outfit.items[2].price == "3000-6000"
    assert outfit.name == "Городской образ"
    assert outfit.style_notes == "Классика"


def test_load_repaired_does_not_cut_balanced_documents():
    with pytest.raises(ParseError):
        load_repaired(BALANCED_DEFECT_IN_LAST_ITEM)


def test_is_truncated_json_tracks_open_brackets_and_strings():
    assert is_truncated_json(TRUNCATED)
    assert is_truncated_json('{"name": "Плать')
    assert not is_truncated_json(BALANCED_DEFECT_IN_LAST_ITEM)
    assert not is_truncated_json('{"a": "}{"}')
