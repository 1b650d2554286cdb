from __future__ import annotations

from dataclasses import dataclass

from stylist.services.domain import OutfitItemSpec


@dataclass(frozen=True, slots=True)
class OutfitTemplate:
    id: str
    name: str
    description: str
    gender: str
    body_types: tuple[str, ...]
    styles: tuple[str, ...]
    occasions: tuple[str, ...]
    seasons: tuple[str, ...]
    items: tuple[OutfitItemSpec, ...]
    total_price: str
    style_notes: str
    color_palette: tuple[str, ...]


def _item(category: str, name: str, description: str, colors: tuple[str, ...], style: str, fit: str, price: str) -> OutfitItemSpec:
    return OutfitItemSpec(
        category=category,
        name=name,
        description=description,
        colors=colors,
        style=style,
        fit=fit,
        price=price,
    )


TEMPLATES: tuple[OutfitTemplate, ...] = (
    OutfitTemplate(
        id="female_casual_spring",
        name="Весенний повседневный образ",
        description="Легкий и свежий образ для прогулок и встреч с друзьями",
        gender="female",
        body_types=("hourglass", "rectangle", "pear", "apple", "inverted-triangle"),
        styles=("casual", "minimalist", "romantic"),
        occasions=("casual",),
        seasons=("spring", "summer"),
        items=(
            _item("Верх", "Блузка из хлопка", "Легкая блузка свободного кроя", ("белый", "голубой"), "casual", "свободный", "2000-3500"),
            _item("Низ", "Джинсы mom fit", "Джинсы с высокой посадкой", ("голубой",), "casual", "высокая посадка", "3000-5000"),
            _item("Обувь", "Белые кеды", "Кожаные кеды на плоской подошве", ("белый",), "casual", "стандартный", "3500-6000"),
            _item("Аксессуары", "Сумка через плечо", "Компактная сумка из экокожи", ("бежевый",), "casual", "стандартный", "2000-4000"),
        ),
        total_price="14500 ₽",
        style_notes="Сочетайте светлый верх с денимом и добавьте один яркий аксессуар",
        color_palette=("белый", "голубой", "бежевый"),
    ),
    OutfitTemplate(
        id="female_business_autumn",
        name="Деловой образ на каждый день",
        description="Собранный офисный комплект, который легко носить весь день",
        gender="female",
        body_types=("hourglass", "rectangle", "pear", "inverted-triangle"),
        styles=("business", "classic", "elegant"),
        occasions=("business",),
        seasons=("autumn", "winter", "spring"),
        items=(
            _item("Верх", "Шелковая блузка", "Блузка с мягким воротником", ("молочный",), "business", "приталенный", "3000-5000"),
            _item("Низ", "Брюки со стрелками", "Прямые брюки с высокой посадкой", ("серый",), "business", "прямой крой", "3500-6000"),
            _item("Обувь", "Лоферы", "Кожаные лоферы на невысоком каблуке", ("черный",), "business", "стандартный", "4000-7000"),
            _item("Аксессуары", "Структурированная сумка", "Сумка-тоут для документов", ("черный",), "business", "стандартный", "4000-8000"),
        ),
        total_price="20500 ₽",
        style_notes="Держите палитру сдержанной, акцент на качестве тканей",
        color_palette=("молочный", "серый", "черный"),
    ),
    OutfitTemplate(
        id="female_evening",
        name="Вечерний образ",
        description="Элегантный комплект для ужина или праздника",
        gender="female",
        body_types=("hourglass", "pear", "rectangle", "apple"),
        styles=("elegant", "romantic", "classic"),
        occasions=("evening", "party", "date"),
        seasons=("spring", "summer", "autumn", "winter"),
        items=(
            _item("Платье", "Платье миди", "Платье миди с запахом", ("изумрудный",), "elegant", "приталенный", "5000-9000"),
            _item("Верхняя одежда", "Укороченный жакет", "Жакет из плотной ткани", ("черный",), "elegant", "прямой крой", "4000-8000"),
            _item("Обувь", "Туфли на каблуке", "Лодочки на устойчивом каблуке", ("черный",), "elegant", "стандартный", "4000-8000"),
            _item("Аксессуары", "Клатч", "Небольшой клатч с металлической фурнитурой", ("золотой",), "elegant", "стандартный", "2000-4000"),
        ),
        total_price="24500 ₽",
        style_notes="Один насыщенный цвет и минимум украшений",
        color_palette=("изумрудный", "черный", "золотой"),
    ),
    OutfitTemplate(
        id="male_casual",
        name="Мужской повседневный образ",
        description="Удобный комплект на выходные",
        gender="male",
        body_types=("rectangle", "inverted-triangle", "triangle", "circle"),
        styles=("casual", "sport", "minimalist"),
        occasions=("casual", "sport"),
        seasons=("spring", "summer", "autumn"),
        items=(
            _item("Верх", "Льняная рубашка", "Рубашка из льна с коротким рукавом", ("белый",), "casual", "прямой крой", "2500-4500"),
            _item("Низ", "Брюки чинос", "Хлопковые чинос зауженного кроя", ("бежевый",), "casual", "slim", "3000-5000"),
            _item("Обувь", "Кроссовки", "Минималистичные кожаные кроссовки", ("белый",), "casual", "стандартный", "4000-8000"),
            _item("Аксессуары", "Кожаный ремень", "Ремень с матовой пряжкой", ("коричневый",), "casual", "стандартный", "1500-3000"),
        ),
        total_price="17500 ₽",
        style_notes="Натуральные ткани и спокойные оттенки",
        color_palette=("белый", "бежевый", "коричневый"),
    ),
    OutfitTemplate(
        id="male_business",
        name="Мужской деловой образ",
        description="Классический костюм для офиса и переговоров",
        gender="male",
        body_types=("rectangle", "inverted-triangle", "triangle", "circle"),
        styles=("business", "classic"),
        occasions=("business",),
        seasons=("autumn", "winter", "spring"),
        items=(
            _item("Верх", "Классическая рубашка", "Рубашка из поплина", ("голубой",), "business", "приталенный", "2500-4500"),
            _item("Верхняя одежда", "Пиджак", "Однобортный пиджак из шерсти", ("темно-синий",), "business", "приталенный", "7000-15000"),
            _item("Низ", "Костюмные брюки", "Брюки со стрелками", ("темно-синий",), "business", "прямой крой", "4000-7000"),
            _item("Обувь", "Оксфорды", "Кожаные туфли-оксфорды", ("черный",), "business", "стандартный", "6000-12000"),
        ),
        total_price="29000 ₽",
        style_notes="Темный низ и светлая рубашка, обувь в тон ремню",
        color_palette=("темно-синий", "голубой", "черный"),
    ),
    OutfitTemplate(
        id="male_evening",
        name="Мужской вечерний образ",
        description="Сдержанный вечерний комплект без галстука",
        gender="male",
        body_types=("rectangle", "inverted-triangle", "triangle", "circle"),
        styles=("elegant", "classic"),
        occasions=("evening", "party", "date"),
        seasons=("spring", "summer", "autumn", "winter"),
        items=(
            _item("Верх", "Водолазка", "Тонкая водолазка из мериноса", ("черный",), "elegant", "приталенный", "3000-6000"),
            _item("Верхняя одежда", "Блейзер", "Бархатный блейзер", ("бордовый",), "elegant", "приталенный", "8000-15000"),
            _item("Низ", "Зауженные брюки", "Брюки из костюмной ткани", ("черный",), "elegant", "slim", "4000-7000"),
            _item("Обувь", "Челси", "Кожаные ботинки челси", ("черный",), "elegant", "стандартный", "6000-11000"),
        ),
        total_price="30000 ₽",
        style_notes="Монохромная база и одна фактурная вещь",
        color_palette=("черный", "бордовый"),
    ),
)


def find_matching_template(
    gender: str,
    styles: tuple[str, ...],
    occasion: str,
    season: str,
    body_type: str = "",
    templates: tuple[OutfitTemplate, ...] = TEMPLATES,
) -> OutfitTemplate | None:
    wanted_styles = {s.lower() for s in styles}
    same_gender = [t for t in templates if t.gender == gender]

    for template in same_gender:
        if occasion not in template.occasions or season not in template.seasons:
            continue
        if body_type and body_type not in template.body_types:
            continue
        if not wanted_styles or wanted_styles.intersection(template.styles):
            return template

    for template in same_gender:
        if occasion in template.occasions and wanted_styles.intersection(template.styles):
            return template
    return None
