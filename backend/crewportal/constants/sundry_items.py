"""Sundry (consumable) items tracked per timesheet."""

from typing import Dict, NamedTuple, Optional


class SundryItem(NamedTuple):
    key: str          # payload name
    column: str       # time_entries column
    zoho_field: str   # Zoho Number field API name
    label: str


SUNDRY_ITEMS = (
    SundryItem("maskingPaperRoll", "masking_paper_roll", "Masking_Paper_Roll", "Masking Paper Roll"),
    SundryItem("plasticRoll", "plastic_roll", "Plastic_Roll", "Plastic Roll"),
    SundryItem("puttySpackleTub", "putty_spackle_tub", "Putty_Spackle_Tub", "Putty/Spackle Tub"),
    SundryItem("caulkTube", "caulk_tube", "Caulk_Tube", "Caulk Tube"),
    SundryItem("whiteTapeRoll", "white_tape_roll", "White_Tape_Roll", "White Tape Roll"),
    SundryItem("orangeTapeRoll", "orange_tape_roll", "Orange_Tape_Roll", "Orange Tape Roll"),
    SundryItem("floorPaperRoll", "floor_paper_roll", "Floor_Paper_Roll", "Floor Paper Roll"),
    SundryItem("tip", "tip", "Tip", "Tip"),
    SundryItem("sandingSponge", "sanding_sponge", "Sanding_Sponge", "Sanding Sponge"),
    SundryItem("inchRollerCover18", "inch_roller_cover_18", "Roller_Cover_18_Inch", '18" Roller Cover'),
    SundryItem("inchRollerCover9", "inch_roller_cover_9", "Roller_Cover_9_Inch", '9" Roller Cover'),
    SundryItem("miniCover", "mini_cover", "Mini_Cover", "Mini Cover"),
    SundryItem("masks", "masks", "Masks", "Masks"),
    SundryItem("brickTapeRoll", "brick_tape_roll", "Brick_Tape_Roll", "Brick Tape Roll"),
)

# Any of key, column, Zoho field or label resolves to the item
_LOOKUP: Dict[str, SundryItem] = {}
for _item in SUNDRY_ITEMS:
    for _name in (_item.key, _item.column, _item.zoho_field, _item.label):
        _LOOKUP[_name.lower()] = _item


def resolve_sundry_item(name: str) -> Optional[SundryItem]:
    """Return the sundry item matching a payload name, or None if unknown."""
    if not name:
        return None
    return _LOOKUP.get(name.strip().lower())


def build_sundry_payload(quantities: Dict[str, int]) -> Dict[str, int]:
    """
    Map item quantities (keyed by payload key or column) to Zoho field names.

    Items with a quantity of zero or less are omitted entirely, never sent as 0.
    """
    payload: Dict[str, int] = {}
    for name, quantity in quantities.items():
        item = resolve_sundry_item(name)
        if item is None or not quantity or int(quantity) <= 0:
            continue
        payload[item.zoho_field] = int(quantity)
    return payload
