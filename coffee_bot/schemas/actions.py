"""
Action tokens carried in inline button callback_data.

Wire grammar (pipe-delimited, integers in base 10, flags as 0/1):

    D|idx              select item
    C|idx|oat          milk choice made
    B|idx|oat|byoc     cup choice made
    Y|idx|oat|byoc     confirm
    N|idx              cancel

parse_action() decodes a raw string once at the boundary; the order flow only
ever matches on the typed variants below.
"""

import re
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


_INT_RE = re.compile(r"^[0-9]+$")


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)

    idx: int = Field(ge=0)

    def encode(self) -> str:
        raise NotImplementedError


class SelectItem(_Action):
    kind: Literal["D"] = "D"

    def encode(self) -> str:
        return f"D|{self.idx}"


class MilkChoice(_Action):
    kind: Literal["C"] = "C"
    oat: bool

    def encode(self) -> str:
        return f"C|{self.idx}|{int(self.oat)}"


class CupChoice(_Action):
    kind: Literal["B"] = "B"
    oat: bool
    byoc: bool

    def encode(self) -> str:
        return f"B|{self.idx}|{int(self.oat)}|{int(self.byoc)}"


class ConfirmOrder(_Action):
    kind: Literal["Y"] = "Y"
    oat: bool
    byoc: bool

    def encode(self) -> str:
        return f"Y|{self.idx}|{int(self.oat)}|{int(self.byoc)}"


class CancelOrder(_Action):
    kind: Literal["N"] = "N"

    def encode(self) -> str:
        return f"N|{self.idx}"


Action = Union[SelectItem, MilkChoice, CupChoice, ConfirmOrder, CancelOrder]

# prefix -> (model, number of flag fields after idx)
_GRAMMAR = {
    "D": (SelectItem, 0),
    "C": (MilkChoice, 1),
    "B": (CupChoice, 2),
    "Y": (ConfirmOrder, 2),
    "N": (CancelOrder, 0),
}

_FLAG_NAMES = ("oat", "byoc")


def _parse_flag(raw: str) -> Optional[bool]:
    if raw == "1":
        return True
    if raw == "0":
        return False
    return None


def parse_action(data: Optional[str]) -> Optional[Action]:
    """
    Decode callback_data into an Action.

    Returns None for unknown prefixes, wrong field counts, non-numeric
    indexes and flags other than 0/1.
    """
    if not data:
        return None
    parts = data.split("|")
    entry = _GRAMMAR.get(parts[0])
    if entry is None:
        return None
    model, n_flags = entry
    if len(parts) != 2 + n_flags:
        return None

    raw_idx = parts[1]
    if not _INT_RE.match(raw_idx):
        return None

    fields = {"idx": int(raw_idx)}
    for name, raw in zip(_FLAG_NAMES, parts[2:]):
        flag = _parse_flag(raw)
        if flag is None:
            return None
        fields[name] = flag
    return model(**fields)
