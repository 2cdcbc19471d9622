"""Column-role detection for delimited statement exports.

A header cell is matched against a table of English and German aliases after
case folding and stripping punctuation. The first matching alias decides the
role of the column; unknown columns are ignored.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Sequence

from ..models import ColumnLayout

# role -> aliases (normalized: lowercase, ASCII-folded, alphanumerics only)
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "date": (
        "date",
        "transactiondate",
        "bookingdate",
        "postingdate",
        "valuedate",
        "datum",
        "buchungsdatum",
        "buchungstag",
        "transaktionsdatum",
        "umsatzdatum",
        "belegdatum",
        "valuta",
        "wertstellung",
    ),
    "amount": ("amount", "betrag", "umsatz", "value", "betrageur", "amounteur"),
    "debit": ("debit", "soll", "belastung", "lastschrift", "ausgang", "withdrawal", "moneyout"),
    "credit": ("credit", "haben", "gutschrift", "eingang", "deposit", "moneyin"),
    "direction": ("sh", "sollhaben", "debitcredit", "drcr", "richtung"),
    "currency": ("currency", "wahrung", "waehrung", "ccy", "curr"),
    "description": (
        "description",
        "details",
        "beschreibung",
        "verwendungszweck",
        "buchungstext",
        "text",
        "haendler",
        "handler",
        "merchant",
        "payee",
        "empfanger",
        "empfaenger",
        "memo",
    ),
    "reference": (
        "reference",
        "ref",
        "referenz",
        "referenznummer",
        "transactionid",
        "id",
        "belegnummer",
        "kartenreferenz",
    ),
}

_ALIAS_TO_ROLE: dict[str, str] = {
    alias: role for role, aliases in HEADER_ALIASES.items() for alias in aliases
}


def _normalize_header(cell: str) -> str:
    folded = unicodedata.normalize("NFKD", cell).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]", "", folded.lower())


def header_roles(cells: Sequence[str]) -> list[str | None]:
    """Map each header cell to a column role (or ``None`` when unknown)."""

    roles: list[str | None] = []
    taken: set[str] = set()
    for cell in cells:
        role = _ALIAS_TO_ROLE.get(_normalize_header(cell))
        # Keep the first column of each role (e.g. booking date over value date).
        if role is not None and role in taken:
            role = None
        if role is not None:
            taken.add(role)
        roles.append(role)
    return roles


def looks_like_header(cells: Sequence[str]) -> bool:
    """A row is a header when at least two cells name known columns, one of them a date."""

    roles = [r for r in header_roles(cells) if r is not None]
    return len(roles) >= 2 and "date" in roles


def layout_from_roles(roles: Sequence[str | None], *, width: int, has_header: bool) -> ColumnLayout:
    """Build a :class:`ColumnLayout` from per-column roles.

    Raises ``ValueError`` when the roles cannot form a usable layout.
    """

    index: dict[str, int] = {}
    for i, role in enumerate(roles[:width]):
        if role is None or role == "ignore" or role in index:
            continue
        index[role] = i
    if "date" not in index:
        raise ValueError("no date column")
    if "amount" not in index and not ("debit" in index and "credit" in index):
        raise ValueError("no amount column (or debit/credit pair)")
    return ColumnLayout(
        width=width,
        date=index["date"],
        description=index.get("description"),
        amount=index.get("amount"),
        debit=index.get("debit") if "amount" not in index else None,
        credit=index.get("credit") if "amount" not in index else None,
        direction=index.get("direction"),
        currency=index.get("currency"),
        reference=index.get("reference"),
        has_header=has_header,
    )


__all__ = ["HEADER_ALIASES", "header_roles", "layout_from_roles", "looks_like_header"]
