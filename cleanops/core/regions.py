from __future__ import annotations

from typing import get_args

from cleanops.core.schema import Region

REGIONS: tuple[str, ...] = get_args(Region)
FALLBACK_SHEET = "Other"
LEDGER_SHEETS: tuple[str, ...] = (*REGIONS, FALLBACK_SHEET)


def resolve_sheet_name(region: object) -> str:
    """Map an operating region onto its ledger sheet, falling back to ``Other``."""

    if isinstance(region, str) and region in REGIONS:
        return region
    return FALLBACK_SHEET
