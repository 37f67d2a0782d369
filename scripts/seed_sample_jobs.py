#!/usr/bin/env python
from __future__ import annotations

import argparse
import asyncio
import os
import sys
from datetime import date
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from cleanops.application import get_job_service  # noqa: E402
from cleanops.core.regions import REGIONS  # noqa: E402

STATUS_CYCLE = ["Upcoming", "Completed", "Redo", "Cancelled"]


async def _seed(month: str, count: int) -> list[str]:
    year, month_number = (int(part) for part in month.split("-"))
    service = get_job_service()
    cleaner = service.create_employee(
        {"name": "Sample Cleaner", "phone": "0400000000", "role": "Cleaner", "region": REGIONS[0]}
    )

    files: set[str] = set()
    for index in range(count):
        region = REGIONS[index % len(REGIONS)]
        update = await service.create_job(
            {
                "customer_name": f"Customer {index + 1}",
                "phone": f"04{index:08d}",
                "address": f"{index + 1} Sample St",
                "region": region,
                "date": date(year, month_number, min(index + 1, 28)).isoformat(),
                "price": 120 + index * 10,
                "assigned_employee": cleaner.employee_id if index % 2 == 0 else None,
            }
        )
        status = STATUS_CYCLE[index % len(STATUS_CYCLE)]
        if status != "Upcoming":
            update = await service.apply_job_status_transition(update.job.job_id, status)
        if update.ledger and update.ledger.file:
            files.add(update.ledger.file)
    return sorted(files)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a monthly job ledger with sample jobs")
    parser.add_argument("--month", required=True, help="ledger month, format YYYY-MM")
    parser.add_argument("--count", type=int, default=10, help="number of jobs to create")
    parser.add_argument("--output-dir", help="ledger export folder (defaults to LEDGER_EXPORT_DIR)")
    args = parser.parse_args()

    if args.output_dir:
        os.environ["LEDGER_EXPORT_DIR"] = args.output_dir

    files = asyncio.run(_seed(args.month, args.count))
    for name in files:
        print(f"ledger written: {name}")


if __name__ == "__main__":
    main()
