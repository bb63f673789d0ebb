"""Export the sender directory to CSV or JSON."""

import csv
import json

from .directory import format_date
from .models import SenderStore


def export_directory(store: SenderStore, format: str, output_path: str) -> int:
    """Write the directory to a file, most recent senders first.

    Args:
        store: The senders to export.
        format: Output format, either 'csv' or 'json'.
        output_path: Path to write the output file.

    Returns the number of senders written.
    """
    rows = [
        {
            "name": a.primary_name,
            "email": a.email,
            "last_date": format_date(a.last_seen),
            "message_count": a.message_count,
            "name_variations": sorted(a.name_variations),
        }
        for a in store.sorted()
    ]

    if format == "csv":
        with open(output_path, "w", newline="") as f:
            writer = csv.DictWriter(
                f,
                fieldnames=["name", "email", "last_date", "message_count", "name_variations"],
            )
            writer.writeheader()
            for row in rows:
                writer.writerow({**row, "name_variations": "; ".join(row["name_variations"])})
    elif format == "json":
        with open(output_path, "w") as f:
            json.dump(rows, f, indent=2)
    else:
        raise ValueError(f"Unsupported export format: {format}")

    return len(rows)
