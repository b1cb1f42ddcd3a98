#!/usr/bin/env python3
"""
Convert a restaurants CSV export into the seed JSON read by the directory service.

Each row is validated with the same request model the create endpoint uses.
Coordinates are written as GeoJSON points, ratings start at zero, and rows
that fail validation are reported and skipped. Point ``TATTLER_SEED_FILE`` at
the output to serve it.
"""

import argparse
import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
import sys
import os

from pydantic import ValidationError as ModelValidationError

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from service_restaurants.app.adapters import new_object_id  # noqa: E402
from service_restaurants.app.directory.models import RestaurantCreate  # noqa: E402


DEFAULT_AMENITIES = ("WiFi", "Parking")


def _optional(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def row_to_document(
    row: Dict[str, str],
    *,
    amenities: Iterable[str] = DEFAULT_AMENITIES,
    created_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Build a stored restaurant document from one CSV row.

    Raises ``pydantic.ValidationError`` when the row is not a valid restaurant.
    """
    payload = RestaurantCreate(
        name=row.get("name", ""),
        cuisine=row.get("cuisine", ""),
        location={
            "address": row.get("address", ""),
            "city": row.get("city", ""),
            "state": row.get("state") or "",
            "zipCode": row.get("zipCode") or "",
            "coordinates": {"latitude": row.get("latitude"), "longitude": row.get("longitude")},
        },
        priceRange=row.get("priceRange") or "$$",
        amenities=list(amenities),
        phone=_optional(row.get("phone")),
        website=_optional(row.get("website")),
        description=_optional(row.get("description")),
    )

    timestamp = (created_at or datetime.now(timezone.utc)).isoformat()
    document = payload.model_dump(exclude={"location"}, exclude_none=True)
    document.update(
        _id=new_object_id(),
        location=payload.location.to_document(),
        rating=0.0,
        totalRatings=0,
        images=[],
        createdAt=timestamp,
        updatedAt=timestamp,
    )
    return document


def convert(rows: Iterable[Dict[str, str]], *, amenities: Iterable[str] = DEFAULT_AMENITIES) -> Tuple[List[Dict[str, Any]], List[str]]:
    """Convert rows, returning the documents and one message per rejected row."""
    amenities = tuple(amenities)
    created_at = datetime.now(timezone.utc)
    documents: List[Dict[str, Any]] = []
    rejected: List[str] = []

    # Line 1 is the header.
    for line_number, row in enumerate(rows, start=2):
        try:
            documents.append(row_to_document(row, amenities=amenities, created_at=created_at))
        except ModelValidationError as exc:
            fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in exc.errors())
            rejected.append(f"line {line_number}: invalid {fields}")

    return documents, rejected


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Convert a restaurants CSV into directory seed JSON.")
    parser.add_argument("csv_file", type=Path, help="CSV with name, cuisine, address, city, state, zipCode, latitude, longitude, priceRange, phone, website, description columns")
    parser.add_argument("--output", type=Path, default=None, help="Where to write the seed JSON (stdout when omitted)")
    parser.add_argument("--amenities", default=",".join(DEFAULT_AMENITIES), help="Comma separated amenities given to every restaurant")
    parser.add_argument("--strict", action="store_true", help="Fail instead of skipping invalid rows")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    amenities = [item.strip() for item in args.amenities.split(",") if item.strip()]

    try:
        with args.csv_file.open(newline="", encoding="utf-8") as handle:
            documents, rejected = convert(csv.DictReader(handle), amenities=amenities)
    except OSError as exc:
        print(f"[import] cannot read {args.csv_file}: {exc}", file=sys.stderr)
        return 1

    for message in rejected:
        print(f"[import] skipped {message}", file=sys.stderr)
    if rejected and args.strict:
        return 1

    output = json.dumps({"restaurants": documents}, indent=2, ensure_ascii=False)
    if args.output:
        args.output.write_text(output + "\n", encoding="utf-8")
        print(f"[import] wrote {len(documents)} restaurants to {args.output}")
    else:
        print(output)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
