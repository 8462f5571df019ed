"""Management CLI for yard setup.

Usage:
    python -m coilyard.cli migrate
    python -m coilyard.cli list-bays
    python -m coilyard.cli generate-locations BAY ZONE PREFIX START END ROWS COLS [CAPACITY]
"""

import subprocess
import sys
import uuid
from collections import Counter
from datetime import datetime

from sqlalchemy import create_engine, insert, select

from coilyard.config import settings
from coilyard.middleware.exceptions import PreconditionError
from coilyard.models.stacking_position import StackingPosition
from coilyard.models.storage_location import StorageLocation
from coilyard.services.yard_setup import generate_ground_locations


def migrate():
    """Run Alembic upgrade head."""
    result = subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        capture_output=True, text=True,
    )
    if result.returncode != 0:
        print(f"  FAILED: {result.stderr}")
        sys.exit(1)
    print("  OK")


def list_bays():
    engine = create_engine(settings.database_url_sync)
    with engine.connect() as conn:
        locations = conn.execute(select(StorageLocation.bay, StorageLocation.zone)).all()
        positions = conn.execute(
            select(StackingPosition.bay, StackingPosition.coil_barcode)
        ).all()

    zones = Counter((bay, zone) for bay, zone in locations)
    total = Counter(bay for bay, _ in positions)
    occupied = Counter(bay for bay, barcode in positions if barcode)

    for bay in sorted({b for b, _ in zones}):
        bay_zones = sorted(z for b, z in zones if b == bay)
        print(f"  {bay}: zones {', '.join(bay_zones)}  "
              f"positions {occupied[bay]}/{total[bay]} occupied")
    print(f"\n{len({b for b, _ in zones})} bay(s)")


def generate_locations(args: list[str]):
    if len(args) < 7:
        print("Usage: python -m coilyard.cli generate-locations BAY ZONE PREFIX START END ROWS COLS [CAPACITY]")
        sys.exit(2)
    bay, zone, prefix = args[0], args[1], args[2]
    start, end, rows, cols = (int(a) for a in args[3:7])
    capacity = float(args[7]) if len(args) > 7 else 50.0

    try:
        rows_data = generate_ground_locations(bay, zone, prefix, start, end, rows, cols, capacity)
    except PreconditionError as e:
        print(f"  Error: {e.message}")
        sys.exit(1)

    now = datetime.utcnow()
    engine = create_engine(settings.database_url_sync)
    with engine.begin() as conn:
        existing = set(conn.execute(select(StorageLocation.location_code)).scalars())
        clashes = [r["location_code"] for r in rows_data if r["location_code"] in existing]
        if clashes:
            print(f"  Error: location codes already exist: {', '.join(clashes)}")
            sys.exit(1)
        conn.execute(
            insert(StorageLocation),
            [{"id": str(uuid.uuid4()), "created_at": now, "updated_at": now, **r} for r in rows_data],
        )
    print(f"  {len(rows_data)} locations created in {bay} -> {zone}")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "migrate":
        migrate()
    elif cmd == "list-bays":
        list_bays()
    elif cmd == "generate-locations":
        generate_locations(sys.argv[2:])
    else:
        print("Usage: python -m coilyard.cli [migrate|list-bays|generate-locations ...]")
