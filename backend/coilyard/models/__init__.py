"""Aggregate model imports for Alembic auto-detection."""

# Yard layout
from coilyard.models.storage_location import StorageLocation  # noqa: F401
from coilyard.models.stacking_position import StackingPosition  # noqa: F401

# Coils and their audit trail
from coilyard.models.coil import Coil  # noqa: F401
from coilyard.models.coil_movement import CoilMovement  # noqa: F401

# Physical counts
from coilyard.models.stock_take import StockTake  # noqa: F401
