"""Ordering bounded context — Order Lifecycle and Inventory Consistency.

Handles order placement against live stock, payment verification, status
transitions and cancellations, and the stock ledger that keeps product
quantities consistent while orders move through their lifecycle.
"""

import os

from protean.domain import Domain

from ordering.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging(log_dir=os.getenv("LOG_DIR", "logs"))

logger = get_logger(__name__)

ordering = Domain(name="ordering")
