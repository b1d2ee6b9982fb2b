"""Ordering bounded context: product stock, order placement and the tax audit trail.

Orders and products are state-stored aggregates so that listing, distributor
and tax reporting queries can run directly against their repositories.
"""

from protean.domain import Domain

from ordering.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

ordering = Domain(name="ordering")
