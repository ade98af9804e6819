"""HTTP routers; each reaches the services through ``Depends(get_services)``."""

from . import accounts, cart, catalog, deliveries, health, orders

ROUTERS = [
    health.router,
    accounts.router,
    catalog.router,
    cart.router,
    orders.router,
    deliveries.router,
]
