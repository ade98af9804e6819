"""Service container shared by the routers."""

from dataclasses import dataclass

from fastapi import Request

from .agents import AgentService
from .auth import AccountService
from .cart import CartService
from .catalog import CatalogService
from .config import Settings
from .database import Database
from .deliveries import DeliveryService
from .orders import OrderService


@dataclass
class Services:
    accounts: AccountService
    catalog: CatalogService
    carts: CartService
    orders: OrderService
    deliveries: DeliveryService
    agents: AgentService


def build_services(database: Database, settings: Settings) -> Services:
    catalog = CatalogService(database)
    carts = CartService(database, catalog)
    agents = AgentService(database)
    deliveries = DeliveryService(database, agents)
    return Services(
        accounts=AccountService(database, settings),
        catalog=catalog,
        carts=carts,
        orders=OrderService(database, catalog, carts, deliveries),
        deliveries=deliveries,
        agents=agents,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
