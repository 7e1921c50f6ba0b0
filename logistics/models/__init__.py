# Modèles SQLAlchemy pour core-logistics-migration
#
# Ordre de dépendance: Store, Client, Driver puis Order (clés étrangères
# vers stores et clients, affectations vers drivers).

from .client import Client
from .driver import Driver
from .order import Order, order_drivers
from .store import Store

__all__ = [
    "Client",
    "Driver",
    "Order",
    "Store",
    "order_drivers",
]
