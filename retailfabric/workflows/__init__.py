"""
Workflows — customer, product, order and contract operations.

Quick Start:
    from retailfabric.workflows import BackOffice, Attachment

    office = await BackOffice.open(Settings.in_memory())
    await office.seed_customers()
    await office.create_product({"product_id": "P1", "name": "Widget", "price": 9.99})

    match await office.create_order({"customer_id": "C001", "product_id": "P1"}):
        case Ok(order): order.price  # 9.99, resolved from the product
        case Error(e): e.kind, e.correlation_id
"""

from retailfabric.workflows._errors import (
    CorruptEntity,
    ErrorKind,
    WorkflowError,
    WorkflowFailure,
)
from retailfabric.workflows._models import (
    TRACKING_PREFIX,
    Attachment,
    CustomerProfile,
    Lookups,
    Order,
    OrderDetails,
    OrderStatus,
    Product,
    tracking_id_for,
)
from retailfabric.workflows._inputs import (
    CustomerEdit,
    NewCustomer,
    NewOrder,
    NewProduct,
    OrderEdit,
    ProductEdit,
)
from retailfabric.workflows._fabric import Fabric, open_fabric
from retailfabric.workflows._customers import SAMPLE_CUSTOMERS, CustomerWorkflow
from retailfabric.workflows._products import ProductWorkflow
from retailfabric.workflows._orders import OrderWorkflow
from retailfabric.workflows._contracts import ContractWorkflow
from retailfabric.workflows._backoffice import BackOffice

__all__ = (
    # Errors
    "ErrorKind",
    "WorkflowError",
    "WorkflowFailure",
    "CorruptEntity",
    # Models
    "TRACKING_PREFIX",
    "tracking_id_for",
    "OrderStatus",
    "CustomerProfile",
    "Product",
    "Order",
    "OrderDetails",
    "Lookups",
    "Attachment",
    # Inputs
    "NewCustomer",
    "CustomerEdit",
    "NewProduct",
    "ProductEdit",
    "NewOrder",
    "OrderEdit",
    # Workflows
    "Fabric",
    "open_fabric",
    "SAMPLE_CUSTOMERS",
    "CustomerWorkflow",
    "ProductWorkflow",
    "OrderWorkflow",
    "ContractWorkflow",
    "BackOffice",
)
