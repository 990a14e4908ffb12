"""Notification bodies. Human-readable, one side effect per message."""

from __future__ import annotations

from datetime import datetime

from retailfabric.workflows._models import CustomerProfile, Order, Product


def stamp(at: datetime) -> str:
    return at.strftime("%Y-%m-%dT%H:%M:%SZ")


# Customers


def customer_created(customer: CustomerProfile, at: datetime) -> str:
    return f"Customer created: {customer.customer_id} - {customer.name} at {stamp(at)}"


def send_welcome(customer: CustomerProfile) -> str:
    return f"Send welcome: {customer.customer_id} - {customer.email}"


def validate_customer(customer: CustomerProfile) -> str:
    return f"Validate customer: {customer.customer_id} - {customer.email}"


def customer_updated(customer: CustomerProfile, at: datetime) -> str:
    return f"Customer updated: {customer.customer_id} at {stamp(at)}"


def customer_deleted(row_key: str, at: datetime) -> str:
    return f"Customer deleted: {row_key} at {stamp(at)}"


# Products


def product_created(product: Product, at: datetime) -> str:
    return f"Product created: {product.product_id} at {stamp(at)}"


def uploading_image(blob_path: str) -> str:
    return f"Uploading image: {blob_path}"


def inventory_added(product: Product, quantity: int = 1) -> str:
    return f"Inventory update: Added {product.product_id} with quantity {quantity}"


def validate_price(product: Product) -> str:
    return f"Validate price: {product.product_id} - {product.price:.2f}"


def product_updated(product: Product, at: datetime) -> str:
    return f"Product updated: {product.product_id} at {stamp(at)}"


def product_deleted(product_id: str, at: datetime) -> str:
    return f"Product deleted: {product_id} at {stamp(at)}"


# Orders


def order_created(order: Order, at: datetime) -> str:
    return f"Order created: {order.order_id} at {stamp(at)}"


def order_updated(order: Order, at: datetime) -> str:
    return f"Order updated: {order.order_id} - {order.status.value} at {stamp(at)}"


def order_deleted(order_id: str, at: datetime) -> str:
    return f"Order deleted: {order_id} at {stamp(at)}"
