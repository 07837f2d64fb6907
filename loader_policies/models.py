"""
Module: loader_policies.models
Responsibility: ORM persistence for the entity types the bundled policies
    load: facets, customers and customer groups, stock locations, product
    variants with their per-location stock levels, and tax rates.
Architecture position: Policies > Models. May import from loader_kernel.db
    only.

Invariants enforced:
    - Natural keys are unique: facet.code, customer.email_address,
      customer_group.name, stock_location.name, product_variant.sku,
      tax_rate.name.
    - One stock level per (variant, location) pair.

Failure modes:
    - IntegrityError on a duplicate natural key. The orchestrator reports it
      against the record that caused it.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from loader_kernel.db.base import Base, TrackedBase, UUIDString

customer_group_members = Table(
    "customer_group_members",
    Base.metadata,
    Column("customer_id", UUIDString(), ForeignKey("customers.id", ondelete="CASCADE"), primary_key=True),
    Column("group_id", UUIDString(), ForeignKey("customer_groups.id", ondelete="CASCADE"), primary_key=True),
)


class Facet(TrackedBase):
    """A filterable product attribute such as "Color" or "Brand"."""

    __tablename__ = "facets"

    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_private: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    custom_fields: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Facet {self.code}>"


class CustomerGroup(TrackedBase):
    __tablename__ = "customer_groups"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    custom_fields: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    customers: Mapped[list[Customer]] = relationship(
        secondary=customer_group_members,
        back_populates="groups",
    )

    def __repr__(self) -> str:
        return f"<CustomerGroup {self.name}>"


class Customer(TrackedBase):
    """
    A shopper account.

    Addresses are stored as a JSON list of mappings with the keys
    ``full_name``, ``street_line1``, ``street_line2``, ``city``, ``province``,
    ``postal_code``, ``country_code`` and ``phone_number``.
    """

    __tablename__ = "customers"

    email_address: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    title: Mapped[str | None] = mapped_column(String(50), nullable=True)
    addresses: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    custom_fields: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    groups: Mapped[list[CustomerGroup]] = relationship(
        secondary=customer_group_members,
        back_populates="customers",
    )

    def __repr__(self) -> str:
        return f"<Customer {self.email_address}>"


class StockLocation(TrackedBase):
    __tablename__ = "stock_locations"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<StockLocation {self.name}>"


class ProductVariant(TrackedBase):
    """Sellable unit identified by SKU. Inventory batches adjust its stock."""

    __tablename__ = "product_variants"

    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    stock_levels: Mapped[list[StockLevel]] = relationship(
        back_populates="variant",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<ProductVariant {self.sku}>"


class StockLevel(TrackedBase):
    """Absolute stock on hand of one variant at one location."""

    __tablename__ = "stock_levels"

    __table_args__ = (
        UniqueConstraint("variant_id", "stock_location_id", name="uq_stock_level_variant_location"),
    )

    variant_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False
    )
    stock_location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stock_locations.id", ondelete="CASCADE"), nullable=False
    )
    stock_on_hand: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    variant: Mapped[ProductVariant] = relationship(back_populates="stock_levels")

    def __repr__(self) -> str:
        return f"<StockLevel {self.variant_id}@{self.stock_location_id}: {self.stock_on_hand}>"


class TaxRate(TrackedBase):
    __tablename__ = "tax_rates"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    value: Mapped[Decimal] = mapped_column(nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    tax_category_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    zone_code: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<TaxRate {self.name} {self.value}%>"
