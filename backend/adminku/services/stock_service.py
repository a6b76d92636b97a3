# Overview: Append-only stock ledger; derives current stock and keeps the product stock cache.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, func

from ..models import Product, StockTransaction, Unit, TX_ADD, TX_REMOVE, TX_ADJUST, TRANSACTION_TYPES
from ..time_utils import TIMESTAMP_STEP, normalize_timestamp, utcnow
from ..validation import NotFoundError, ValidationError, is_strict_int
from .base import BaseService
from .concurrency import lock_for_update, product_lock_key, store_operation
from .unit_service import IncompatibleUnitsError, UnitService, base_name, convert_between
"""
Stock Ledger Invariants & Derivation (authoritative)

Ledger model:
- Stock is derived from StockTransaction rows; Product.stock is only a
  display cache written by record().
- quantity is a non-negative magnitude in the row's own unit; the type
  decides the sign. ADJUST is an absolute reset point, never an increment.

Derivation, in the product's catalog unit:
1. baseline row = ADJUST with greatest occurred_at, ties broken by highest id.
   No ADJUST -> baseline 0, cutoff = beginning of time.
2. baseline = baseline row quantity converted to the catalog unit.
3. delta = sum(+ADD) + sum(-REMOVE), each row converted to the catalog unit,
   over rows with occurred_at > cutoff.
4. stock = baseline + delta.
Conversion rounds each row toward zero; the dropped base-unit amounts are
accumulated on StockLevel.remainder_in_base so the loss is always visible.

Time semantics:
- occurred_at is canonical UTC-naive. When omitted, record() stamps
  max(utcnow(), latest_for_product + 1us), so default timestamps are
  strictly increasing per product.

Concurrency:
- record() holds the per-product lock (and FOR UPDATE on the product row)
  across append -> recompute -> write-back -> commit.
"""


class InvalidQuantityError(ValidationError):
    pass


@dataclass(frozen=True)
class StockLevel:
    product_id: int
    unit_id: int
    unit_name: str
    quantity: int
    remainder_in_base: int = 0
    baseline_transaction_id: int | None = None

    @property
    def display_quantity(self) -> int:
        return max(0, self.quantity)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "unit_id": self.unit_id,
            "unit_name": self.unit_name,
            "quantity": self.quantity,
            "display_quantity": self.display_quantity,
            "remainder_in_base": self.remainder_in_base,
            "baseline_transaction_id": self.baseline_transaction_id,
        }


@dataclass(frozen=True)
class UnitStockSummary:
    unit_id: int
    unit_name: str
    quantity: int

    def to_dict(self) -> dict:
        return {"unit_id": self.unit_id, "unit_name": self.unit_name, "quantity": self.quantity}


def _check_quantity(quantity) -> int:
    if not is_strict_int(quantity) or quantity < 0:
        raise InvalidQuantityError("quantity must be a non-negative integer")
    return quantity


class StockLedger(BaseService):

    def __init__(self, ctx, units: UnitService):
        super().__init__(ctx)
        self.units = units

    def _product(self, product_id: int, *, lock: bool = False) -> Product:
        query = self.session.query(Product).filter_by(id=product_id)
        if lock:
            query = lock_for_update(query)
        product = query.first()
        if product is None:
            raise NotFoundError("product", product_id)
        return product

    def _latest_occurred_at(self, product_id: int) -> datetime | None:
        return (
            self.session.query(func.max(StockTransaction.occurred_at))
            .filter(StockTransaction.product_id == product_id)
            .scalar()
        )

    def _next_timestamp(self, product_id: int) -> datetime:
        now = utcnow()
        latest = self._latest_occurred_at(product_id)
        if latest is not None and now <= latest:
            return latest + TIMESTAMP_STEP
        return now

    def _derive(self, product: Product) -> StockLevel:
        catalog_unit = self.session.get(Unit, product.unit_id)
        if catalog_unit is None:
            raise NotFoundError("unit", product.unit_id)

        units: dict[int, Unit] = {catalog_unit.id: catalog_unit}

        def unit_for(unit_id: int) -> Unit:
            if unit_id not in units:
                unit = self.session.get(Unit, unit_id)
                if unit is None:
                    raise NotFoundError("unit", unit_id)
                units[unit_id] = unit
            return units[unit_id]

        baseline_row = (
            self.session.query(StockTransaction)
            .filter(
                StockTransaction.product_id == product.id,
                StockTransaction.type == TX_ADJUST,
            )
            .order_by(StockTransaction.occurred_at.desc(), StockTransaction.id.desc())
            .first()
        )

        quantity = 0
        remainder = 0
        rows = self.session.query(
            StockTransaction.unit_id, StockTransaction.type, StockTransaction.quantity
        ).filter(
            StockTransaction.product_id == product.id,
            StockTransaction.type.in_((TX_ADD, TX_REMOVE)),
        )

        if baseline_row is not None:
            baseline = convert_between(baseline_row.quantity, unit_for(baseline_row.unit_id), catalog_unit)
            quantity = baseline.quantity
            remainder = baseline.remainder
            rows = rows.filter(StockTransaction.occurred_at > baseline_row.occurred_at)

        for unit_id, tx_type, magnitude in rows.all():
            converted = convert_between(magnitude, unit_for(unit_id), catalog_unit)
            sign = -1 if tx_type == TX_REMOVE else 1
            quantity += sign * converted.quantity
            remainder += sign * converted.remainder

        return StockLevel(
            product_id=product.id,
            unit_id=catalog_unit.id,
            unit_name=catalog_unit.name,
            quantity=quantity,
            remainder_in_base=remainder,
            baseline_transaction_id=baseline_row.id if baseline_row is not None else None,
        )

    @store_operation
    def record(
        self,
        product_id: int,
        unit_id,
        tx_type: str,
        quantity: int,
        occurred_at=None,
        note: str | None = None,
    ) -> StockTransaction:
        """
        Append one ledger row and re-sync Product.stock, atomically per product.

        Validation happens before any write; a rejected call leaves both the
        ledger and the cached stock untouched.
        """
        _check_quantity(quantity)
        if tx_type not in TRANSACTION_TYPES:
            raise ValidationError(f"invalid transaction type {tx_type!r}")
        try:
            occurred_at = normalize_timestamp(occurred_at)
        except ValueError:
            raise ValidationError("invalid occurred_at")
        if note is not None:
            note = note.strip()[:255] or None

        with self.ctx.locks.hold(product_lock_key(product_id)):
            product = self._product(product_id, lock=True)
            unit = self.units.get(unit_id)
            catalog_unit = self.units.get(product.unit_id)
            if base_name(unit) != base_name(catalog_unit):
                raise IncompatibleUnitsError(
                    f"unit {unit.name!r} does not share a base with {catalog_unit.name!r}"
                )

            if occurred_at is None:
                occurred_at = self._next_timestamp(product.id)

            tx = StockTransaction(
                product_id=product.id,
                unit_id=unit.id,
                type=tx_type,
                quantity=quantity,
                note=note,
                occurred_at=occurred_at,
            )
            self.session.add(tx)
            self.session.flush()

            level = self._derive(product)
            product.stock = level.display_quantity
            self.session.commit()

        self.log.info(
            "stock %s product_id=%s qty=%s unit=%s tx_id=%s stock=%s",
            tx_type, product_id, quantity, unit.name, tx.id, level.quantity,
        )
        if level.quantity < 0:
            self.log.warning("derived stock below zero product_id=%s stock=%s", product_id, level.quantity)
        return tx

    @store_operation
    def current_stock(self, product_id: int) -> StockLevel:
        """Derived stock in the product's catalog unit. Read-only."""
        return self._derive(self._product(product_id))

    @store_operation
    def history(self, product_id: int, limit: int = 50, offset: int = 0) -> list[StockTransaction]:
        if not is_strict_int(limit) or limit < 0:
            raise ValidationError("limit must be a non-negative integer")
        if not is_strict_int(offset) or offset < 0:
            raise ValidationError("offset must be a non-negative integer")
        self._product(product_id)
        return (
            self.session.query(StockTransaction)
            .filter(StockTransaction.product_id == product_id)
            .order_by(StockTransaction.occurred_at.desc(), StockTransaction.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )

    @store_operation
    def summary_by_unit(self, product_id: int) -> list[UnitStockSummary]:
        """
        Signed ADD/REMOVE totals per recorded unit, in that unit's own terms.

        No cross-unit conversion and no ADJUST rows; for audit and reporting.
        """
        self._product(product_id)
        signed = case(
            (StockTransaction.type == TX_ADD, StockTransaction.quantity),
            (StockTransaction.type == TX_REMOVE, -StockTransaction.quantity),
            else_=0,
        )
        rows = (
            self.session.query(Unit.id, Unit.name, func.coalesce(func.sum(signed), 0))
            .join(Unit, Unit.id == StockTransaction.unit_id)
            .filter(
                StockTransaction.product_id == product_id,
                StockTransaction.type.in_((TX_ADD, TX_REMOVE)),
            )
            .group_by(Unit.id, Unit.name)
            .order_by(Unit.name.asc())
            .all()
        )
        return [UnitStockSummary(unit_id=uid, unit_name=name, quantity=int(total)) for uid, name, total in rows]

    @store_operation
    def transactions_between(self, start, end) -> list[StockTransaction]:
        """All transactions with start <= occurred_at <= end, newest first."""
        try:
            start = normalize_timestamp(start)
            end = normalize_timestamp(end)
        except ValueError:
            raise ValidationError("invalid time range")
        if start is None or end is None:
            raise ValidationError("start and end are required")
        if start > end:
            raise ValidationError("start must not be after end")
        return (
            self.session.query(StockTransaction)
            .filter(StockTransaction.occurred_at >= start, StockTransaction.occurred_at <= end)
            .order_by(StockTransaction.occurred_at.desc(), StockTransaction.id.desc())
            .all()
        )

    @store_operation
    def recent(self, limit: int = 20) -> list[StockTransaction]:
        return (
            self.session.query(StockTransaction)
            .order_by(StockTransaction.occurred_at.desc(), StockTransaction.id.desc())
            .limit(limit)
            .all()
        )

    @store_operation
    def count_for_product(self, product_id: int) -> int:
        return int(
            self.session.query(func.count(StockTransaction.id))
            .filter(StockTransaction.product_id == product_id)
            .scalar()
            or 0
        )

    def delete_for_product(self, product_id: int) -> int:
        """
        Remove every ledger row of a product without committing.

        Only the catalog calls this, inside its own product deletion unit.
        """
        return (
            self.session.query(StockTransaction)
            .filter(StockTransaction.product_id == product_id)
            .delete(synchronize_session=False)
        )

    @store_operation
    def prune(self, older_than) -> int:
        """
        Delete ledger rows with occurred_at < older_than and return the count.

        WARNING: baseline ADJUST rows are not protected and Product.stock is
        not re-synced. Pruning past a product's latest ADJUST changes what
        current_stock() derives for it.
        """
        try:
            cutoff = normalize_timestamp(older_than)
        except ValueError:
            raise ValidationError("invalid older_than")
        if cutoff is None:
            raise ValidationError("older_than is required")
        deleted = (
            self.session.query(StockTransaction)
            .filter(StockTransaction.occurred_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.session.commit()
        self.log.info("stock ledger pruned older_than=%s deleted=%s", cutoff, deleted)
        return int(deleted)
