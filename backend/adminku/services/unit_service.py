# Overview: Service-layer operations for units of measure and quantity conversion.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..models import Unit, Product, StockTransaction
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    is_strict_int,
    validate_name,
)
from .base import BaseService
from .concurrency import store_operation
"""
Unit Graph Invariants (authoritative)

- A base unit names itself in base_unit and has conversion_factor 1; a
  derived unit always has a factor above 1, so factor 1 marks exactly the
  base units.
- A derived unit's base_unit names an existing base unit; derived units are
  never used as a base, so the graph has depth one and cannot cycle.
- Conversion is integer arithmetic through the shared base:
      in_base = quantity * from.factor
      result, remainder = divmod(|in_base|, to.factor), sign restored
  The remainder is always returned to the caller; exact=True turns a
  non-zero remainder into an error.
"""

MAX_UNIT_NAME_LENGTH = 50


class DuplicateNameError(ConflictError):
    pass


class InvalidBaseUnitError(ValidationError):
    pass


class InvalidConversionFactorError(ValidationError):
    pass


class IncompatibleUnitsError(ValidationError):
    pass


class InexactConversionError(ValidationError):
    def __init__(self, conversion: "Conversion"):
        super().__init__(
            f"conversion leaves a remainder of {conversion.remainder} {conversion.base_unit}"
        )
        self.conversion = conversion


class UnitInUseError(ConflictError):
    pass


@dataclass(frozen=True)
class Conversion:
    quantity: int
    remainder: int
    base_unit: str

    @property
    def exact(self) -> bool:
        return self.remainder == 0


def base_name(unit: Unit) -> str:
    return unit.name if unit.is_base_unit else unit.base_unit


def convert_between(quantity: int, from_unit: Unit, to_unit: Unit) -> Conversion:
    """
    Pure conversion between two already-loaded units.

    Rounds toward zero; the dropped amount (in base units, carrying the sign
    of quantity) is returned as the remainder.
    """
    if base_name(from_unit) != base_name(to_unit):
        raise IncompatibleUnitsError(
            f"{from_unit.name} ({base_name(from_unit)}) and {to_unit.name} "
            f"({base_name(to_unit)}) do not share a base unit"
        )
    in_base = quantity * from_unit.conversion_factor
    whole, rest = divmod(abs(in_base), to_unit.conversion_factor)
    sign = -1 if in_base < 0 else 1
    return Conversion(quantity=sign * whole, remainder=sign * rest, base_unit=base_name(from_unit))


class UnitService(BaseService):

    def _max_factor(self) -> int:
        return int(self.ctx.config.get("MAX_CONVERSION_FACTOR", 1_000_000))

    def _lookup(self, unit_ref) -> Unit | None:
        if isinstance(unit_ref, Unit):
            return unit_ref
        if is_strict_int(unit_ref):
            return self.session.get(Unit, unit_ref)
        if isinstance(unit_ref, str):
            return self.session.query(Unit).filter(Unit.name == unit_ref.strip()).first()
        raise ValidationError(f"invalid unit reference {unit_ref!r}")

    @store_operation
    def get(self, unit_ref) -> Unit:
        """Resolve a unit by id or by name."""
        unit = self._lookup(unit_ref)
        if unit is None:
            raise NotFoundError("unit", unit_ref)
        return unit

    @store_operation
    def list_units(self) -> list[Unit]:
        return (
            self.session.query(Unit)
            .order_by(Unit.is_base_unit.desc(), Unit.base_unit.asc(), Unit.conversion_factor.asc(), Unit.name.asc())
            .all()
        )

    @store_operation
    def list_family(self, base_unit_name: str) -> list[Unit]:
        """The base unit plus every unit derived from it, smallest factor first."""
        return (
            self.session.query(Unit)
            .filter(Unit.base_unit == base_unit_name)
            .order_by(Unit.conversion_factor.asc(), Unit.name.asc())
            .all()
        )

    @store_operation
    def search(self, query: str) -> list[Unit]:
        needle = (query or "").strip().lower()
        q = self.session.query(Unit)
        if needle:
            q = q.filter(func.lower(Unit.name).contains(needle, autoescape=True))
        return q.order_by(Unit.name.asc()).all()

    def _check_factor(self, conversion_factor) -> int:
        if not is_strict_int(conversion_factor) or conversion_factor < 1:
            raise InvalidConversionFactorError("conversion_factor must be a positive integer")
        if conversion_factor == 1:
            raise InvalidConversionFactorError("a derived unit's conversion_factor must be greater than 1")
        if conversion_factor > self._max_factor():
            raise InvalidConversionFactorError(
                f"conversion_factor cannot exceed {self._max_factor()}"
            )
        return conversion_factor

    def _has_transactions(self, unit: Unit) -> bool:
        return (
            self.session.query(StockTransaction.id)
            .filter(StockTransaction.unit_id == unit.id)
            .first()
            is not None
        )

    @store_operation
    def create(self, name: str, base_unit_name: str | None = None, conversion_factor=1) -> Unit:
        name = validate_name(name, max_length=MAX_UNIT_NAME_LENGTH)

        if self.session.query(Unit).filter(Unit.name == name).first() is not None:
            raise DuplicateNameError(f"unit {name!r} already exists")

        if base_unit_name is not None:
            base_unit_name = base_unit_name.strip()

        if not base_unit_name or base_unit_name == name:
            unit = Unit(name=name, base_unit=name, conversion_factor=1, is_base_unit=True)
        else:
            base = self.session.query(Unit).filter(Unit.name == base_unit_name).first()
            if base is None or not base.is_base_unit:
                raise InvalidBaseUnitError(f"{base_unit_name!r} is not an existing base unit")
            unit = Unit(
                name=name,
                base_unit=base.name,
                conversion_factor=self._check_factor(conversion_factor),
                is_base_unit=False,
            )

        self.session.add(unit)
        self.session.commit()
        self.log.info("unit created name=%s base=%s factor=%s", unit.name, unit.base_unit, unit.conversion_factor)
        return unit

    @store_operation
    def update(self, unit_id: int, *, name: str | None = None, conversion_factor=None) -> Unit:
        """
        Rename a unit and/or change a derived unit's factor.

        Renaming a base unit re-points every derived unit at the new name so
        the family stays intact.
        """
        unit = self.get(unit_id)

        new_name = unit.name
        if name is not None:
            new_name = validate_name(name, max_length=MAX_UNIT_NAME_LENGTH)
            if new_name != unit.name:
                clash = self.session.query(Unit).filter(Unit.name == new_name, Unit.id != unit.id).first()
                if clash is not None:
                    raise DuplicateNameError(f"unit {new_name!r} already exists")

        if conversion_factor is not None:
            if unit.is_base_unit and conversion_factor != 1:
                raise InvalidConversionFactorError("a base unit's conversion_factor is always 1")
            if not unit.is_base_unit and conversion_factor != unit.conversion_factor:
                factor = self._check_factor(conversion_factor)
                if self._has_transactions(unit):
                    raise UnitInUseError(
                        f"unit {unit.name!r} is referenced by stock transactions; its factor is fixed"
                    )
                unit.conversion_factor = factor

        if new_name != unit.name:
            old_name = unit.name
            if unit.is_base_unit:
                (
                    self.session.query(Unit)
                    .filter(Unit.base_unit == old_name)
                    .update({Unit.base_unit: new_name}, synchronize_session="fetch")
                )
            unit.name = new_name

        self.session.commit()
        self.log.info("unit updated id=%s name=%s factor=%s", unit.id, unit.name, unit.conversion_factor)
        return unit

    @store_operation
    def delete(self, unit_id: int) -> None:
        unit = self.get(unit_id)

        if self.session.query(Product.id).filter(Product.unit_id == unit.id).first() is not None:
            raise UnitInUseError(f"unit {unit.name!r} is used by products")

        dependant = (
            self.session.query(Unit.id)
            .filter(Unit.base_unit == unit.name, Unit.id != unit.id)
            .first()
        )
        if dependant is not None:
            raise UnitInUseError(f"unit {unit.name!r} is the base of other units")

        if self._has_transactions(unit):
            raise UnitInUseError(f"unit {unit.name!r} is referenced by stock transactions")

        name = unit.name
        self.session.delete(unit)
        self.session.commit()
        self.log.info("unit deleted id=%s name=%s", unit_id, name)

    def compatible(self, a, b) -> bool:
        return base_name(self.get(a)) == base_name(self.get(b))

    def convert(self, quantity: int, from_unit, to_unit, *, exact: bool = False) -> Conversion:
        """
        Convert quantity between two units of the same family.

        Units may be given as ids, names or Unit rows.
        """
        if not is_strict_int(quantity):
            raise ValidationError("quantity must be an integer")
        result = convert_between(quantity, self.get(from_unit), self.get(to_unit))
        if exact and not result.exact:
            raise InexactConversionError(result)
        return result

    def to_base(self, quantity: int, unit_ref) -> int:
        unit = self.get(unit_ref)
        return quantity * unit.conversion_factor
