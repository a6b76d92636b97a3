# Overview: Pytest coverage for unit definitions and quantity conversion.

import pytest

from adminku.models import TX_ADD
from adminku.services.unit_service import (
    Conversion,
    DuplicateNameError,
    IncompatibleUnitsError,
    InexactConversionError,
    InvalidBaseUnitError,
    InvalidConversionFactorError,
    UnitInUseError,
)
from adminku.validation import NotFoundError, ValidationError


class TestCreateUnit:

    def test_base_unit_forces_factor_one(self, services):
        unit = services.units.create("gr", None, 500)
        assert unit.is_base_unit is True
        assert unit.base_unit == "gr"
        assert unit.conversion_factor == 1

    def test_base_unit_naming_itself(self, services):
        unit = services.units.create("liter", "liter")
        assert unit.is_base_unit is True

    def test_derived_unit(self, services, gram_units):
        kg = gram_units["kg"]
        assert kg.is_base_unit is False
        assert kg.base_unit == "gr"
        assert kg.conversion_factor == 1000
        assert kg.display_text == "kg (1000 gr)"

    def test_duplicate_name_rejected(self, services, gram_units):
        with pytest.raises(DuplicateNameError):
            services.units.create("kg", "gr", 1000)

    def test_missing_base_rejected(self, services):
        with pytest.raises(InvalidBaseUnitError):
            services.units.create("kg", "gr", 1000)

    def test_derived_unit_cannot_be_a_base(self, services, gram_units):
        """Derivation is one level deep; no chains."""
        with pytest.raises(InvalidBaseUnitError):
            services.units.create("ton", "kg", 1000)

    @pytest.mark.parametrize("factor", [0, -5, 1.5, True, "10", 1_000_001])
    def test_invalid_factor_rejected(self, services, gram_units, factor):
        with pytest.raises(InvalidConversionFactorError):
            services.units.create("weird", "gr", factor)

    def test_blank_name_rejected(self, services):
        with pytest.raises(ValidationError):
            services.units.create("   ")

    def test_derived_unit_with_factor_one_rejected(self, services, gram_units):
        """Factor 1 belongs to base units only."""
        with pytest.raises(InvalidConversionFactorError):
            services.units.create("gram", "gr", 1)
        with pytest.raises(NotFoundError):
            services.units.get("gram")


class TestConvert:

    def test_kg_to_gram(self, services, gram_units):
        result = services.units.convert(2, "kg", "gr")
        assert result == Conversion(quantity=2000, remainder=0, base_unit="gr")
        assert result.exact
        assert services.units.to_base(3, "kg") == 3000

    def test_gram_to_kg_reports_remainder(self, services, gram_units):
        result = services.units.convert(2500, "gr", "kg")
        assert result.quantity == 2
        assert result.remainder == 500
        assert not result.exact

    def test_exact_mode_rejects_remainder(self, services, gram_units):
        with pytest.raises(InexactConversionError) as excinfo:
            services.units.convert(2500, "gr", "kg", exact=True)
        assert excinfo.value.conversion.remainder == 500

    def test_negative_quantities_round_toward_zero(self, services, gram_units):
        result = services.units.convert(-2500, "gr", "kg")
        assert result.quantity == -2
        assert result.remainder == -500

    def test_derived_to_derived(self, services, gram_units):
        result = services.units.convert(3, "kg", "ons")
        assert result.quantity == 30
        assert result.exact

    def test_by_id(self, services, gram_units):
        result = services.units.convert(1, gram_units["kg"].id, gram_units["gr"].id)
        assert result.quantity == 1000

    def test_round_trip_when_divisible(self, services, gram_units):
        there = services.units.convert(7, "kg", "ons")
        back = services.units.convert(there.quantity, "ons", "kg")
        assert back.quantity == 7 and back.exact

    def test_incompatible_units(self, services, gram_units, pcs):
        with pytest.raises(IncompatibleUnitsError):
            services.units.convert(1, "kg", "pcs")
        assert services.units.compatible("kg", "ons")
        assert not services.units.compatible("kg", "pcs")

    def test_unknown_unit(self, services, gram_units):
        with pytest.raises(NotFoundError):
            services.units.convert(1, "kg", "lbs")

    def test_non_integer_quantity(self, services, gram_units):
        with pytest.raises(ValidationError):
            services.units.convert(1.5, "kg", "gr")


class TestDeleteUnit:

    def test_delete_unused_unit(self, services, gram_units):
        services.units.delete(gram_units["ons"].id)
        with pytest.raises(NotFoundError):
            services.units.get("ons")

    def test_base_with_dependants_is_in_use(self, services, gram_units):
        with pytest.raises(UnitInUseError):
            services.units.delete(gram_units["gr"].id)

    def test_unit_referenced_by_product_is_in_use(self, services, rice, gram_units):
        services.units.delete(gram_units["ons"].id)
        services.units.delete(gram_units["kg"].id)
        with pytest.raises(UnitInUseError):
            services.units.delete(gram_units["gr"].id)

    def test_unit_referenced_by_ledger_is_in_use(self, services, rice, gram_units):
        services.catalog.adjust_stock(rice.id, gram_units["kg"].id, 1)
        with pytest.raises(UnitInUseError):
            services.units.delete(gram_units["kg"].id)


class TestUnitQueries:

    def test_list_family_and_search(self, services, gram_units, pcs):
        family = services.units.list_family("gr")
        assert [u.name for u in family] == ["gr", "ons", "kg"]
        assert [u.name for u in services.units.search("K")] == ["kg"]
        assert len(services.units.list_units()) == 4

    def test_rename_base_repoints_family(self, services, gram_units):
        services.units.update(gram_units["gr"].id, name="gram")
        assert services.units.get("kg").base_unit == "gram"
        assert services.units.convert(1, "kg", "gram").quantity == 1000

    def test_update_factor(self, services, gram_units):
        services.units.update(gram_units["kg"].id, conversion_factor=1024)
        assert services.units.convert(1, "kg", "gr").quantity == 1024

    def test_base_factor_is_fixed(self, services, gram_units):
        with pytest.raises(InvalidConversionFactorError):
            services.units.update(gram_units["gr"].id, conversion_factor=10)

    def test_derived_factor_cannot_drop_to_one(self, services, gram_units):
        with pytest.raises(InvalidConversionFactorError):
            services.units.update(gram_units["kg"].id, conversion_factor=1)
        assert services.units.get("kg").conversion_factor == 1000

    def test_factor_fixed_once_ledger_uses_unit(self, services, rice, gram_units):
        kg = gram_units["kg"]
        services.ledger.record(rice.id, kg.id, TX_ADD, 2)

        with pytest.raises(UnitInUseError):
            services.units.update(kg.id, conversion_factor=500)

        assert services.units.get("kg").conversion_factor == 1000
        assert services.ledger.current_stock(rice.id).quantity == 2000
        assert services.catalog.get(rice.id).stock == 2000
        # Renaming does not touch past quantities
        services.units.update(kg.id, name="kilo")
        assert services.units.get("kilo").conversion_factor == 1000

    def test_rename_collision(self, services, gram_units):
        with pytest.raises(DuplicateNameError):
            services.units.update(gram_units["ons"].id, name="kg")
