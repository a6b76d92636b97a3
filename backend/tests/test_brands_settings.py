# Overview: Pytest coverage for brands, key/value settings and default seeding.

import pytest

from adminku.models import Category, ConfigEntry, Unit
from adminku.services.bootstrap_service import seed_defaults
from adminku.services.brand_service import BrandInUseError
from adminku.services.settings_service import SettingsValidationError
from adminku.services.unit_service import DuplicateNameError
from adminku.validation import NotFoundError


class TestBrands:

    def test_create_rename_list(self, services):
        b = services.brands.create("Indomie")
        services.brands.create("ABC")
        services.brands.rename(b.id, "Indomie Goreng")
        assert [x.name for x in services.brands.list_brands()] == ["ABC", "Indomie Goreng"]
        assert [x.name for x in services.brands.list_brands("goreng")] == ["Indomie Goreng"]

    def test_duplicate_name(self, services):
        services.brands.create("ABC")
        with pytest.raises(DuplicateNameError):
            services.brands.create("ABC")

    def test_delete_in_use(self, services, gram_units, root_category):
        brand = services.brands.create("Bimoli")
        product = services.catalog.create("Minyak", root_category.id, gram_units["gr"].id, brand_id=brand.id)
        with pytest.raises(BrandInUseError):
            services.brands.delete(brand.id)

        services.catalog.delete(product.id)
        services.brands.delete(brand.id)
        with pytest.raises(NotFoundError):
            services.brands.get(brand.id)


class TestSettings:

    def test_defaults_and_override(self, services):
        assert services.settings.get("max_category_depth") is None
        assert services.settings.max_category_depth() == 5

        services.settings.ensure_defaults()
        assert services.settings.get("max_category_depth") == "5"

        services.settings.set("max_category_depth", "3")
        assert services.settings.max_category_depth() == 3
        assert services.settings.all() == {"max_category_depth": "3"}

    @pytest.mark.parametrize("value", ["-1", "three", None])
    def test_invalid_depth_rejected(self, services, value):
        with pytest.raises(SettingsValidationError):
            services.settings.set("max_category_depth", value)

    def test_corrupt_stored_value(self, services, db_session):
        db_session.add(ConfigEntry(key="max_category_depth", value="lots"))
        db_session.commit()
        with pytest.raises(SettingsValidationError):
            services.settings.max_category_depth()


class TestSeedDefaults:

    def test_seed_is_idempotent(self, services, db_session):
        first = seed_defaults(services, sample_categories=True)
        assert first["settings"] == 1
        assert first["units"] == 2
        assert first["categories"] == 10

        second = seed_defaults(services, sample_categories=True)
        assert second == {"settings": 0, "units": 0, "categories": 0}

        assert {u.name for u in db_session.query(Unit).all()} == {"pcs", "gr"}
        kaos = db_session.query(Category).filter_by(name="Kaos").one()
        assert services.categories.breadcrumb(kaos.id) == "Fashion > Wanita > Atasan > Kaos"
        assert kaos.level == 3

    def test_seed_without_samples(self, services, db_session):
        created = seed_defaults(services)
        assert created["categories"] == 0
        assert db_session.query(Category).count() == 0
