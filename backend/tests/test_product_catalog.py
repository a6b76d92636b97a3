# Overview: Pytest coverage for product CRUD, barcodes, stock adjustments and images.

import pytest

from adminku.models import (
    Product,
    ProductImage,
    StockTransaction,
    PRODUCT_STATUS_DISCONTINUED,
    PRODUCT_STATUS_INACTIVE,
    TX_ADD,
    TX_ADJUST,
    TX_REMOVE,
)
from adminku.services.product_service import DuplicateBarcodeError, InsufficientStockError
from adminku.services.stock_service import InvalidQuantityError
from adminku.services.unit_service import IncompatibleUnitsError
from adminku.validation import ConflictError, NotFoundError, ValidationError


class TestCreateProduct:

    def test_generated_barcodes_are_sequential(self, services, gram_units, root_category):
        gr = gram_units["gr"].id
        first = services.catalog.create("Beras", root_category.id, gr)
        second = services.catalog.create("Gula", root_category.id, gr)
        assert first.barcode == "BE-00000001"
        assert second.barcode == "BE-00000002"
        assert first.stock == 0

    def test_sequence_ignores_hand_entered_barcodes(self, services, gram_units, root_category):
        gr = gram_units["gr"].id
        services.catalog.create("Manual", root_category.id, gr, barcode="8991234567890")
        services.catalog.create("Odd", root_category.id, gr, barcode="BE-12X")
        services.catalog.create("Jump", root_category.id, gr, barcode="BE-00000041")
        generated = services.catalog.create("Next", root_category.id, gr)
        assert generated.barcode == "BE-00000042"

    def test_duplicate_barcode(self, services, gram_units, root_category):
        gr = gram_units["gr"].id
        services.catalog.create("A", root_category.id, gr, barcode="8991234567890")
        with pytest.raises(DuplicateBarcodeError):
            services.catalog.create("B", root_category.id, gr, barcode="8991234567890")

    def test_references_must_exist(self, services, gram_units, root_category):
        gr = gram_units["gr"].id
        with pytest.raises(NotFoundError):
            services.catalog.create("A", 9999, gr)
        with pytest.raises(NotFoundError):
            services.catalog.create("A", root_category.id, 9999)
        with pytest.raises(NotFoundError):
            services.catalog.create("A", root_category.id, gr, brand_id=9999)

    def test_price_rules(self, services, gram_units, root_category):
        with pytest.raises(ValidationError):
            services.catalog.create(
                "A", root_category.id, gram_units["gr"].id, sell_price_cents=-1
            )
        product = services.catalog.create(
            "A", root_category.id, gram_units["gr"].id, buy_price_cents=900, sell_price_cents=1200
        )
        assert product.to_dict()["sell_price_cents"] == 1200

    def test_with_brand(self, services, gram_units, root_category):
        brand = services.brands.create("Bimoli")
        product = services.catalog.create("Minyak", root_category.id, gram_units["gr"].id, brand_id=brand.id)
        assert product.brand.name == "Bimoli"


class TestAdjustStock:

    def test_add_and_remove(self, services, rice, gram_units):
        services.catalog.adjust_stock(rice.id, gram_units["kg"].id, 2, reason="Restock")
        tx = services.catalog.adjust_stock(rice.id, gram_units["gr"].id, -500)
        assert tx.type == TX_REMOVE
        assert tx.quantity == 500
        assert services.catalog.stock_level(rice.id).quantity == 1500
        assert services.catalog.get(rice.id).stock == 1500

    def test_insufficient_stock_writes_nothing(self, services, rice, gram_units):
        gr = gram_units["gr"].id
        services.catalog.adjust_stock(rice.id, gr, 5)
        before = services.ledger.count_for_product(rice.id)

        with pytest.raises(InsufficientStockError):
            services.catalog.adjust_stock(rice.id, gr, -10)

        assert services.ledger.count_for_product(rice.id) == before
        assert services.catalog.get(rice.id).stock == 5

    def test_removal_compared_in_base_units(self, services, rice, gram_units):
        services.catalog.adjust_stock(rice.id, gram_units["gr"].id, 999)
        with pytest.raises(InsufficientStockError):
            services.catalog.adjust_stock(rice.id, gram_units["kg"].id, -1)
        services.catalog.adjust_stock(rice.id, gram_units["ons"].id, -9)
        assert services.catalog.stock_level(rice.id).quantity == 99

    @pytest.mark.parametrize("delta", [0, 1.5, "2", None])
    def test_invalid_delta(self, services, rice, gram_units, delta):
        with pytest.raises(InvalidQuantityError):
            services.catalog.adjust_stock(rice.id, gram_units["gr"].id, delta)

    def test_incompatible_unit(self, services, rice, pcs):
        with pytest.raises(IncompatibleUnitsError):
            services.catalog.adjust_stock(rice.id, pcs.id, 1)

    def test_reset_stock_records_adjust(self, services, rice, gram_units):
        services.catalog.adjust_stock(rice.id, gram_units["gr"].id, 300)
        tx = services.catalog.reset_stock(rice.id, 3, unit_id=gram_units["kg"].id, note="Stock opname")
        assert tx.type == TX_ADJUST
        assert services.catalog.get(rice.id).stock == 3000
        services.catalog.adjust_stock(rice.id, gram_units["gr"].id, 1)
        assert services.catalog.get(rice.id).stock == 3001


class TestProductLifecycle:

    def test_set_status(self, services, rice):
        for status in (PRODUCT_STATUS_INACTIVE, PRODUCT_STATUS_DISCONTINUED):
            assert services.catalog.set_status(rice.id, status).status == status
        with pytest.raises(ValidationError):
            services.catalog.set_status(rice.id, "ARCHIVED")

    def test_update(self, services, rice, root_category):
        other = services.categories.create_category(root_category.id, "Beras Premium")
        services.catalog.update(rice.id, {"name": "Beras Pandan", "category_id": other.id, "sell_price_cents": 15000})
        product = services.catalog.get(rice.id)
        assert product.name == "Beras Pandan"
        assert product.category_id == other.id

    def test_update_rejects_unknown_fields(self, services, rice):
        with pytest.raises(ValidationError):
            services.catalog.update(rice.id, {"id": 5})

    def test_update_barcode_collision(self, services, rice, gram_units, root_category):
        other = services.catalog.create("Gula", root_category.id, gram_units["gr"].id)
        with pytest.raises(DuplicateBarcodeError):
            services.catalog.update(rice.id, {"barcode": other.barcode})

    def test_unit_change_only_without_ledger_rows(self, services, rice, gram_units):
        services.catalog.update(rice.id, {"unit_id": gram_units["kg"].id})
        assert services.catalog.get(rice.id).unit_id == gram_units["kg"].id

        services.catalog.adjust_stock(rice.id, gram_units["kg"].id, 1)
        with pytest.raises(ConflictError):
            services.catalog.update(rice.id, {"unit_id": gram_units["gr"].id})

    def test_delete_cascades_ledger_and_images(self, services, rice, gram_units, db_session):
        services.catalog.adjust_stock(rice.id, gram_units["gr"].id, 10)
        services.catalog.add_image(rice.id, "images/beras/1.jpg")
        product_id = rice.id

        services.catalog.delete(product_id)

        assert db_session.get(Product, product_id) is None
        assert db_session.query(StockTransaction).filter_by(product_id=product_id).count() == 0
        assert db_session.query(ProductImage).filter_by(product_id=product_id).count() == 0
        with pytest.raises(NotFoundError):
            services.catalog.get(product_id)


class TestCatalogQueries:

    def test_get_by_barcode_and_search(self, services, rice, gram_units, root_category):
        services.catalog.create("Gula Pasir", root_category.id, gram_units["gr"].id, barcode="8990001")
        assert services.catalog.get_by_barcode(rice.barcode).id == rice.id
        assert [p.name for p in services.catalog.search("gula")] == ["Gula Pasir"]
        assert [p.name for p in services.catalog.search("899")] == ["Gula Pasir"]
        assert services.catalog.search("") == []
        with pytest.raises(NotFoundError):
            services.catalog.get_by_barcode("missing")

    def test_list_products_paginates(self, services, gram_units, root_category):
        for name in ("C", "A", "B"):
            services.catalog.create(name, root_category.id, gram_units["gr"].id)

        everything = services.catalog.list_products()
        assert [p["name"] for p in everything["items"]] == ["A", "B", "C"]
        assert "pagination" not in everything

        page = services.catalog.list_products(page=2, per_page=2)
        assert [p["name"] for p in page["items"]] == ["C"]
        assert page["pagination"]["total"] == 3
        assert page["pagination"]["has_prev"] is True
        assert page["pagination"]["has_next"] is False

    def test_list_products_filters(self, services, rice):
        services.catalog.set_status(rice.id, PRODUCT_STATUS_INACTIVE)
        assert services.catalog.list_products(status="ACTIVE")["count"] == 0
        assert services.catalog.list_products(status=PRODUCT_STATUS_INACTIVE)["count"] == 1
        assert services.catalog.list_products(category_id=rice.category_id)["count"] == 1

    def test_images_keep_order(self, services, rice):
        first = services.catalog.add_image(rice.id, "a.jpg")
        second = services.catalog.add_image(rice.id, "b.jpg")
        assert [i.image_path for i in services.catalog.list_images(rice.id)] == ["a.jpg", "b.jpg"]
        assert (first.order_index, second.order_index) == (0, 1)
        first_id, second_id = first.id, second.id
        services.catalog.remove_image(first_id)
        assert [i.id for i in services.catalog.list_images(rice.id)] == [second_id]
        with pytest.raises(NotFoundError):
            services.catalog.remove_image(first_id)


def test_adjust_stock_records_add(services, rice, gram_units):
    tx = services.catalog.adjust_stock(rice.id, gram_units["gr"].id, 4)
    assert tx.type == TX_ADD
    assert tx.note is None
