"""Product store tests: catalog queries and administrative edits."""

import pytest

from storefront.errors import NotFound, ValidationError
from storefront.models import CartItem, Product
from storefront.schemas import OrderLineRequest, ProductCreate, ProductUpdate
from storefront.services.cart_service import CartService
from storefront.services.order_service import OrderService
from storefront.services.product_service import ProductService


@pytest.fixture
def service():
    return ProductService()


class TestCatalog:
    def test_list_in_id_order(self, db, service, make_product):
        first = make_product(name="First")
        second = make_product(name="Second")

        assert [p.id for p in service.list_products(db)] == [first.id, second.id]

    def test_featured_filter(self, db, service, make_product):
        make_product(name="Plain")
        star = make_product(name="Star", is_featured=True)

        assert [p.id for p in service.list_products(db, featured=True)] == [star.id]

    def test_bestseller_order(self, db, service, make_product):
        slow = make_product(name="Slow", total_sold=1)
        hot = make_product(name="Hot", total_sold=40)
        warm = make_product(name="Warm", total_sold=7)

        assert [p.id for p in service.list_products(db, bestseller=True)] == [hot.id, warm.id, slow.id]

    def test_get_missing_product(self, db, service):
        with pytest.raises(NotFound):
            service.get_product(db, 404)


class TestAdministration:
    def test_create_product(self, db, service):
        product = service.create_product(db, ProductCreate(name="Ube Dream", price=159, stock=12))

        assert product.id is not None
        assert product.total_sold == 0
        assert product.is_featured is False
        assert db.get(Product, product.id).stock == 12

    def test_partial_update(self, db, service, make_product):
        product = make_product(name="Old", price=100, stock=3)

        updated = service.update_product(db, product.id, ProductUpdate(price=120))

        assert updated.price == 120
        assert updated.name == "Old"
        assert updated.stock == 3

    def test_update_rejects_null_required_field(self, db, service, make_product):
        product = make_product(name="Keep Me")

        with pytest.raises(ValidationError):
            service.update_product(db, product.id, ProductUpdate(name=None))

        db.refresh(product)
        assert product.name == "Keep Me"

    def test_total_sold_correction(self, db, service, make_product):
        product = make_product(total_sold=10)

        assert service.update_product(db, product.id, ProductUpdate(total_sold=8)).total_sold == 8

    def test_delete_removes_cart_lines(self, db, service, customer, make_product):
        product_id = make_product().id
        CartService().add_item(db, customer.id, product_id, 2)

        service.delete_product(db, product_id)

        assert db.get(Product, product_id) is None
        assert db.query(CartItem).count() == 0

    def test_delete_refused_when_ordered(self, db, service, customer, make_product):
        product = make_product(stock=5)
        OrderService().create_order(
            db,
            [OrderLineRequest(product_id=product.id, quantity=1, price=149)],
            total=149,
            payment_method="COD",
            user_id=customer.id
        )

        with pytest.raises(ValidationError):
            service.delete_product(db, product.id)
        assert db.get(Product, product.id) is not None

    def test_toggle_featured(self, db, service, make_product):
        product = make_product(is_featured=False)

        assert service.toggle_featured(db, product.id).is_featured is True
        assert service.toggle_featured(db, product.id).is_featured is False

    def test_duplicate_starts_without_sales(self, db, service, make_product):
        original = make_product(name="Berry Blast", price=159, stock=8, total_sold=30, is_featured=True)

        duplicate = service.duplicate_product(db, original.id)

        assert duplicate.id != original.id
        assert duplicate.name == "Berry Blast (Copy)"
        assert (duplicate.price, duplicate.stock, duplicate.is_featured) == (159, 8, True)
        assert duplicate.total_sold == 0

    def test_missing_product_edits(self, db, service):
        with pytest.raises(NotFound):
            service.update_product(db, 1, ProductUpdate(price=1))
        with pytest.raises(NotFound):
            service.delete_product(db, 1)
        with pytest.raises(NotFound):
            service.duplicate_product(db, 1)


class TestStockAdjustment:
    def test_increment(self, db, service, make_product):
        product = make_product(stock=2)

        assert service.adjust_stock(db, product.id, "increment", 3).stock == 5

    def test_decrement(self, db, service, make_product):
        product = make_product(stock=5)

        assert service.adjust_stock(db, product.id, "decrement").stock == 4

    def test_decrement_clamps_at_zero(self, db, service, make_product):
        product = make_product(stock=2)

        assert service.adjust_stock(db, product.id, "decrement", 5).stock == 0
        assert service.adjust_stock(db, product.id, "decrement").stock == 0

    def test_adjust_does_not_touch_sales(self, db, service, make_product):
        product = make_product(stock=2, total_sold=4)

        assert service.adjust_stock(db, product.id, "increment", 1).total_sold == 4

    def test_invalid_operation(self, db, service, make_product):
        product = make_product()

        with pytest.raises(ValidationError):
            service.adjust_stock(db, product.id, "reset")
        with pytest.raises(ValidationError):
            service.adjust_stock(db, product.id, "increment", 0)

    def test_missing_product(self, db, service):
        with pytest.raises(NotFound):
            service.adjust_stock(db, 999, "increment")
