"""HTTP surface: envelope, owner-key transport, auth gates."""

from config.settings import CART_TOKEN_COOKIE, CART_TOKEN_HEADER

from conftest import CUSTOMER_INFO, auth_headers

TOKEN = {CART_TOKEN_HEADER: "browser-1"}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


class TestAnonymousCart:
    def test_first_visit_mints_token(self, client):
        r = client.get("/api/v1/cart")
        assert r.status_code == 200
        token = r.headers[CART_TOKEN_HEADER]
        assert r.cookies.get(CART_TOKEN_COOKIE) == token

        body = r.json()
        assert body["success"] is True
        assert body["data"]["owner"] == {"type": "anonymous", "token": token}
        assert body["data"]["items"] == []
        assert body["data"]["totalPayable"] == 0

    def test_cookie_is_reused(self, client, make_product):
        product = make_product(price=100000)
        token = client.get("/api/v1/cart").headers[CART_TOKEN_HEADER]
        r = client.post("/api/v1/cart/add", json={"productId": product.id, "quantity": 1})
        assert r.json()["data"]["cartToken"] == token
        assert CART_TOKEN_HEADER not in r.headers

    def test_priced_cart_shape(self, client, make_product, make_coupon):
        make_coupon(code="SAVE10")
        product = make_product(price=100000, quantity=5, sku="TEA-001")
        client.post("/api/v1/cart/add", json={"productId": product.id, "quantity": 2}, headers=TOKEN)
        r = client.post("/api/v1/cart/apply-coupon", json={"code": "save10"}, headers=TOKEN)

        data = r.json()["data"]
        assert r.json()["success"] is True
        assert data["items"] == [{
            "productId": product.id, "sku": "TEA-001", "name": product.name, "image": "",
            "price": 100000, "quantity": 2, "lineTotal": 200000,
        }]
        assert data["coupon"] == {"code": "SAVE10", "discountType": "percent"}
        assert (data["subtotal"], data["computedDiscount"], data["totalPayable"]) == (200000, 20000, 180000)
        assert data["currency"] == "VND"

    def test_item_update_and_remove(self, client, make_product):
        product = make_product(quantity=3)
        client.post("/api/v1/cart/add", json={"productId": product.id}, headers=TOKEN)
        r = client.patch("/api/v1/cart/item", json={"productId": product.id, "quantity": 10}, headers=TOKEN)
        assert r.json()["data"]["items"][0]["quantity"] == 3

        r = client.delete("/api/v1/cart/item", params={"productId": product.id}, headers=TOKEN)
        assert r.json()["data"]["items"] == []
        r = client.delete("/api/v1/cart/item", params={"productId": product.id}, headers=TOKEN)
        assert r.status_code == 200

    def test_clear_and_remove_coupon(self, client, make_product, make_coupon):
        make_coupon()
        product = make_product()
        client.post("/api/v1/cart/add", json={"productId": product.id}, headers=TOKEN)
        client.post("/api/v1/cart/apply-coupon", json={"code": "SAVE10"}, headers=TOKEN)
        r = client.post("/api/v1/cart/remove-coupon", headers=TOKEN)
        assert r.json()["data"]["coupon"] is None
        r = client.post("/api/v1/cart/clear", headers=TOKEN)
        assert r.json()["data"]["items"] == []


class TestErrorEnvelope:
    def test_coupon_rejection(self, client, make_product):
        product = make_product()
        client.post("/api/v1/cart/add", json={"productId": product.id}, headers=TOKEN)
        r = client.post("/api/v1/cart/apply-coupon", json={"code": "NOPE"}, headers=TOKEN)
        assert r.status_code == 400
        assert r.json() == {"success": False, "message": "coupon rejected: coupon not found or inactive"}

    def test_bad_quantity(self, client, make_product):
        product = make_product()
        r = client.post("/api/v1/cart/add", json={"productId": product.id, "quantity": 0}, headers=TOKEN)
        assert r.status_code == 400
        assert r.json()["success"] is False

    def test_malformed_body(self, client):
        r = client.post("/api/v1/cart/add", json={"productId": "abc"}, headers=TOKEN)
        assert r.status_code == 422
        assert r.json()["success"] is False

    def test_missing_line(self, client, make_product):
        product = make_product()
        r = client.patch("/api/v1/cart/item", json={"productId": product.id, "quantity": 1}, headers=TOKEN)
        assert r.status_code == 404
        assert r.json()["message"] == "product not found in cart"

    def test_out_of_stock(self, client, make_product):
        product = make_product(quantity=0)
        r = client.post("/api/v1/cart/add", json={"productId": product.id}, headers=TOKEN)
        assert r.status_code == 409
        assert r.json()["message"] == "out of stock"


class TestCheckoutFlow:
    def test_checkout_and_lookup(self, client, make_product):
        product = make_product(price=100000, quantity=5)
        client.post("/api/v1/cart/add", json={"productId": product.id, "quantity": 2}, headers=TOKEN)
        r = client.post("/api/v1/cart/checkout", json=CUSTOMER_INFO, headers=TOKEN)
        assert r.status_code == 200
        order = r.json()["data"]
        assert order["total"] == 200000
        assert order["customer"]["fullName"] == CUSTOMER_INFO["fullName"]

        r = client.get(f"/api/v1/orders/{order['orderCode']}", headers=TOKEN)
        assert r.json()["data"]["id"] == order["id"]
        r = client.get(f"/api/v1/orders/{order['orderCode']}", headers={CART_TOKEN_HEADER: "someone-else"})
        assert r.status_code == 404

        r = client.get("/api/v1/cart", headers=TOKEN)
        assert r.json()["data"]["items"] == []

    def test_checkout_missing_field(self, client, make_product):
        product = make_product()
        client.post("/api/v1/cart/add", json={"productId": product.id}, headers=TOKEN)
        r = client.post("/api/v1/cart/checkout", json=dict(CUSTOMER_INFO, phone=""), headers=TOKEN)
        assert r.status_code == 400
        assert r.json()["message"] == "missing field: phone"

    def test_checkout_empty_cart(self, client):
        r = client.post("/api/v1/cart/checkout", json=CUSTOMER_INFO, headers=TOKEN)
        assert r.status_code == 400
        assert r.json()["message"] == "cart is empty"


class TestAuthenticated:
    def test_user_cart_ignores_token(self, client, customer, make_product):
        product = make_product()
        headers = dict(auth_headers(customer), **TOKEN)
        r = client.post("/api/v1/cart/add", json={"productId": product.id}, headers=headers)
        assert r.json()["data"]["owner"] == {"type": "user", "id": customer.id}
        assert r.json()["data"]["cartToken"] is None

    def test_invalid_bearer_falls_back_to_anonymous(self, client):
        r = client.get("/api/v1/cart", headers={"Authorization": "Bearer nonsense", **TOKEN})
        assert r.json()["data"]["owner"] == {"type": "anonymous", "token": "browser-1"}

    def test_merge_requires_login(self, client):
        r = client.post("/api/v1/cart/merge", json={"fromCartToken": "browser-1"})
        assert r.status_code == 401
        assert r.json() == {"success": False, "message": "login required"}

    def test_merge(self, client, customer, make_product):
        product = make_product(quantity=4)
        client.post("/api/v1/cart/add", json={"productId": product.id, "quantity": 3}, headers=TOKEN)
        client.post("/api/v1/cart/add", json={"productId": product.id, "quantity": 2}, headers=auth_headers(customer))

        r = client.post("/api/v1/cart/merge", json={"fromCartToken": "browser-1"}, headers=auth_headers(customer))
        assert r.status_code == 200
        assert r.json()["data"]["items"][0]["quantity"] == 4

        r = client.get("/api/v1/cart", headers=TOKEN)
        assert r.json()["data"]["items"] == []

    def test_my_orders(self, client, customer, make_product):
        product = make_product()
        headers = auth_headers(customer)
        client.post("/api/v1/cart/add", json={"productId": product.id}, headers=headers)
        client.post("/api/v1/cart/checkout", json=CUSTOMER_INFO, headers=headers)

        r = client.get("/api/v1/orders/mine", headers=headers)
        orders = r.json()["data"]
        assert len(orders) == 1
        assert orders[0]["userId"] == customer.id

    def test_my_orders_requires_login(self, client):
        assert client.get("/api/v1/orders/mine").status_code == 401


class TestCouponCheck:
    def test_quick_check_has_no_side_effects(self, client, make_product, make_coupon):
        make_coupon()
        product = make_product(price=100000)
        client.post("/api/v1/cart/add", json={"productId": product.id, "quantity": 2}, headers=TOKEN)

        r = client.get("/api/v1/coupons/check", params={"code": "save10"}, headers=TOKEN)
        assert r.json()["data"]["valid"] is True
        assert r.json()["data"]["discount"] == 20000

        r = client.get("/api/v1/cart", headers=TOKEN)
        assert r.json()["data"]["coupon"] is None

    def test_quick_check_without_cart(self, client, make_coupon):
        make_coupon()
        r = client.get("/api/v1/coupons/check", params={"code": "SAVE10"})
        assert r.json()["data"]["reason"] == "cart is empty"


class TestAdmin:
    def test_admin_routes_need_admin(self, client, customer):
        assert client.post("/api/v1/admin/coupons", json={}).status_code == 401
        r = client.post("/api/v1/admin/coupons", json={}, headers=auth_headers(customer))
        assert r.status_code == 403

    def test_coupon_crud(self, client, make_user):
        headers = auth_headers(make_user(is_admin=True))
        r = client.post(
            "/api/v1/admin/coupons",
            json={"code": "spring", "discountType": "percent", "discountValue": 15, "maxDiscount": 30000},
            headers=headers,
        )
        assert r.status_code == 201
        coupon = r.json()["data"]
        assert coupon["code"] == "SPRING"

        r = client.patch(f"/api/v1/admin/coupons/{coupon['id']}", json={"active": False}, headers=headers)
        assert r.json()["data"]["active"] is False

        r = client.post(
            "/api/v1/admin/coupons",
            json={"code": "SPRING", "discountType": "percent", "discountValue": 5},
            headers=headers,
        )
        assert r.status_code == 409

        assert client.delete(f"/api/v1/admin/coupons/{coupon['id']}", headers=headers).status_code == 200
        assert client.get(f"/api/v1/admin/coupons/{coupon['id']}", headers=headers).status_code == 404

    def test_order_status(self, client, make_user, make_product):
        headers = auth_headers(make_user(is_admin=True))
        product = make_product(quantity=5)
        client.post("/api/v1/cart/add", json={"productId": product.id, "quantity": 2}, headers=TOKEN)
        order = client.post("/api/v1/cart/checkout", json=CUSTOMER_INFO, headers=TOKEN).json()["data"]

        r = client.patch(f"/api/v1/admin/orders/{order['id']}/status", json={"status": "confirmed"}, headers=headers)
        assert r.json()["data"]["status"] == "confirmed"
        assert r.json()["data"]["statusLogs"][0]["newValue"] == "confirmed"

        r = client.patch(f"/api/v1/admin/orders/{order['id']}/status", json={"status": "pending"}, headers=headers)
        assert r.status_code == 409

        r = client.get(f"/api/v1/orders/{order['orderCode']}", headers=headers)
        assert r.status_code == 200
