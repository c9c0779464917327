"""
Service catalog, clothing types and customers over the API.
"""

from decimal import Decimal

from dryclean.models import ClothingTypePrice, InvoiceLine, ServiceConsumable
from dryclean.services import invoice_service


class TestServices:

    def test_create_with_consumables(self, client, db_session, detergent, moderator_headers):
        resp = client.post("/api/services", json={
            "name": "Dry Cleaning",
            "basePrice": "7000",
            "consumables": [{"inventoryItemId": detergent.id, "quantity": 0.25}],
        }, headers=moderator_headers)

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["basePrice"] == 7000
        assert data["isActive"] is True
        assert data["consumables"] == [{
            "inventoryItemId": detergent.id,
            "inventoryItemName": "Detergent",
            "unit": "L",
            "quantity": 0.25,
        }]

    def test_update_replaces_consumables(self, client, db_session, catalog, moderator_headers):
        washing = catalog["washing"]
        resp = client.put(f"/api/services/{washing.id}", json={"consumables": []}, headers=moderator_headers)
        assert resp.status_code == 200
        assert resp.get_json()["consumables"] == []
        assert db_session.query(ServiceConsumable).filter_by(service_id=washing.id).count() == 0

    def test_update_without_consumables_keeps_them(self, client, db_session, catalog, moderator_headers):
        washing = catalog["washing"]
        resp = client.put(f"/api/services/{washing.id}", json={"description": "Hand wash"}, headers=moderator_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()["consumables"]) == 1

    def test_unknown_consumable_item(self, client, db_session, moderator_headers):
        resp = client.post("/api/services", json={
            "name": "Steam",
            "basePrice": 1000,
            "consumables": [{"inventoryItemId": 999, "quantity": 1}],
        }, headers=moderator_headers)
        assert resp.status_code in (400, 404)

    def test_duplicate_name(self, client, db_session, catalog, moderator_headers):
        resp = client.post("/api/services", json={"name": "washing", "basePrice": 1}, headers=moderator_headers)
        assert resp.status_code == 409

    def test_negative_price(self, client, db_session, moderator_headers):
        resp = client.post("/api/services", json={"name": "Odd", "basePrice": -1}, headers=moderator_headers)
        assert resp.status_code == 400

    def test_delete_unused_service_removes_overrides(self, client, db_session, catalog, moderator_headers):
        ironing = catalog["ironing"]
        resp = client.delete(f"/api/services/{ironing.id}", headers=moderator_headers)
        assert resp.status_code == 200
        assert db_session.query(ClothingTypePrice).filter_by(service_id=ironing.id).count() == 0

    def test_delete_invoiced_service_conflicts(self, client, db_session, catalog, customer, moderator_headers):
        washing = catalog["washing"]
        invoice_service.create_invoice(customer.id, [{"serviceId": washing.id, "quantity": 1}])
        resp = client.delete(f"/api/services/{washing.id}", headers=moderator_headers)
        assert resp.status_code == 409

    def test_list_active_only(self, client, db_session, catalog, admin_headers):
        catalog["ironing"].is_active = False
        db_session.commit()
        names = [s["name"] for s in client.get("/api/services?active=true", headers=admin_headers).get_json()["services"]]
        assert names == ["Washing"]


class TestClothingTypes:

    def test_create_with_map_pricing(self, client, db_session, catalog, moderator_headers):
        washing, ironing = catalog["washing"], catalog["ironing"]
        resp = client.post("/api/clothing-types", json={
            "name": "Dress",
            "pricing": {str(washing.id): 6000, str(ironing.id): None},
        }, headers=moderator_headers)
        assert resp.status_code == 201
        assert resp.get_json()["pricing"] == {str(washing.id): 6000, str(ironing.id): None}

    def test_create_with_list_pricing(self, client, db_session, catalog, moderator_headers):
        washing = catalog["washing"]
        resp = client.post("/api/clothing-types", json={
            "name": "Blanket",
            "pricing": [{"serviceId": washing.id, "price": 0}],
        }, headers=moderator_headers)
        assert resp.status_code == 201
        assert resp.get_json()["pricing"] == {str(washing.id): 0}

    def test_unknown_service_in_pricing(self, client, db_session, catalog, moderator_headers):
        resp = client.post("/api/clothing-types", json={
            "name": "Curtain",
            "pricing": {"9999": 100},
        }, headers=moderator_headers)
        assert resp.status_code == 400

    def test_update_replaces_pricing(self, client, db_session, catalog, moderator_headers):
        suit, washing = catalog["suit"], catalog["washing"]
        resp = client.put(f"/api/clothing-types/{suit.id}", json={
            "pricing": {str(washing.id): 9000},
        }, headers=moderator_headers)
        assert resp.status_code == 200
        assert resp.get_json()["pricing"] == {str(washing.id): 9000}

    def test_delete_keeps_invoice_snapshot(self, client, db_session, catalog, customer, moderator_headers):
        suit, washing = catalog["suit"], catalog["washing"]
        invoice = invoice_service.create_invoice(
            customer.id, [{"serviceId": washing.id, "clothingTypeId": suit.id, "quantity": 1}]
        )

        resp = client.delete(f"/api/clothing-types/{suit.id}", headers=moderator_headers)
        assert resp.status_code == 200

        line = db_session.query(InvoiceLine).filter_by(invoice_id=invoice.id).one()
        db_session.refresh(line)
        assert line.clothing_type_id is None
        assert line.clothing_type_name == "Suit"
        assert line.unit_price == 8000


class TestCustomers:

    def test_crud(self, client, db_session, admin_headers):
        created = client.post("/api/customers", json={"name": " Baraka ", "phone": "0755000111"}, headers=admin_headers)
        assert created.status_code == 201
        customer_id = created.get_json()["id"]
        assert created.get_json()["name"] == "Baraka"

        updated = client.put(f"/api/customers/{customer_id}", json={"address": "Mikocheni"}, headers=admin_headers)
        assert updated.get_json()["address"] == "Mikocheni"

        found = client.get("/api/customers?q=0755", headers=admin_headers).get_json()["customers"]
        assert [c["id"] for c in found] == [customer_id]

        assert client.delete(f"/api/customers/{customer_id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/customers/{customer_id}", headers=admin_headers).status_code == 404

    def test_name_required(self, client, db_session, admin_headers):
        resp = client.post("/api/customers", json={"phone": "0755"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_delete_with_invoices_conflicts(self, client, db_session, catalog, customer, admin_headers):
        invoice_service.create_invoice(customer.id, [{"serviceId": catalog["ironing"].id, "quantity": Decimal("1")}])
        resp = client.delete(f"/api/customers/{customer.id}", headers=admin_headers)
        assert resp.status_code == 409
