"""
Expense tests: multipart receipt upload, filters, category summary and
receipt cleanup on delete.
"""

import io
import os
from datetime import date

from sqlalchemy.exc import IntegrityError

from dryclean.extensions import db
from dryclean.models import Expense


def _upload(client, headers, **fields):
    data = {"category": "Rent", "amount": "250000", "date": "2025-03-01", **fields}
    return client.post("/api/expenses", data=data, headers=headers, content_type="multipart/form-data")


class TestCreate:

    def test_create_with_receipt(self, app, client, db_session, admin_headers):
        resp = _upload(client, admin_headers, receipt=(io.BytesIO(b"%PDF-1.4 test"), "march rent.pdf"))
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["amount"] == 250000
        assert data["date"] == "2025-03-01"
        assert data["receiptUrl"].startswith("/uploads/receipts/")
        assert data["receiptUrl"].endswith(".pdf")

        stored = data["receiptUrl"].rsplit("/", 1)[1]
        assert os.path.exists(os.path.join(app.config["UPLOAD_FOLDER"], stored))

        download = client.get(data["receiptUrl"], headers=admin_headers)
        assert download.status_code == 200
        assert download.data == b"%PDF-1.4 test"

    def test_receipt_requires_auth(self, client, db_session, admin_headers):
        data = _upload(client, admin_headers, receipt=(io.BytesIO(b"img"), "r.png")).get_json()
        assert client.get(data["receiptUrl"]).status_code == 401

    def test_json_without_receipt(self, client, db_session, moderator_headers):
        resp = client.post("/api/expenses", json={
            "category": "Utilities", "amount": 45000, "date": "2025-03-02", "description": "Water",
        }, headers=moderator_headers)
        assert resp.status_code == 201
        assert resp.get_json()["receiptUrl"] is None

    def test_bad_extension(self, client, db_session, admin_headers):
        resp = _upload(client, admin_headers, receipt=(io.BytesIO(b"MZ"), "virus.exe"))
        assert resp.status_code == 400
        assert db_session.query(Expense).count() == 0

    def test_amount_must_be_positive(self, client, db_session, admin_headers):
        assert _upload(client, admin_headers, amount="0").status_code == 400

    def test_missing_date(self, client, db_session, admin_headers):
        resp = client.post("/api/expenses", json={"category": "Rent", "amount": 1}, headers=admin_headers)
        assert resp.status_code == 400


class TestQueries:

    def _seed(self, db_session):
        db_session.add_all([
            Expense(category="Rent", amount=250000, expense_date=date(2025, 3, 1)),
            Expense(category="Utilities", amount=40000, expense_date=date(2025, 3, 5)),
            Expense(category="Utilities", amount=35000, expense_date=date(2025, 4, 5)),
        ])
        db_session.commit()

    def test_filters(self, client, db_session, admin_headers):
        self._seed(db_session)

        utilities = client.get("/api/expenses?category=utilities", headers=admin_headers).get_json()
        assert len(utilities["expenses"]) == 2
        assert utilities["total"] == 75000

        march = client.get("/api/expenses?start=2025-03-01&end=2025-03-31", headers=admin_headers).get_json()
        assert march["total"] == 290000

    def test_bad_date_filter(self, client, db_session, admin_headers):
        assert client.get("/api/expenses?start=yesterday", headers=admin_headers).status_code == 400

    def test_categories(self, client, db_session, admin_headers):
        self._seed(db_session)
        data = client.get("/api/expenses/categories", headers=admin_headers).get_json()
        assert data["categories"] == [
            {"category": "Rent", "count": 1, "total": 250000},
            {"category": "Utilities", "count": 2, "total": 75000},
        ]


class TestUpdateDelete:

    def test_replace_receipt_and_delete(self, app, client, db_session, admin_headers):
        created = _upload(client, admin_headers, receipt=(io.BytesIO(b"one"), "one.png")).get_json()
        first = created["receiptUrl"].rsplit("/", 1)[1]

        resp = client.put(
            f"/api/expenses/{created['id']}",
            data={"amount": "260000", "receipt": (io.BytesIO(b"two"), "two.jpg")},
            headers=admin_headers,
            content_type="multipart/form-data",
        )
        assert resp.status_code == 200
        updated = resp.get_json()
        second = updated["receiptUrl"].rsplit("/", 1)[1]
        assert updated["amount"] == 260000
        assert second != first
        assert not os.path.exists(os.path.join(app.config["UPLOAD_FOLDER"], first))

        assert client.delete(f"/api/expenses/{created['id']}", headers=admin_headers).status_code == 200
        assert not os.path.exists(os.path.join(app.config["UPLOAD_FOLDER"], second))
        assert client.get(f"/api/expenses/{created['id']}", headers=admin_headers).status_code == 404

    def test_failed_update_keeps_old_receipt_only(self, app, client, db_session, admin_headers, monkeypatch):
        created = _upload(client, admin_headers, receipt=(io.BytesIO(b"one"), "one.png")).get_json()
        first = created["receiptUrl"].rsplit("/", 1)[1]
        folder = app.config["UPLOAD_FOLDER"]
        before = set(os.listdir(folder))

        real_commit = db.session.commit
        saved = []

        def failing_commit():
            # Session bookkeeping commits during auth; fail once the new receipt is on disk
            new_files = set(os.listdir(folder)) - before
            if not new_files:
                return real_commit()
            saved.extend(new_files)
            raise IntegrityError("UPDATE expenses", {}, Exception("constraint failed"))

        monkeypatch.setattr(db.session, "commit", failing_commit)
        resp = client.put(
            f"/api/expenses/{created['id']}",
            data={"receipt": (io.BytesIO(b"two"), "two.jpg")},
            headers=admin_headers,
            content_type="multipart/form-data",
        )
        monkeypatch.undo()

        assert resp.status_code == 409
        assert saved
        assert set(os.listdir(folder)) == before
        db_session.expire_all()
        assert db_session.get(Expense, created["id"]).receipt_filename == first
