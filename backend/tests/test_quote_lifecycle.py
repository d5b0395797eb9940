# Overview: Pytest coverage for quote totals, status edges, deletion and conversion.

"""
Quote Lifecycle Tests

1. Totals are recomputed server-side; client totals are ignored
2. Status moves only along draft -> sent -> accepted | rejected
3. Only draft and sent quotes can be deleted
4. Conversion is allowed from sent or accepted, exactly once
5. Events are published after each committed change
6. A failed conversion or number allocation writes nothing
"""

import re

import pytest
from sqlalchemy.exc import OperationalError

from opsdesk.errors import ErrorKind
from opsdesk.models import DocumentSequence, Invoice, Quote
from opsdesk.services import lifecycle_service, quote_service
from opsdesk.services.concurrency import RetryPolicy
from opsdesk.services.document_service import INVOICE_PREFIX, QUOTE_PREFIX, format_document_number
from opsdesk.services.totals_service import compute_totals, parse_items
from opsdesk.time_utils import utcnow

from conftest import context_for, login, quote_body


QUOTE_NUMBER = re.compile(r"^QUO-\d{4}-\d{5}$")
INVOICE_NUMBER = re.compile(r"^INV-\d{4}-\d{5}$")


@pytest.fixture
def manager(app, db_session, users_a):
    return login(app, users_a["manager"])


def create(client, *items, **extra):
    response = client.post('/api/quotes', json=quote_body(*items, **extra))
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def set_status(client, quote_id, status):
    return client.patch(f'/api/quotes/{quote_id}/status', json={'status': status})


class TestTotals:

    def test_single_item_quote(self, manager, db_session, users_a):
        body = create(manager, (2, 100), tax=0, discount=0)

        quote = body["quote"]
        assert quote["subtotal"] == 200.0
        assert quote["total"] == 200.0
        assert QUOTE_NUMBER.match(quote["quote_number"])
        assert db_session.query(Quote).filter_by(
            tenant_id=users_a["manager"].tenant_id,
            quote_number=quote["quote_number"],
        ).count() == 1

    def test_client_totals_are_ignored(self, manager, db_session):
        body = create(manager, (3, "19.99"), (1, 5), tax="4.50", discount=10, subtotal=1, total=99999)

        quote = body["quote"]
        assert quote["subtotal"] == 64.97
        assert quote["total"] == 59.47
        assert [item["total"] for item in body["items"]] == [59.97, 5.0]

    def test_fractional_quantities_round_half_up(self):
        items = parse_items([{"quantity": "0.5", "unit_price": "0.05"}]).value
        assert str(items[0].total) == "0.03"

    def test_totals_identity(self):
        items = parse_items([
            {"quantity": 2, "unit_price": "10.10"},
            {"quantity": "1.5", "unitPrice": 4},
        ]).value
        totals = compute_totals(items, "1.25", "0.50").value

        assert totals.subtotal == sum(item.total for item in items)
        assert totals.total == totals.subtotal + totals.tax - totals.discount

    def test_empty_quote_is_allowed(self, manager):
        response = manager.post('/api/quotes', json={'items': []})
        assert response.status_code == 201
        assert response.get_json()["quote"]["total"] == 0.0

    @pytest.mark.parametrize("item,field", [
        ({"quantity": 0, "unitPrice": 10}, "items[0].quantity"),
        ({"quantity": -1, "unitPrice": 10}, "items[0].quantity"),
        ({"quantity": "abc", "unitPrice": 10}, "items[0].quantity"),
        ({"quantity": 1, "unitPrice": -5}, "items[0].unit_price"),
        ({"quantity": 1}, "items[0].unit_price"),
    ])
    def test_invalid_items_rejected(self, manager, item, field):
        response = manager.post('/api/quotes', json={'items': [item]})

        assert response.status_code == 400
        body = response.get_json()
        assert body["type"] == "validation"
        assert field in body["details"]

    def test_non_object_body_rejected(self, manager):
        response = manager.post('/api/quotes', json=[1, 2, 3])
        assert response.status_code == 400


class TestCreation:

    def test_defaults_to_draft(self, manager):
        assert create(manager)["quote"]["status"] == "draft"

    def test_may_start_sent(self, manager):
        assert create(manager, status="sent")["quote"]["status"] == "sent"

    @pytest.mark.parametrize("status", ["accepted", "converted", "bogus"])
    def test_other_initial_statuses_rejected(self, manager, status):
        response = manager.post('/api/quotes', json=quote_body(status=status))
        assert response.status_code == 400

    def test_tenant_comes_from_context(self, manager, users_a, tenant_b):
        quote = create(manager, tenant_id=tenant_b.id, tenantId=tenant_b.id)["quote"]
        assert quote["tenant_id"] == users_a["manager"].tenant_id

    def test_numbers_increase(self, manager):
        first = create(manager)["quote"]["quote_number"]
        second = create(manager)["quote"]["quote_number"]
        assert first != second
        assert int(second[-5:]) == int(first[-5:]) + 1

    def test_creation_publishes_event(self, manager, publisher, users_a):
        quote = create(manager)["quote"]

        name, payload, tenant_id = publisher.events[-1]
        assert name == "quote:created"
        assert payload["quote"]["id"] == quote["id"]
        assert tenant_id == users_a["manager"].tenant_id


class TestStatusEdges:

    @pytest.mark.parametrize("current,target,allowed", [
        ("draft", "sent", True),
        ("sent", "accepted", True),
        ("sent", "rejected", True),
        ("draft", "accepted", False),
        ("accepted", "sent", False),
        ("rejected", "accepted", False),
        ("converted", "draft", False),
    ])
    def test_transition_table(self, current, target, allowed):
        assert lifecycle_service.can_transition(
            current, target, lifecycle_service.QUOTE_TRANSITIONS
        ) is allowed

    def test_draft_to_sent_to_accepted(self, manager, publisher):
        quote_id = create(manager)["quote"]["id"]

        assert set_status(manager, quote_id, "sent").get_json()["quote"]["status"] == "sent"
        response = set_status(manager, quote_id, "accepted")

        assert response.status_code == 200
        assert response.get_json()["quote"]["status"] == "accepted"
        name, payload, _ = publisher.events[-1]
        assert name == "quote:updated"
        assert payload["previous_status"] == "sent"

    def test_invalid_status_value(self, manager):
        quote_id = create(manager)["quote"]["id"]
        response = set_status(manager, quote_id, "archived")
        assert response.status_code == 400
        assert response.get_json()["details"] == {"status": "invalid"}

    def test_missing_status_value(self, manager):
        quote_id = create(manager)["quote"]["id"]
        assert manager.patch(f'/api/quotes/{quote_id}/status', json={}).status_code == 400

    def test_illegal_edge_conflicts(self, manager, db_session):
        quote_id = create(manager)["quote"]["id"]

        response = set_status(manager, quote_id, "accepted")

        assert response.status_code == 409
        assert response.get_json()["details"] == {"from": "draft", "to": "accepted"}
        db_session.expire_all()
        assert db_session.get(Quote, quote_id).status == "draft"

    def test_converted_cannot_be_set_directly(self, manager):
        quote_id = create(manager, status="sent")["quote"]["id"]
        assert set_status(manager, quote_id, "converted").status_code == 409

    def test_same_status_is_noop(self, manager, publisher):
        quote_id = create(manager, status="sent")["quote"]["id"]
        publisher.clear()

        response = set_status(manager, quote_id, "sent")

        assert response.status_code == 200
        assert publisher.events == []

    def test_guest_cannot_change_status(self, app, manager, users_a):
        quote_id = create(manager)["quote"]["id"]
        guest = login(app, users_a["guest"])
        assert set_status(guest, quote_id, "sent").status_code == 403

    def test_filter_by_status(self, manager):
        create(manager)
        create(manager, status="sent")

        quotes = manager.get('/api/quotes?status=sent').get_json()["quotes"]

        assert [q["status"] for q in quotes] == ["sent"]
        assert manager.get('/api/quotes?status=bogus').status_code == 400


class TestDeletion:

    @pytest.mark.parametrize("status", ["draft", "sent"])
    def test_delete_early_quotes(self, manager, db_session, publisher, status):
        quote_id = create(manager, status=status)["quote"]["id"]

        response = manager.delete(f'/api/quotes/{quote_id}')

        assert response.status_code == 200
        assert response.get_json() == {"success": True, "id": quote_id}
        assert db_session.get(Quote, quote_id) is None
        assert publisher.names()[-1] == "quote:deleted"

    def test_accepted_quote_cannot_be_deleted(self, manager):
        quote_id = create(manager, status="sent")["quote"]["id"]
        set_status(manager, quote_id, "accepted")

        response = manager.delete(f'/api/quotes/{quote_id}')

        assert response.status_code == 409
        assert response.get_json()["details"] == {"status": "accepted"}

    def test_employee_cannot_delete(self, app, manager, users_a):
        quote_id = create(manager)["quote"]["id"]
        employee = login(app, users_a["employee"])
        assert employee.delete(f'/api/quotes/{quote_id}').status_code == 403


class TestConversion:

    def test_convert_sent_quote(self, manager, db_session, publisher):
        created = create(manager, (2, 100), (1, "49.50"), tax=10, discount=5, status="sent")
        quote_id = created["quote"]["id"]

        response = manager.post(f'/api/quotes/{quote_id}/convert-to-invoice')

        assert response.status_code == 201
        body = response.get_json()
        invoice = body["invoice"]
        assert INVOICE_NUMBER.match(invoice["invoice_number"])
        assert invoice["status"] == "issued"
        assert invoice["quote_id"] == quote_id
        assert invoice["total"] == created["quote"]["total"] == 254.5
        assert [i["total"] for i in body["items"]] == [i["total"] for i in created["items"]]
        assert invoice["issue_date"] < invoice["due_date"]

        db_session.expire_all()
        assert db_session.get(Quote, quote_id).status == "converted"
        assert publisher.names()[-1] == "invoice:created"

    def test_convert_accepted_quote(self, manager):
        quote_id = create(manager, status="sent")["quote"]["id"]
        set_status(manager, quote_id, "accepted")

        assert manager.post(f'/api/quotes/{quote_id}/convert-to-invoice').status_code == 201

    def test_second_conversion_conflicts(self, manager, db_session, publisher):
        quote_id = create(manager, status="sent")["quote"]["id"]
        assert manager.post(f'/api/quotes/{quote_id}/convert-to-invoice').status_code == 201
        publisher.clear()

        response = manager.post(f'/api/quotes/{quote_id}/convert-to-invoice')

        assert response.status_code == 409
        assert response.get_json()["type"] == "conflict"
        assert db_session.query(Invoice).filter_by(quote_id=quote_id).count() == 1
        assert publisher.events == []

    @pytest.mark.parametrize("status", ["draft", "rejected"])
    def test_unconvertible_statuses(self, manager, db_session, status):
        quote_id = create(manager, status="sent" if status == "rejected" else "draft")["quote"]["id"]
        if status == "rejected":
            set_status(manager, quote_id, "rejected")

        response = manager.post(f'/api/quotes/{quote_id}/convert-to-invoice')

        assert response.status_code == 409
        assert db_session.query(Invoice).count() == 0

    def test_converted_quote_cannot_be_deleted(self, manager):
        quote_id = create(manager, status="sent")["quote"]["id"]
        manager.post(f'/api/quotes/{quote_id}/convert-to-invoice')
        assert manager.delete(f'/api/quotes/{quote_id}').status_code == 409

    def test_missing_quote(self, manager):
        assert manager.post('/api/quotes/424242/convert-to-invoice').status_code == 404

    def test_service_level_double_conversion(self, db_session, users_a, publisher):
        ctx = context_for(users_a["manager"])
        quote = quote_service.create_quote(ctx, quote_body(status="sent"), publisher=publisher).value

        first = quote_service.convert_to_invoice(ctx, quote.id, publisher=publisher)
        second = quote_service.convert_to_invoice(ctx, quote.id, publisher=publisher)

        assert first.is_ok
        assert second.kind == ErrorKind.CONFLICT
        assert second.error.message == "Quote has already been converted"


class TestAtomicity:

    def test_failed_invoice_insert_leaves_quote_sent(self, db_session, users_a, publisher, monkeypatch):
        ctx = context_for(users_a["manager"])
        quote = quote_service.create_quote(ctx, quote_body((1, 10), status="sent"), publisher=publisher).value
        quote_id = quote.id
        publisher.clear()

        def failing_invoice(**kwargs):
            raise OperationalError("INSERT INTO invoices", {}, Exception("disk I/O error"))

        monkeypatch.setattr(quote_service, "Invoice", failing_invoice)
        result = quote_service.convert_to_invoice(ctx, quote_id, publisher=publisher)

        assert result.kind == ErrorKind.STORAGE
        assert publisher.events == []
        db_session.expire_all()
        assert db_session.get(Quote, quote_id).status == "sent"
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(DocumentSequence).filter_by(document_type="invoice").count() == 0

        monkeypatch.undo()
        retried = quote_service.convert_to_invoice(ctx, quote_id, publisher=publisher)
        assert retried.is_ok
        assert retried.value.invoice_number.endswith("-00001")

    def test_exhausted_quote_number_writes_nothing(self, db_session, users_a, publisher):
        ctx = context_for(users_a["employee"])
        db_session.add(Quote(
            tenant_id=users_a["employee"].tenant_id,
            quote_number=format_document_number(QUOTE_PREFIX, utcnow(), 1),
            status="draft",
        ))
        db_session.commit()

        result = quote_service.create_quote(
            ctx, quote_body((1, 10)), publisher=publisher, policy=RetryPolicy(attempts=1, delay=0),
        )

        assert result.kind == ErrorKind.CONFLICT
        assert publisher.events == []
        assert db_session.query(Quote).count() == 1

    def test_exhausted_invoice_number_aborts_conversion(self, db_session, users_a, publisher):
        ctx = context_for(users_a["manager"])
        quote_id = quote_service.create_quote(ctx, quote_body(status="sent"), publisher=publisher).value.id
        today = utcnow().date()
        db_session.add(Invoice(
            tenant_id=users_a["manager"].tenant_id,
            invoice_number=format_document_number(INVOICE_PREFIX, utcnow(), 1),
            status="issued",
            issue_date=today,
            due_date=today,
        ))
        db_session.commit()
        publisher.clear()

        result = quote_service.convert_to_invoice(
            ctx, quote_id, publisher=publisher, policy=RetryPolicy(attempts=1, delay=0),
        )

        assert result.kind == ErrorKind.CONFLICT
        assert publisher.events == []
        db_session.expire_all()
        assert db_session.get(Quote, quote_id).status == "sent"
        assert db_session.query(Invoice).count() == 1
