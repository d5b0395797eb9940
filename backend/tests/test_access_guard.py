# Overview: Pytest coverage for tenant isolation of quotes and invoices.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied.

1. The ownership predicate grants only on equal tenant ids or super-admin
2. A resource without a tenant id is reachable only by a super-admin
3. Foreign quotes answer 403 (not 404) and leave an audit event
4. Listings only ever contain the caller's tenant's documents
"""

from types import SimpleNamespace

import pytest

from opsdesk.models import Quote, SecurityEvent
from opsdesk.services.access_service import check_ownership, owns_resource

from conftest import context_for, login, make_user, quote_body


class TestOwnershipPredicate:

    @pytest.mark.parametrize("resource_tenant,ctx_tenant,super_admin,expected", [
        (1, 1, False, True),
        (1, 2, False, False),
        (2, 1, False, False),
        (None, 1, False, False),
        (1, None, False, False),
        (None, None, False, False),
        (1, 2, True, True),
        (None, 1, True, True),
    ])
    def test_owns_resource(self, resource_tenant, ctx_tenant, super_admin, expected):
        assert owns_resource(resource_tenant, ctx_tenant, super_admin) is expected

    def test_check_ownership_wraps_denial(self, db_session, users_a, tenant_b):
        ctx = context_for(users_a["admin"])

        denied = check_ownership(ctx, SimpleNamespace(tenant_id=tenant_b.id))
        assert not denied.is_ok
        assert denied.error.status == 403

        missing_tenant = check_ownership(ctx, SimpleNamespace(tenant_id=None))
        assert not missing_tenant.is_ok

        own = SimpleNamespace(tenant_id=users_a["admin"].tenant_id)
        assert check_ownership(ctx, own).value is own


class TestCrossTenantHttp:

    @pytest.fixture
    def foreign_quote_id(self, app, db_session, admin_b):
        client_b = login(app, admin_b)
        response = client_b.post('/api/quotes', json=quote_body((1, 50), status="sent"))
        assert response.status_code == 201
        return response.get_json()["quote"]["id"]

    def test_read_foreign_quote_is_forbidden(self, app, db_session, users_a, foreign_quote_id):
        client_a = login(app, users_a["owner"])

        response = client_a.get(f'/api/quotes/{foreign_quote_id}')

        assert response.status_code == 403
        assert response.get_json()["type"] == "authorization"

    def test_foreign_quote_denial_is_audited(self, app, db_session, users_a, foreign_quote_id):
        client_a = login(app, users_a["owner"])
        client_a.patch(f'/api/quotes/{foreign_quote_id}/status', json={'status': 'accepted'})

        event = db_session.query(SecurityEvent).filter_by(
            event_type="CROSS_TENANT_ACCESS_DENIED"
        ).one()
        assert event.user_id == users_a["owner"].id
        assert event.resource == f'/api/quotes/{foreign_quote_id}/status'
        assert event.action == 'PATCH'

    def test_foreign_quote_cannot_be_changed(self, app, db_session, users_a, foreign_quote_id):
        client_a = login(app, users_a["owner"])

        assert client_a.patch(
            f'/api/quotes/{foreign_quote_id}/status', json={'status': 'accepted'}
        ).status_code == 403
        assert client_a.delete(f'/api/quotes/{foreign_quote_id}').status_code == 403
        assert client_a.post(
            f'/api/quotes/{foreign_quote_id}/convert-to-invoice'
        ).status_code == 403

        db_session.expire_all()
        quote = db_session.get(Quote, foreign_quote_id)
        assert quote.status == "sent"

    def test_missing_quote_is_not_found(self, app, db_session, users_a):
        client_a = login(app, users_a["owner"])
        response = client_a.get('/api/quotes/999999')
        assert response.status_code == 404
        assert response.get_json()["type"] == "not_found"

    def test_listing_is_tenant_scoped(self, app, db_session, users_a, foreign_quote_id):
        client_a = login(app, users_a["employee"])
        client_a.post('/api/quotes', json=quote_body((1, 10)))

        quotes = client_a.get('/api/quotes').get_json()["quotes"]

        assert len(quotes) == 1
        assert all(q["tenant_id"] == users_a["employee"].tenant_id for q in quotes)

    def test_super_admin_may_read_foreign_quote(self, app, db_session, tenant_a, foreign_quote_id):
        root = make_user(db_session, tenant_a, "root_a", "owner", is_super_admin=True)
        client = login(app, root)

        response = client.get(f'/api/quotes/{foreign_quote_id}')

        assert response.status_code == 200
        assert response.get_json()["quote"]["id"] == foreign_quote_id
