"""Tests for keyset pagination."""

from uuid import uuid4

import pytest

from billing_engine.core.pagination import CursorPage, cursor_paginate
from billing_engine.models.invoicing_config import InvoicingConfig


@pytest.fixture
def configs(db_session):
    rows = [InvoicingConfig(tenant_id=uuid4(), grace_period_hours=i) for i in range(4)]
    db_session.add_all(rows)
    db_session.commit()
    return rows


def _page(db_session, cursor, limit):
    return cursor_paginate(
        db_session.query(InvoicingConfig),
        InvoicingConfig.tenant_id,
        cursor,
        limit,
        key_of=lambda c: c.tenant_id,
    )


def test_first_page_has_next_cursor(db_session, configs):
    page = _page(db_session, None, 2)
    assert isinstance(page, CursorPage)
    assert len(page.items) == 2
    assert page.next_cursor == page.items[-1].tenant_id


def test_last_page_has_no_cursor(db_session, configs):
    # 4 configs plus the seeded default tenant
    page = _page(db_session, None, 5)
    assert len(page.items) == 5
    assert page.next_cursor is None


def test_pages_are_ordered_and_disjoint(db_session, configs):
    first = _page(db_session, None, 3)
    second = _page(db_session, first.next_cursor, 3)

    keys = [str(c.tenant_id) for c in first.items + second.items]
    assert keys == sorted(keys)
    assert len(set(keys)) == 5
    assert second.next_cursor is None


def test_invalid_limit(db_session):
    with pytest.raises(ValueError):
        _page(db_session, None, 0)
