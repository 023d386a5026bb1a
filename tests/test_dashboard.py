from __future__ import annotations

from hostpanel.services import customers as customer_service, dashboard as dashboard_service


def test_empty_dashboard(db_session) -> None:
    stats = dashboard_service.get_stats(db_session)

    assert stats.customers.total == 0
    assert stats.websites.total == 0
    assert stats.databases.total == 0
    assert stats.recent_activities == []


def test_dashboard_counts_and_recent_activity(provisioner, db_session, hestia) -> None:
    first = provisioner.provision({"name": "Jane Doe", "email": "jane@example.com", "needDatabase": True})
    hestia.fail("enable_ssl")
    second = provisioner.provision({"name": "John Roe", "email": "john@example.com"})
    customer_service.suspend_customer(db_session, hestia, customer_id=second.customer.id)

    stats = dashboard_service.get_stats(db_session)

    assert (stats.customers.total, stats.customers.active, stats.customers.suspended) == (2, 1, 1)
    assert (stats.websites.total, stats.websites.active, stats.websites.pending) == (2, 1, 1)
    assert stats.databases.total == 1
    assert [a.action for a in stats.recent_activities] == ["SUSPEND_CUSTOMER", "CREATE_CUSTOMER", "CREATE_CUSTOMER"]
    assert stats.recent_activities[-1].resource_id == first.customer.id


def test_recent_activity_is_capped(provisioner, db_session, hestia) -> None:
    customer_id = provisioner.provision({"name": "Jane Doe", "email": "jane@example.com"}).customer.id
    for _ in range(6):
        customer_service.suspend_customer(db_session, hestia, customer_id=customer_id)
        customer_service.unsuspend_customer(db_session, hestia, customer_id=customer_id)

    stats = dashboard_service.get_stats(db_session)

    assert len(stats.recent_activities) == dashboard_service.RECENT_ACTIVITY_LIMIT
    assert stats.recent_activities[0].action == "UNSUSPEND_CUSTOMER"
