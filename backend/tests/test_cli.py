"""
CLI command tests.

Runs the click commands through Flask's CLI runner inside the test app
context, so they see the same database session as the fixtures.
"""

from sqlalchemy import update

from nexero.models import Organization, Product, User


def test_tenants_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["tenants", "create", "--name", "Loja Gama", "--code", "GAMA"])
    assert result.exit_code == 0
    assert "PASS Created organization: Loja Gama" in result.output
    assert db_session.query(Organization).filter_by(code="GAMA").count() == 1

    duplicate = runner.invoke(args=["tenants", "create", "--name", "Outra", "--code", "GAMA"])
    assert "FAIL" in duplicate.output
    assert db_session.query(Organization).filter_by(code="GAMA").count() == 1

    listing = runner.invoke(args=["tenants", "list"])
    assert "Loja Gama" in listing.output


def test_users_create(app, db_session, org_a):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--org-id", str(org_a.id),
        "--email", "Dora@Acme.com",
        "--name", "Dora",
        "--password", "Secret123!",
        "--role", "SELLER",
    ])

    assert result.exit_code == 0
    assert "PASS Created user: dora@acme.com" in result.output
    user = db_session.query(User).filter_by(email="dora@acme.com").one()
    assert user.org_id == org_a.id
    assert user.role == "SELLER"

    listing = runner.invoke(args=["users", "list", "--org-id", str(org_a.id)])
    assert "dora@acme.com" in listing.output


def test_users_create_rejects_weak_password(app, db_session, org_a):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--org-id", str(org_a.id),
        "--email", "fraca@acme.com",
        "--name", "Fraca",
        "--password", "short",
        "--role", "CASHIER",
    ])

    assert result.output.startswith("FAIL")
    assert db_session.query(User).filter_by(email="fraca@acme.com").count() == 0


def test_inventory_reconcile_pass(app, org_a, product_a):
    result = app.test_cli_runner().invoke(args=["inventory", "reconcile", "--org-id", str(org_a.id)])

    assert result.exit_code == 0
    assert result.output.startswith("PASS")


def test_inventory_reconcile_reports_drift(app, db_session, org_a, product_a):
    db_session.execute(update(Product).where(Product.id == product_a.id).values(stock=17))
    db_session.commit()

    result = app.test_cli_runner().invoke(args=["inventory", "reconcile", "--org-id", str(org_a.id)])

    assert result.exit_code == 1
    assert "FAIL 1 product(s) out of sync" in result.output
    assert "stock=17 ledger=20 diff=-3" in result.output
