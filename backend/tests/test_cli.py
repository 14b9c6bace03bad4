"""Flask CLI: demo seed and ledger verification."""

from sqlalchemy import update

from chemflo.models import Category, Inventory, Product, StockMovement


def test_seed_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "seed"])
    assert result.exit_code == 0, result.output
    assert db_session.query(Category).count() == 8
    assert db_session.query(Product).count() == 12
    assert db_session.query(StockMovement).count() == 12

    peroxide = db_session.query(Product).filter_by(cas_number="7722-84-1").one()
    assert peroxide.inventory.current_stock == 25
    assert peroxide.category.name == "Oxidizers"

    result = runner.invoke(args=["system", "seed"])
    assert result.exit_code == 0, result.output
    assert "SKIP Product exists: Benzene (71-43-2)" in result.output
    assert db_session.query(Product).count() == 12


def test_verify_passes_on_seeded_ledger(app, db_session):
    runner = app.test_cli_runner()
    runner.invoke(args=["system", "seed"])

    result = runner.invoke(args=["inventory", "verify"])

    assert result.exit_code == 0
    assert "PASS" in result.output


def test_verify_fails_on_mismatch(app, db_session):
    runner = app.test_cli_runner()
    runner.invoke(args=["system", "seed"])
    benzene = db_session.query(Product).filter_by(cas_number="71-43-2").one()
    db_session.execute(
        update(Inventory).where(Inventory.product_id == benzene.id).values(current_stock=149)
    )
    db_session.commit()
    db_session.expire_all()

    result = runner.invoke(args=["inventory", "verify"])
    assert result.exit_code == 1
    assert f"FAIL Product {benzene.id}: stored=149 replayed=150" in result.output

    result = runner.invoke(args=["inventory", "verify", "--product-id", "999999"])
    assert result.exit_code == 1
