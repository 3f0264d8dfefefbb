from poscore.models import Product, Terminal, User


def test_seed_demo_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["pos", "seed-demo"])
    second = runner.invoke(args=["pos", "seed-demo"])

    assert first.exit_code == 0, first.output
    assert second.exit_code == 0, second.output
    assert "DEMO-COFFEE at 12.99 (tax 8.50%, 40 on hand)" in first.output
    assert "already exists" in second.output
    assert db_session.query(Terminal).filter_by(terminal_number=1).count() == 1
    assert db_session.query(User).filter_by(username="cashier").count() == 1
    assert db_session.query(Product).filter(Product.sku.like("DEMO-%")).count() == 3


def test_stock_command(app, db_session, make_product):
    make_product("CLI-1", 1299, quantity_on_hand=42, tax_rate_bps=850)
    runner = app.test_cli_runner()

    result = runner.invoke(args=["pos", "stock", "CLI-1"])
    assert result.exit_code == 0
    assert "price=12.99" in result.output
    assert "tax=8.50%" in result.output
    assert "on_hand=42" in result.output

    missing = runner.invoke(args=["pos", "stock", "NOPE"])
    assert missing.exit_code != 0
    assert "not found" in missing.output


def test_init_db_command(app, db_session):
    result = app.test_cli_runner().invoke(args=["pos", "init-db"])
    assert result.exit_code == 0
    assert "Tables created" in result.output
