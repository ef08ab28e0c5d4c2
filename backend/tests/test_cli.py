from datetime import datetime

from kashpos.models import AppSetting, OpexItem, PaymentMethod
from kashpos.services import settings_service

from conftest import make_line


def test_system_init_seeds_catalog(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "init"])

    assert result.exit_code == 0, result.output
    assert "Seeded 3 payment methods, 3 customer types, 1 settings" in result.output
    assert db_session.query(PaymentMethod).count() == 3
    assert db_session.query(AppSetting).filter_by(key="dine_in_takeout_enabled").one().value == "false"


def test_set_flag(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "set-flag", "dine_in_takeout_enabled", "true"])

    assert result.exit_code == 0, result.output
    assert settings_service.is_order_type_enabled()


def test_opex_add_list_and_target(app, db_session):
    runner = app.test_cli_runner()

    assert runner.invoke(args=["opex", "add", "--name", "Rent", "--monthly-cost", "15000"]).exit_code == 0
    assert runner.invoke(args=["opex", "add", "--name", "Power", "--monthly-cost", "1250.50"]).exit_code == 0
    assert runner.invoke(args=["opex", "set-target", "--amount", "120000"]).exit_code == 0

    assert sorted(i.monthly_cost_cents for i in db_session.query(OpexItem).all()) == [125050, 1500000]
    assert settings_service.get_target_monthly_sales_cents() == 12000000

    result = runner.invoke(args=["opex", "list"])
    assert result.exit_code == 0
    assert "16,250.50" in result.output
    assert "120,000.00" in result.output


def test_opex_add_rejects_bad_amount(app, db_session):
    result = app.test_cli_runner().invoke(args=["opex", "add", "--name", "Rent", "--monthly-cost", "lots"])

    assert result.exit_code != 0
    assert db_session.query(OpexItem).count() == 0


def test_break_even_command(app, db_session, store):
    settings_service.add_opex_item("Rent", 1000)
    store.insert_sale_lines([
        make_line(datetime(2026, 3, 2, 9, 0), cost=0, price=400),
        make_line(datetime(2026, 3, 3, 10, 0), cost=0, price=700),
    ])

    result = app.test_cli_runner().invoke(args=["earnings", "break-even", "--month", "2026-03"])

    assert result.exit_code == 0, result.output
    assert "Net profit:" in result.output and "1.00" in result.output
    assert "Break-even at:  2026-03-03 10:00 (UTC)" in result.output


def test_watch_command_stops_after_count(app, db_session):
    result = app.test_cli_runner().invoke(args=["earnings", "watch", "--interval", "1", "--count", "1"])

    assert result.exit_code == 0, result.output
    assert "Revenue:" in result.output
