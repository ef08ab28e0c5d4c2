import unittest
from flask import Flask

from kashpos.extensions import db
from kashpos.models import AppSetting, CustomerType, OpexItem, OpexSettings, PaymentMethod
from kashpos.services import settings_service
from kashpos.services.settings_service import ORDER_TYPE_SETTING, SettingsValidationError


class SettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = Flask(__name__)
        cls.app.config.update(
            SECRET_KEY="test",
            SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
            SQLALCHEMY_TRACK_MODIFICATIONS=False,
            TESTING=True,
        )
        db.init_app(cls.app)
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        from kashpos import models  # noqa: F401
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(AppSetting).delete()
        db.session.query(OpexSettings).delete()
        db.session.query(OpexItem).delete()
        db.session.query(CustomerType).delete()
        db.session.query(PaymentMethod).delete()
        db.session.commit()

    def test_seed_defaults_is_idempotent(self):
        first = settings_service.seed_defaults()
        second = settings_service.seed_defaults()

        self.assertEqual(first, {"payment_methods": 3, "customer_types": 3, "settings": 1})
        self.assertEqual(second, {"payment_methods": 0, "customer_types": 0, "settings": 0})
        self.assertEqual(
            [p.name for p in settings_service.list_payment_methods()],
            ["Card", "Cash", "GCash"],
        )
        self.assertEqual(
            [(c.name, c.color) for c in settings_service.list_customer_types()],
            [("Regular", "#6366f1"), ("Senior", "#ec4899"), ("Student", "#f59e0b")],
        )

    def test_order_type_flag_defaults_off(self):
        self.assertFalse(settings_service.is_order_type_enabled())
        settings_service.seed_defaults()
        self.assertFalse(settings_service.is_order_type_enabled())

        settings_service.set_setting(ORDER_TYPE_SETTING, True)
        self.assertTrue(settings_service.is_order_type_enabled())
        self.assertEqual(settings_service.get_setting(ORDER_TYPE_SETTING), "true")

        settings_service.set_setting(ORDER_TYPE_SETTING, "false")
        self.assertFalse(settings_service.is_order_type_enabled())

    def test_checkout_catalog_reflects_lookups_and_flag(self):
        settings_service.seed_defaults()
        settings_service.add_payment_method("Maya", "#10b981")
        settings_service.set_setting(ORDER_TYPE_SETTING, "true")

        catalog = settings_service.build_checkout_catalog()

        self.assertEqual(catalog.payment_methods, frozenset({"Cash", "Card", "GCash", "Maya"}))
        self.assertEqual(catalog.customer_types, frozenset({"Regular", "Student", "Senior"}))
        self.assertTrue(catalog.order_type_enabled)

    def test_lookup_validation(self):
        settings_service.seed_defaults()
        with self.assertRaises(SettingsValidationError):
            settings_service.add_payment_method("Cash", "#22c55e")
        with self.assertRaises(SettingsValidationError):
            settings_service.add_customer_type("PWD", "pink")
        with self.assertRaises(SettingsValidationError):
            settings_service.add_customer_type("  ", "#ffffff")

    def test_opex_target_is_sum_of_items(self):
        self.assertEqual(settings_service.get_opex_target_cents(), 0)

        settings_service.add_opex_item("Rent", 1_500_000)
        settings_service.add_opex_item("Electricity", 350_050)
        item = settings_service.add_opex_item("Internet", 150_000)

        self.assertEqual(settings_service.get_opex_target_cents(), 2_000_050)

        settings_service.delete_opex_item(item.id)
        self.assertEqual(settings_service.get_opex_target_cents(), 1_850_050)

        with self.assertRaises(SettingsValidationError):
            settings_service.add_opex_item("Refund", -1)

    def test_target_monthly_sales_single_row(self):
        self.assertEqual(settings_service.get_target_monthly_sales_cents(), 0)

        settings_service.set_target_monthly_sales_cents(12_000_000)
        settings_service.set_target_monthly_sales_cents(15_000_000)

        self.assertEqual(settings_service.get_target_monthly_sales_cents(), 15_000_000)
        self.assertEqual(db.session.query(OpexSettings).count(), 1)


if __name__ == "__main__":
    unittest.main()
