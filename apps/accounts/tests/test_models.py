from django.test import TestCase

from apps.accounts.models import User


class UserModelTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email="Planner@Example.COM",
            password="pass123",
            first_name="Test",
            last_name="User",
        )

    def test_user_str(self):
        self.assertEqual(str(self.user), "Test User (Manager)")

    def test_email_domain_is_normalized(self):
        self.assertEqual(self.user.email, "Planner@example.com")

    def test_password_is_hashed(self):
        self.assertNotEqual(self.user.password, "pass123")
        self.assertTrue(self.user.check_password("pass123"))

    def test_default_role_is_manager(self):
        self.assertEqual(self.user.role, User.Role.MANAGER)
        self.assertFalse(self.user.is_admin)

    def test_get_full_and_short_name(self):
        self.assertEqual(self.user.get_full_name(), "Test User")
        self.assertEqual(self.user.get_short_name(), "Test")

    def test_short_name_falls_back_to_email(self):
        user = User.objects.create_user(email="ops@example.com")
        self.assertEqual(user.get_short_name(), "ops")
        self.assertFalse(user.has_usable_password())

    def test_email_is_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email="")

    def test_create_superuser(self):
        admin = User.objects.create_superuser(email="admin@example.com", password="pass123")
        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.is_superuser)
        self.assertTrue(admin.is_admin)
