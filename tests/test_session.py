"""Tests for session state: settings, registrations and isolation."""

import unittest

from aljabar_pkg.parser import parse
from aljabar_pkg.session import Session, get_session, validate_variable_name
from aljabar_pkg.types import InvalidVariableNameError, OperatorError, ValidationError


class TestSettings(unittest.TestCase):
    """Test settings access and scoped overrides."""

    def test_set_returns_previous(self):
        session = Session()
        previous = session.set_setting("output_precision", 5)
        self.assertEqual(previous, 15)
        self.assertEqual(session.get_setting("output_precision"), 5)

    def test_unknown_setting(self):
        with self.assertRaises(ValidationError) as ctx:
            Session().set_setting("no_such_setting", 1)
        self.assertEqual(ctx.exception.code, "UNKNOWN_SETTING")

    def test_overrides_restore_on_exit(self):
        session = Session()
        with session.overrides(timeout_ms=10, numeric_fallback=False):
            self.assertEqual(session.settings.timeout_ms, 10)
            self.assertFalse(session.settings.numeric_fallback)
        self.assertEqual(session.settings.timeout_ms, 2000)
        self.assertTrue(session.settings.numeric_fallback)

    def test_overrides_restore_on_error(self):
        session = Session()
        with self.assertRaises(ZeroDivisionError):
            with session.overrides(precision=3):
                raise ZeroDivisionError
        self.assertEqual(session.settings.precision, 21)

    def test_with_settings(self):
        session = Session()
        value = session.with_settings(lambda: session.settings.precision, precision=7)
        self.assertEqual(value, 7)
        self.assertEqual(session.settings.precision, 21)

    def test_sessions_do_not_share_settings(self):
        first, second = Session(), Session()
        first.set_setting("precision", 4)
        self.assertEqual(second.settings.precision, 21)


class TestRegistration(unittest.TestCase):
    """Test variables, constants, functions and operators."""

    def test_variable(self):
        session = get_session()
        session.register_var("a", parse("x+1"))
        self.assertEqual(str(parse("2*a")), "2*x+2")
        session.clear_var("a")
        self.assertEqual(str(parse("2*a")), "2*a")

    def test_constant(self):
        session = get_session()
        session.register_constant("g", 10)
        self.assertEqual(str(parse("g/2")), "5")

    def test_function_from_text(self):
        session = get_session()
        session.register_function("f", "x^2+1", ["x"])
        self.assertEqual(str(parse("f(3)")), "10")
        self.assertEqual(str(parse("f(y)")), "y^2+1")

    def test_function_from_callable(self):
        session = get_session()
        session.register_function("double", lambda u: u * 2)
        self.assertEqual(str(parse("double(x)")), "2*x")

    def test_function_arity_checked(self):
        session = get_session()
        session.register_function("f", "x*y", ["x", "y"])
        with self.assertRaises(OperatorError):
            parse("f(1)")

    def test_unregister_function(self):
        session = get_session()
        session.register_function("double", lambda u: u * 2)
        session.unregister_function("double")
        self.assertNotIn("double", session.functions)

    def test_custom_operator(self):
        session = Session()
        session.register_operator("&", 3, lambda a, b: a + b + 1, name="plus_one")
        self.assertEqual(str(parse("2&3", session=session)), "6")

    def test_invalid_names(self):
        with self.assertRaises(InvalidVariableNameError):
            get_session().register_var("2x", 1)
        with self.assertRaises(InvalidVariableNameError):
            validate_variable_name("a-b")
        self.assertEqual(validate_variable_name("alpha_1"), "alpha_1")


if __name__ == "__main__":
    unittest.main()
