from decimal import Decimal

from eshop.core.validation import (
    sanitize_object,
    sanitize_string,
    validate_address,
    validate_email,
    validate_name,
    validate_order_notes,
    validate_phone,
    validate_price,
    validate_quantity,
    validate_zip_code,
)


class TestSanitize:
    def test_strips_markup(self):
        assert sanitize_string("<b>Hello</b>") == "bHello/b"
        assert sanitize_string("javascript:alert(1)") == "alert(1)"
        assert sanitize_string('x onclick=run()') == "x run()"

    def test_trims_and_truncates(self):
        assert sanitize_string("  abc  ") == "abc"
        assert sanitize_string("a" * 600) == "a" * 500
        assert sanitize_string("abcdef", max_length=3) == "abc"

    def test_non_string_becomes_empty(self):
        assert sanitize_string(None) == ""
        assert sanitize_string(42) == ""

    def test_sanitize_object_recurses(self):
        data = {"name": "<Ján>", "tags": ["<a>", 3], "nested": {"x": " y "}}
        assert sanitize_object(data) == {"name": "Ján", "tags": ["a", 3], "nested": {"x": "y"}}


class TestContactFields:
    def test_email(self):
        assert validate_email("a@b.com")
        assert not validate_email("not-an-email")
        assert validate_email("jan@example.sk")
        assert not validate_email("jan@example")
        assert not validate_email("jan example@x.sk")
        assert not validate_email("")
        assert not validate_email(None)
        assert not validate_email("a" * 250 + "@x.sk")

    def test_phone(self):
        assert validate_phone("+421 900 123 456")
        assert validate_phone("(02) 123-456")
        assert not validate_phone("0900abc")
        assert not validate_phone("1" * 21)

    def test_phone_and_zip_need_ascii_digits(self):
        assert not validate_phone("\u0660\u0661\u0662 \u0663\u0664\u0665")
        assert not validate_zip_code("\u0968\u0969\u096a \u096b\u096c")
        assert not validate_zip_code("\uff18\uff13\uff11 03")

    def test_name_accepts_accented_letters(self):
        assert validate_name("Ľubomír Šťastný")
        assert validate_name("O'Neil-Smith Jr.")
        assert not validate_name("J")
        assert not validate_name("Robert1")
        assert not validate_name("x" * 101)

    def test_address(self):
        assert validate_address("Hlavná 12, Žilina")
        assert not validate_address("Ul.")
        assert not validate_address("Hlavná 12 #3")

    def test_zip_code(self):
        assert validate_zip_code("831 03")
        assert validate_zip_code("01001")
        assert not validate_zip_code("12")
        assert not validate_zip_code("AB123")


class TestAmounts:
    def test_quantity_bounds(self):
        assert validate_quantity(1)
        assert validate_quantity(1000)
        assert not validate_quantity(0)
        assert not validate_quantity(1001)
        assert not validate_quantity(2.5)
        assert not validate_quantity(True)
        assert not validate_quantity("3")

    def test_price_bounds(self):
        assert validate_price(0)
        assert validate_price(Decimal("10000"))
        assert validate_price(19.99)
        assert not validate_price(-1)
        assert not validate_price(10000.01)
        assert not validate_price(10001)
        assert not validate_price(float("inf"))
        assert not validate_price(float("nan"))
        assert not validate_price(Decimal("NaN"))
        assert not validate_price("10")


class TestOrderNotes:
    def test_empty_notes_are_valid(self):
        assert validate_order_notes(None)
        assert validate_order_notes("")

    def test_length_limit(self):
        assert validate_order_notes("x" * 1000)
        assert not validate_order_notes("x" * 1001)

    def test_length_measured_after_sanitizing(self):
        assert validate_order_notes("<" * 500 + "x" * 1000)

    def test_non_string_rejected(self):
        assert not validate_order_notes(123)
