from __future__ import annotations

from datetime import date

from django.test import SimpleTestCase
from django.utils import timezone

from apps.formengine.conf.schema import FormField, GlobalRule
from apps.formengine.engine.validation import (
    CREDIT_SCORE_BANDS, build_schema, credit_score_value, parse_birth_date, parse_number, validate,
    validate_fields,
)


def field(id, rules=(), **kw):
    return FormField.model_validate({"id": id, "validation": list(rules), **kw})


def years_ago(n: int, days: int = 0) -> str:
    today = timezone.localdate()
    try:
        born = today.replace(year=today.year - n)
    except ValueError:  # 29 February
        born = today.replace(year=today.year - n, day=28)
    return date.fromordinal(born.toordinal() + days).isoformat()


class SchemaGenerationTests(SimpleTestCase):
    def test_min_rule(self):
        f = field("loanAmount", [{"rule": "min", "value": 50000, "message": "Too small"}])
        failed = validate_fields([f], {"loanAmount": 40000})
        self.assertFalse(failed.ok)
        self.assertEqual(failed.errors, {"loanAmount": ["Too small"]})
        self.assertEqual(failed.codes, {"loanAmount": ["min"]})

        passed = validate_fields([f], {"loanAmount": 60000})
        self.assertTrue(passed.ok)
        self.assertEqual(passed.data, {"loanAmount": 60000})

    def test_only_given_fields_are_in_schema(self):
        schema = build_schema([field("a"), field("b", type="label"), field("c", type="hidden")])
        self.assertEqual(list(schema.base_fields), ["a"])

    def test_hidden_fields_are_never_validated(self):
        visible = field("city", [{"rule": "required"}])
        result = validate_fields([visible], {"city": "Austin", "previous_city": ""})
        self.assertTrue(result.ok)
        self.assertEqual(result.data, {"city": "Austin"})

    def test_optional_empty_passes(self):
        f = field("email", [{"rule": "email"}, {"rule": "minLength", "value": 5}])
        self.assertTrue(validate_fields([f], {}).ok)
        self.assertTrue(validate_fields([f], {"email": "  "}).ok)

    def test_required_empty_reports_only_required(self):
        f = field("email", [{"rule": "required", "message": "Email please"}, {"rule": "email"}])
        result = validate_fields([f], {"email": ""})
        self.assertEqual(result.errors, {"email": ["Email please"]})

    def test_required_flag_and_false(self):
        f = field("agree", required=True, type="checkbox")
        self.assertEqual(validate_fields([f], {"agree": False}).codes, {"agree": ["required"]})
        self.assertTrue(validate_fields([f], {"agree": True}).ok)

    def test_errors_in_declaration_order(self):
        f = field("zip", [
            {"rule": "minLength", "value": 6, "message": "short"},
            {"rule": "zipCode", "message": "zip"},
            {"rule": "pattern", "value": "9.*", "message": "nine"},
        ])
        result = validate_fields([f], {"zip": "1234"})
        self.assertEqual(result.errors["zip"], ["short", "zip", "nine"])

    def test_string_rules(self):
        cases = [
            ("email", None, "a@b.co", "a@b"),
            ("phoneUS", None, "(555) 123-4567", "555-1234"),
            ("phoneUS", None, "+1 555.123.4567", "12345"),
            ("zipCode", None, "12345-6789", "1234"),
            ("ssnFormat", None, "123-45-6789", "123456789"),
            ("maxLength", 3, "abc", "abcd"),
            ("oneOf", ["a", "b"], "b", "c"),
        ]
        for rule, value, good, bad in cases:
            with self.subTest(rule=rule, good=good):
                f = field("x", [{"rule": rule, "value": value}])
                self.assertTrue(validate_fields([f], {"x": good}).ok)
                self.assertEqual(validate_fields([f], {"x": bad}).codes, {"x": [rule]})

    def test_sanitized_strings_are_stripped(self):
        result = validate_fields([field("name")], {"name": "  Ada  ", "other": 1})
        self.assertEqual(result.data, {"name": "Ada"})

    def test_numeric_strings(self):
        self.assertEqual(parse_number("$60,000.50"), 60000.5)
        self.assertEqual(parse_number("60000"), 60000.0)
        self.assertIsNone(parse_number(True))
        self.assertIsNone(parse_number("sixty"))
        f = field("value", [{"rule": "max", "value": 100000}])
        self.assertTrue(validate_fields([f], {"value": "$99,999"}).ok)
        self.assertFalse(validate_fields([f], {"value": "abc"}).ok)

    def test_age_rules(self):
        f = field("dob", [{"rule": "minAge", "value": 18}, {"rule": "maxAge", "value": 100}])
        self.assertTrue(validate_fields([f], {"dob": years_ago(18)}).ok)
        self.assertEqual(validate_fields([f], {"dob": years_ago(18, days=1)}).codes, {"dob": ["minAge"]})
        self.assertEqual(validate_fields([f], {"dob": years_ago(102)}).codes, {"dob": ["maxAge"]})
        self.assertEqual(validate_fields([f], {"dob": "not a date"}).codes, {"dob": ["minAge", "maxAge"]})
        self.assertEqual(parse_birth_date("01/31/1990"), date(1990, 1, 31))
        self.assertIsNone(parse_birth_date("1990-02-30"))

    def test_credit_score_bands(self):
        labels = [label for label, _ in CREDIT_SCORE_BANDS]
        self.assertEqual(labels[0], "<660")
        self.assertEqual(credit_score_value("760+"), 760)
        self.assertIsNone(credit_score_value("excellent"))
        f = field("score", [{"rule": "minCreditScore", "value": 700, "message": "low"}])
        self.assertTrue(validate_fields([f], {"score": "720-739"}).ok)
        self.assertTrue(validate_fields([f], {"score": "700-719"}).ok)
        self.assertEqual(validate_fields([f], {"score": "680-699"}).errors, {"score": ["low"]})
        self.assertFalse(validate_fields([f], {"score": "excellent"}).ok)

    def test_field_targeted_global_rule(self):
        g = GlobalRule.model_validate({"field": "score", "rule": "minCreditScore", "value": 680})
        result = validate_fields([field("score")], {"score": "<660"}, [g])
        self.assertEqual(result.codes, {"score": ["minCreditScore"]})

    def test_unique_global_rule_across_instances(self):
        g = GlobalRule.model_validate({"fields": ["email"], "rule": "unique", "message": "dup"})
        fields = [
            field("borrowers[0].email", base_id="email"),
            field("borrowers[1].email", base_id="email"),
            field("borrowers[2].email", base_id="email"),
        ]
        values = {
            "borrowers[0].email": "a@x.com",
            "borrowers[1].email": "A@x.com ",
            "borrowers[2].email": "c@x.com",
        }
        result = validate_fields(fields, values, [g])
        self.assertEqual(result.errors, {"borrowers[0].email": ["dup"], "borrowers[1].email": ["dup"]})

    def test_validate_never_raises_on_odd_input(self):
        f = field("x", [{"rule": "minLength", "value": 2}, {"rule": "email"}])
        result = validate(build_schema([f]), {"x": {"nested": 1}})
        self.assertFalse(result.ok)
        self.assertEqual(result.codes, {"x": ["email"]})
