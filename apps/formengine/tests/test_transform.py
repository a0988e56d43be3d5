from __future__ import annotations

from django.test import SimpleTestCase

from apps.formengine.engine.errors import ConfigError, TransformationPathError
from apps.formengine.engine.transform import EACH, get_path, inbound, is_pattern, outbound, parse_path, set_path


class PathParsingTests(SimpleTestCase):
    def test_segments(self):
        self.assertEqual(parse_path("applicant.personal.firstName"), ("applicant", "personal", "firstName"))
        self.assertEqual(parse_path("loans[0].amount"), ("loans", 0, "amount"))
        self.assertEqual(parse_path("data['Loan Type']"), ("data", "Loan Type"))
        self.assertEqual(parse_path('data["a.b"][2]'), ("data", "a.b", 2))
        self.assertEqual(parse_path("borrowers[].email"), ("borrowers", EACH, "email"))

    def test_malformed(self):
        for path in ("", "  ", ".a", "a.", "a..b", "a.[0]", "[0].a", "a[x]", "a[]b[].c", "a[0]b", "a['b"):
            with self.subTest(path=path):
                with self.assertRaises(ConfigError):
                    parse_path(path)

    def test_is_pattern(self):
        self.assertTrue(is_pattern("borrowers[].email"))
        self.assertFalse(is_pattern("borrowers[0].email"))


class PathAccessTests(SimpleTestCase):
    def test_get_path(self):
        payload = {"a": {"b": [10, {"c": "x"}]}}
        self.assertEqual(get_path(payload, parse_path("a.b[1].c")), "x")
        for path in ("a.z", "a.b[5]", "a.b.c", "a.b[0].c"):
            with self.subTest(path=path):
                with self.assertRaises(TransformationPathError):
                    get_path(payload, parse_path(path))

    def test_set_path_creates_containers(self):
        target = {}
        set_path(target, parse_path("dscr.rents[1]"), 1750)
        set_path(target, parse_path("dscr.rents[0]"), 1800)
        set_path(target, parse_path("a['b c'].d"), True)
        self.assertEqual(target, {"dscr": {"rents": [1800, 1750]}, "a": {"b c": {"d": True}}})

    def test_set_path_replaces_scalars_in_the_way(self):
        target = {"a": "text"}
        set_path(target, parse_path("a.b"), 1)
        self.assertEqual(target, {"a": {"b": 1}})


class MappingTests(SimpleTestCase):
    MAPPING = {
        "loan.programType": "loanTypeName",
        "loan.amount": "loanAmount",
        "borrowers[].personal.firstName": "borrowers[].firstName",
    }

    def test_inbound_flattens(self):
        payload = {
            "loan": {"programType": "debt-service-coverage-ratio"},
            "borrowers": [{"personal": {"firstName": "Ada"}}, {"personal": {}}, {"personal": {"firstName": "Alan"}}],
        }
        self.assertEqual(
            inbound(payload, self.MAPPING),
            {
                "loanTypeName": "debt-service-coverage-ratio",
                "borrowers[0].firstName": "Ada",
                "borrowers[2].firstName": "Alan",
            },
        )

    def test_inbound_tolerates_bad_payloads(self):
        self.assertEqual(inbound(None, self.MAPPING), {})
        self.assertEqual(inbound({"loan": "flat", "borrowers": {"0": {}}}, self.MAPPING), {})
        # explicit null is a value
        self.assertEqual(inbound({"loan": {"amount": None}}, self.MAPPING), {"loanAmount": None})

    def test_outbound_nests(self):
        values = {
            "loanTypeName": "debt-service-coverage-ratio",
            "borrowers[1].firstName": "Alan",
            "borrowers[0].firstName": "Ada",
            "unmapped": 1,
        }
        inverse = {name: path for path, name in self.MAPPING.items()}
        self.assertEqual(
            outbound(values, inverse),
            {
                "loan": {"programType": "debt-service-coverage-ratio"},
                "borrowers": [{"personal": {"firstName": "Ada"}}, {"personal": {"firstName": "Alan"}}],
            },
        )

    def test_round_trip(self):
        payload = {
            "loan": {"programType": "residential-transition-loan", "amount": 250000},
            "borrowers": [{"personal": {"firstName": "Grace"}}],
        }
        inverse = {name: path for path, name in self.MAPPING.items()}
        self.assertEqual(outbound(inbound(payload, self.MAPPING), inverse), payload)
