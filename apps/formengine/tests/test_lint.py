from __future__ import annotations

import io
import tempfile
from pathlib import Path

import yaml
from django.core.management import call_command
from django.test import SimpleTestCase, override_settings

from apps.formengine.checks import check_form_definitions
from apps.formengine.conf.loader import parse_config
from apps.formengine.management.commands.formengine_lint import lint_config
from apps.formengine.tests._configs import raw_borrowers


class LintConfigTests(SimpleTestCase):
    def test_clean_definition(self):
        self.assertEqual(lint_config(parse_config(raw_borrowers())), [])

    def test_unknown_names(self):
        raw = raw_borrowers()
        raw["steps"][1]["conditions"] = [{"===": [{"var": "loanKind"}, "x"]}]
        raw["steps"][3]["fields"][1]["prefillFrom"] = "ghost"
        raw["validation"] = {"globalRules": [{"field": "score", "rule": "min", "value": 1}]}
        raw["transformations"]["inbound"]["loan.amount"] = "loanAmount"
        raw["transformations"]["inbound"]["borrowers[].personal.age"] = "borrowers[].age"
        errors = lint_config(parse_config(raw))
        self.assertEqual(len(errors), 5)
        self.assertIn("step dscr: condition references unknown field 'loanKind'", errors)
        self.assertIn("global rule 'min' targets unknown field 'score'", errors)
        self.assertIn("inbound 'borrowers[].personal.age' maps to unknown field 'borrowers[].age'", errors)

    def test_blueprint_names_are_known(self):
        raw = raw_borrowers()
        raw["validation"] = {"globalRules": [{"fields": ["firstName"], "rule": "unique"}]}
        raw["steps"][3]["fields"][1]["conditions"] = [{"===": [{"var": "borrowers[0].firstName"}, "Ada"]}]
        self.assertEqual(lint_config(parse_config(raw)), [])


class LintCommandTests(SimpleTestCase):
    def test_shipped_definitions_are_valid(self):
        out = io.StringIO()
        call_command("formengine_lint", stdout=out)
        output = out.getvalue()
        self.assertIn("=== FormEngine Linter ===", output)
        self.assertIn("Definitions found: 3", output)
        self.assertIn("Definitions valid.", output)

    def test_broken_directory_exits(self):
        with tempfile.TemporaryDirectory() as tmp:
            raw = raw_borrowers()
            raw["transformations"]["outbound"] = {"nobody": "a.b"}
            (Path(tmp) / "bad.yaml").write_text(yaml.safe_dump(raw), encoding="utf-8")
            err = io.StringIO()
            with self.assertRaises(SystemExit):
                call_command("formengine_lint", dir=tmp, stdout=io.StringIO(), stderr=err)
        self.assertIn("outbound maps unknown field 'nobody'", err.getvalue())

    def test_missing_directory_exits(self):
        with self.assertRaises(SystemExit):
            call_command("formengine_lint", dir="/nonexistent/forms", stdout=io.StringIO(), stderr=io.StringIO())


class SystemCheckTests(SimpleTestCase):
    def test_shipped_definitions_pass(self):
        self.assertEqual(check_form_definitions(None), [])

    @override_settings(FORMENGINE_CONFIG_DIR="")
    def test_unset_directory(self):
        self.assertEqual([e.id for e in check_form_definitions(None)], ["formengine.E001"])

    @override_settings(FORMENGINE_CONFIG_DIR="/nonexistent/forms")
    def test_unloadable_directory(self):
        self.assertEqual([e.id for e in check_form_definitions(None)], ["formengine.E002"])

    def test_empty_directory(self):
        with tempfile.TemporaryDirectory() as tmp, override_settings(FORMENGINE_CONFIG_DIR=tmp):
            self.assertEqual([e.id for e in check_form_definitions(None)], ["formengine.E003"])
