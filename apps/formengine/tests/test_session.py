from __future__ import annotations

from django.test import SimpleTestCase

from apps.formengine.engine.session import FormSession, apply_prefill, initial_values
from apps.formengine.tests._configs import borrowers_config, broker, simplified


class TicketTests(SimpleTestCase):
    def test_only_latest_config_response_applies(self):
        session = FormSession()
        first = session.dispatch("config")
        second = session.dispatch("config")
        self.assertFalse(session.apply_config(first, broker()))
        self.assertIsNone(session.config)
        self.assertTrue(session.apply_config(second, simplified()))
        self.assertEqual(session.config.id, "simplified-application-poc")
        # a late arrival of the older response changes nothing
        self.assertFalse(session.apply_config(first, broker()))
        self.assertEqual(session.config.id, "simplified-application-poc")

    def test_kinds_are_independent(self):
        session = FormSession(borrowers_config())
        submit = session.dispatch("submit")
        session.dispatch("config")
        self.assertTrue(session.apply_submission(submit, {"ok": True}))
        self.assertEqual(session.last_submission, {"ok": True})

    def test_stale_submission_dropped(self):
        session = FormSession(borrowers_config())
        old = session.dispatch("submit")
        new = session.dispatch("submit")
        self.assertTrue(session.apply_submission(new, "latest"))
        self.assertFalse(session.apply_submission(old, "stale"))
        self.assertEqual(session.last_submission, "latest")

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            FormSession().dispatch("upload")

    def test_values_need_a_config(self):
        with self.assertRaises(RuntimeError):
            FormSession().set_value("a", 1)


class InitialValueTests(SimpleTestCase):
    def test_default_values(self):
        values = initial_values(broker())
        self.assertEqual(values, {"numberOfBorrowers": 2})

    def test_external_payload_overrides_defaults(self):
        payload = {
            "loan": {"programType": "residential-transition-loan"},
            "application": {"type": "joint", "numberOfBorrowers": 3},
            "borrowers": [{"personal": {"firstName": "Ada"}}, {"personal": {"firstName": "Alan"}}],
        }
        values = initial_values(broker(), payload)
        self.assertEqual(values["numberOfBorrowers"], 3)
        self.assertEqual(values["borrowers[1].first_name"], "Alan")

        session = FormSession(broker(), payload)
        details = session.navigator.visible.fields_by_step["borrowers-details"]
        self.assertEqual(len(details), 18)

    def test_prefill_copies_into_empty_fields_only(self):
        config = simplified()
        values = {"application_type": "joint", "property_city": "Austin", "property_state": "TX",
                  "joint_property_state": "CA"}
        out = apply_prefill(config, values)
        self.assertEqual(out["joint_property_city"], "Austin")
        self.assertEqual(out["joint_property_state"], "CA")
        self.assertNotIn("joint_property_zip", out)
        self.assertNotIn("joint_property_city", values)

    def test_session_updates_delegate_to_navigator(self):
        session = FormSession(borrowers_config())
        session.update({"loanTypeName": "debt-service-coverage-ratio"})
        self.assertTrue(session.navigator.next())
        self.assertEqual(session.navigator.current_step.id, "dscr")
