import unittest
from unittest.mock import patch

from resourcegate import config
from resourcegate.engine.errors import AccessDenied
from resourcegate.engine.gate import NestedSubject
from resourcegate.engine.naming import AuthOnlySymbol
from resourcegate.policy.manager import AuditedPolicy, DenyAllPolicy, PolicyManager, get_policy_manager
from resourcegate.policy.providers.rules import Rule, RulePolicy


class Document:
    def __init__(self, owner=None, archived=False):
        self.owner = owner
        self.archived = archived


class Report(Document):
    pass


class Folder:
    pass


class DocumentPolicy(RulePolicy):
    def define_rules(self):
        self.can("read", Document)

        if self.identity is not None:
            self.can("manage", Document, owner=self.identity)
            self.cannot("destroy", Document, archived=True)


class BrokenPolicy(RulePolicy):
    def allows(self, action, subject):
        raise RuntimeError("policy backend unavailable")


class FailingInitPolicy(RulePolicy):
    def define_rules(self):
        raise RuntimeError("cannot load rules")


class TestRule(unittest.TestCase):
    def test_relevant(self):
        rule = Rule(True, frozenset({"show"}), (Document,))

        self.assertTrue(rule.relevant("show", Document))
        self.assertTrue(rule.relevant("show", Report))
        self.assertFalse(rule.relevant("show", Folder))
        self.assertFalse(rule.relevant("edit", Document))

    def test_relevant_by_name(self):
        self.assertTrue(Rule(True, frozenset({"show"}), ("Document",)).relevant("show", Document))
        self.assertTrue(Rule(True, frozenset({"show"}), ("stats",)).relevant("show", AuthOnlySymbol("stats")))
        self.assertFalse(Rule(True, frozenset({"show"}), (Document,)).relevant("show", AuthOnlySymbol("stats")))

    def test_manage_all(self):
        rule = Rule(True, frozenset({"manage"}), ("all",))

        self.assertTrue(rule.relevant("archive", Folder))
        self.assertTrue(rule.relevant("show", AuthOnlySymbol("stats")))


class TestRulePolicy(unittest.TestCase):
    def test_aliases(self):
        policy = DocumentPolicy()

        self.assertTrue(policy.allows("index", Document))
        self.assertTrue(policy.allows("show", Document()))
        self.assertFalse(policy.allows("new", Document))
        self.assertFalse(policy.allows("update", Document()))

    def test_attributes(self):
        policy = DocumentPolicy("ann")

        self.assertTrue(policy.allows("update", Document(owner="ann")))
        self.assertFalse(policy.allows("update", Document(owner="bob")))
        self.assertTrue(policy.allows("destroy", Document(owner="ann")))
        self.assertFalse(policy.allows("destroy", Document(owner="ann", archived=True)))

    def test_class_level(self):
        policy = DocumentPolicy("ann")

        # A restricted can rule allows at class level, a restricted cannot rule is ignored
        self.assertTrue(policy.allows("create", Document))
        self.assertTrue(policy.allows("destroy", Document))
        self.assertTrue(policy.allows("update", NestedSubject(Folder(), Document)))
        self.assertFalse(policy.allows("update", Folder))

    def test_unrestricted_cannot_at_class_level(self):
        policy = RulePolicy()
        policy.can("manage", "all")
        policy.cannot("destroy", Document)

        self.assertFalse(policy.allows("destroy", Document))
        self.assertFalse(policy.allows("destroy", Document()))
        self.assertTrue(policy.allows("destroy", Folder))

    def test_later_rules_take_precedence(self):
        policy = RulePolicy()
        policy.cannot("show", Document)
        policy.can("show", Document)

        self.assertTrue(policy.allows("show", Document()))

    def test_condition(self):
        policy = RulePolicy("ann")
        policy.can("update", Document, lambda identity, document: document.owner == identity)

        self.assertTrue(policy.allows("update", Document(owner="ann")))
        self.assertFalse(policy.allows("update", Document(owner="bob")))
        self.assertTrue(policy.has_custom_rule("update", Document))
        self.assertFalse(policy.has_custom_rule("show", Document))

    def test_authorize(self):
        policy = DocumentPolicy()
        document = Document()

        policy.authorize("show", document)

        with self.assertRaises(AccessDenied) as cm:
            policy.authorize("destroy", document)

        self.assertEqual(cm.exception.action, "destroy")
        self.assertIs(cm.exception.subject, document)
        self.assertEqual(str(cm.exception), AccessDenied.DEFAULT_MESSAGE)

    def test_default_attributes(self):
        policy = DocumentPolicy("ann")

        self.assertEqual(policy.default_attributes_for("create", Document), {"owner": "ann"})
        self.assertEqual(policy.default_attributes_for("create", Folder), {})

    def test_rules_for(self):
        policy = DocumentPolicy("ann")

        self.assertEqual(len(policy.rules_for("destroy", Document)), 2)
        self.assertEqual(len(policy.rules_for("show", Document)), 2)
        self.assertEqual(policy.rules_for("show", Folder), [])


class TestAuditedPolicy(unittest.TestCase):
    def test_granted_is_logged(self):
        policy = AuditedPolicy(DocumentPolicy("ann"))

        with self.assertLogs("resourcegate.policy.manager", level="INFO") as cm:
            policy.authorize("show", Document)

        self.assertIn("GRANTED", cm.output[0])
        self.assertIn("DocumentPolicy", cm.output[0])

    def test_denied_is_logged(self):
        policy = AuditedPolicy(DocumentPolicy())

        with self.assertLogs("resourcegate.policy.manager", level="WARNING") as cm:
            self.assertRaises(AccessDenied, policy.authorize, "destroy", Document)

        self.assertIn("DENIED", cm.output[0])
        self.assertFalse(policy.allows("destroy", Document))

    def test_errors_deny(self):
        policy = AuditedPolicy(BrokenPolicy())

        with self.assertLogs("resourcegate.policy.manager", level="ERROR"):
            with self.assertRaises(AccessDenied) as cm:
                policy.authorize("show", Document)

        self.assertIsInstance(cm.exception.__cause__, RuntimeError)

    def test_delegation(self):
        inner = DocumentPolicy("ann")
        policy = AuditedPolicy(inner)

        self.assertEqual(policy.identity, "ann")
        self.assertEqual(policy.get_name(), "DocumentPolicy")
        self.assertEqual(policy.default_attributes_for("create", Document), {"owner": "ann"})
        self.assertFalse(policy.has_custom_rule("update", Document))
        self.assertEqual(policy.rules_for("show", Document), inner.rules_for("show", Document))
        self.assertRaises(AttributeError, getattr, policy, "missing")


class TestPolicyManager(unittest.TestCase):
    def test_explicit_policy_class(self):
        manager = PolicyManager(DocumentPolicy)
        policy = manager.policy_for("ann")

        self.assertIsInstance(policy, AuditedPolicy)
        self.assertIsInstance(policy.policy, DocumentPolicy)
        self.assertEqual(policy.identity, "ann")
        self.assertEqual(manager.get_policy_name(), "DocumentPolicy")

    def test_policy_from_config(self):
        with patch.object(config, "get", return_value="resourcegate.policy.providers.rules:RulePolicy"):
            manager = PolicyManager()

        self.assertEqual(manager.get_policy_name(), "RulePolicy")

    def test_no_policy_configured(self):
        with patch.object(config, "get", return_value=""):
            with self.assertLogs("resourcegate.policy.manager", level="WARNING"):
                manager = PolicyManager()

        self.assertEqual(manager.get_policy_name(), "DenyAllPolicy")

    def test_invalid_policy_configured(self):
        for policy_path in (
            "resourcegate.policy.missing:Policy",
            "resourcegate.policy.providers.rules:Missing",
            "resourcegate.policy.providers.rules:Rule",
        ):
            with self.subTest(policy_path=policy_path):
                with patch.object(config, "get", return_value=policy_path):
                    with self.assertLogs("resourcegate.policy.manager", level="ERROR") as cm:
                        manager = PolicyManager()

                self.assertEqual(manager.get_policy_name(), "DenyAllPolicy")
                self.assertTrue(any("SECURITY" in line for line in cm.output))

    def test_failing_policy_falls_back_to_deny_all(self):
        manager = PolicyManager(FailingInitPolicy)

        with self.assertLogs("resourcegate.policy.manager", level="ERROR"):
            policy = manager.policy_for("ann")

        self.assertIsInstance(policy.policy, DenyAllPolicy)
        self.assertFalse(policy.allows("show", Document))

    def test_global_manager(self):
        with patch("resourcegate.policy.manager._manager", None):
            with patch.object(config, "get", return_value=""):
                manager = get_policy_manager()

            self.assertIs(get_policy_manager(), manager)


if __name__ == "__main__":
    unittest.main()
