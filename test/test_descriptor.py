import unittest

from resourcegate.engine.descriptor import NO_CLASS, ParamExpression, ResourceDescriptor
from resourcegate.engine.errors import ConfigurationError, ImplementationRemoved


class Widget:
    pass


class TestResourceDescriptor(unittest.TestCase):
    def test_defaults(self):
        descriptor = ResourceDescriptor.from_options()

        self.assertIsNone(descriptor.name)
        self.assertIsNone(descriptor.class_override)
        self.assertEqual(descriptor.through, ())
        self.assertFalse(descriptor.singleton)
        self.assertFalse(descriptor.shallow)
        self.assertEqual(descriptor.parent_action, "show")
        self.assertEqual(descriptor.collection_actions, frozenset({"index"}))
        self.assertEqual(descriptor.new_actions, frozenset({"new", "create"}))

    def test_options(self):
        descriptor = ResourceDescriptor.from_options(
            "widget",
            class_=Widget,
            through=["author", "magazine"],
            through_association="published_widgets",
            singleton=True,
            id_param="slug",
            find_by="slug",
            param_method=ParamExpression("forms.widget"),
            instance_name="item",
            parent_action="manage",
            collection="search",
            new=["duplicate"],
        )

        self.assertEqual(descriptor.name, "widget")
        self.assertIs(descriptor.class_override, Widget)
        self.assertEqual(descriptor.through, ("author", "magazine"))
        self.assertEqual(descriptor.through_association, "published_widgets")
        self.assertTrue(descriptor.singleton)
        self.assertEqual(descriptor.id_param, "slug")
        self.assertEqual(descriptor.find_by, "slug")
        self.assertIsInstance(descriptor.param_method, ParamExpression)
        self.assertEqual(descriptor.instance_name, "item")
        self.assertEqual(descriptor.parent_action, "manage")
        self.assertEqual(descriptor.collection_actions, frozenset({"index", "search"}))
        self.assertEqual(descriptor.new_actions, frozenset({"new", "create", "duplicate"}))

    def test_single_through_name(self):
        self.assertEqual(ResourceDescriptor.from_options(through="author").through, ("author",))

    def test_class_alias(self):
        descriptor = ResourceDescriptor.from_options(**{"class": NO_CLASS})
        self.assertIs(descriptor.class_override, NO_CLASS)

    def test_no_class_marker_is_falsy(self):
        self.assertFalse(NO_CLASS)
        self.assertEqual(repr(NO_CLASS), "NO_CLASS")

    def test_removed_options(self):
        for option, replacement in (("nested", "through"), ("name", "first argument"), ("resource", "class_")):
            with self.subTest(option=option):
                with self.assertRaises(ImplementationRemoved) as cm:
                    ResourceDescriptor.from_options(**{option: "value"})

                self.assertEqual(cm.exception.option, option)
                self.assertIn(replacement, str(cm.exception))
                self.assertIsInstance(cm.exception, ConfigurationError)

    def test_unknown_option(self):
        with self.assertRaises(ConfigurationError) as cm:
            ResourceDescriptor.from_options(widget_class=Widget)

        self.assertIn("widget_class", str(cm.exception))

    def test_descriptor_is_immutable(self):
        descriptor = ResourceDescriptor.from_options("widget")

        with self.assertRaises(AttributeError):
            descriptor.name = "gadget"


if __name__ == "__main__":
    unittest.main()
