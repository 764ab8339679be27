import unittest
from typing import Optional

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from resourcegate.adapters import (
    AbstractAdapter,
    AccessibleMixin,
    AdapterMissing,
    BackendMissing,
    DefaultAdapter,
    SQLAlchemyAdapter,
)
from resourcegate.adapters.db import DBManager, db_manager
from resourcegate.engine.context import RequestContext
from resourcegate.engine.errors import RecordNotFound
from resourcegate.engine.naming import TypeRegistry
from resourcegate.engine.resource import ControllerResource
from resourcegate.policy.manager import AuditedPolicy, DenyAllPolicy
from resourcegate.policy.providers.rules import RulePolicy


class Base(DeclarativeBase):
    pass


class Project(AccessibleMixin, Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    owner: Mapped[str] = mapped_column(String(100))
    archived: Mapped[bool] = mapped_column(default=False)


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(100))
    project_id: Mapped[Optional[int]] = mapped_column(ForeignKey("projects.id"))


class Note:
    def __init__(self, id=None, text=""):
        self.id = id
        self.text = text


class NoteBook:
    def __init__(self):
        self.built = []

    def build(self, **attributes):
        note = Note(**attributes)
        self.built.append(note)
        return note


class ProjectPolicy(RulePolicy):
    def define_rules(self):
        self.can("read", Project, owner=self.identity)
        self.can("read", Project, owner="shared")
        self.cannot("read", Project, archived=True)


class DatabaseTestCase(unittest.TestCase):
    def setUp(self):
        engine = db_manager.make_engine("sqlite://")
        Base.metadata.create_all(engine)

        with db_manager.session_context() as session:
            session.add_all(
                [
                    Project(id=1, name="alpha", owner="ann"),
                    Project(id=2, name="beta", owner="bob"),
                    Project(id=3, name="gamma", owner="shared"),
                    Project(id=4, name="delta", owner="ann", archived=True),
                ]
            )

    def tearDown(self):
        Base.metadata.drop_all(db_manager.engine)

    def names(self, records):
        return sorted(record.name for record in records)


class TestAdapterSelection(unittest.TestCase):
    def test_adapter_class(self):
        self.assertIs(AbstractAdapter.adapter_class(Project), SQLAlchemyAdapter)
        self.assertIs(AbstractAdapter.adapter_class(Note), DefaultAdapter)

    def test_adapter_for(self):
        adapter = AbstractAdapter.adapter_for(Project)

        self.assertIsInstance(adapter, SQLAlchemyAdapter)
        self.assertIs(adapter.model_class, Project)


class TestDefaultAdapter(unittest.TestCase):
    def setUp(self):
        self.adapter = DefaultAdapter(Note)
        self.notes = [Note(1, "first"), Note(2, "second")]

    def test_find_in_iterable(self):
        self.assertIs(self.adapter.find(self.notes, "2"), self.notes[1])
        self.assertRaises(RecordNotFound, self.adapter.find, self.notes, "3")

    def test_find_in_mapping(self):
        notes = {"1": self.notes[0]}

        self.assertIs(self.adapter.find(notes, "1"), self.notes[0])
        self.assertRaises(RecordNotFound, self.adapter.find, notes, "2")

    def test_find_with_finder(self):
        class Notes:
            @staticmethod
            def find(id):
                return Note(id, "found")

        self.assertEqual(self.adapter.find(Notes, "7").text, "found")

    def test_find_in_unsupported_base(self):
        self.assertRaises(AdapterMissing, self.adapter.find, object(), "1")

    def test_build(self):
        note = self.adapter.build(Note, {"text": "new"})
        self.assertIsInstance(note, Note)
        self.assertEqual(note.text, "new")

        self.adapter.build(self.notes, {"text": "appended"})
        self.assertEqual(self.notes[-1].text, "appended")

        notebook = NoteBook()
        note = self.adapter.build(notebook, {"text": "built"})
        self.assertEqual(notebook.built, [note])

    def test_find_not_implemented(self):
        class IncompleteAdapter(AbstractAdapter):
            pass

        try:
            self.assertRaises(NotImplementedError, IncompleteAdapter(Note).find, self.notes, "1")
        finally:
            AbstractAdapter._adapters.remove(IncompleteAdapter)


class TestDBManager(unittest.TestCase):
    def test_engine_required(self):
        manager = DBManager()

        self.assertRaises(BackendMissing, getattr, manager, "engine")
        self.assertRaises(BackendMissing, manager.session)

    def test_rollback_on_error(self):
        manager = DBManager()
        engine = manager.make_engine("sqlite://")
        Base.metadata.create_all(engine)

        with self.assertRaises(RuntimeError):
            with manager.session_context() as session:
                session.add(Project(id=10, name="discarded", owner="ann"))
                session.flush()
                raise RuntimeError("abort")

        with manager.session_context() as session:
            self.assertIsNone(session.get(Project, 10))


class TestSQLAlchemyAdapter(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.adapter = SQLAlchemyAdapter(Project)

    def test_find_by_class(self):
        self.assertEqual(self.adapter.find(Project, "2").name, "beta")
        self.assertRaises(RecordNotFound, self.adapter.find, Project, "99")

    def test_id_coercion(self):
        self.assertEqual(self.adapter.coerce_id("3"), 3)
        self.assertRaises(RecordNotFound, self.adapter.find, Project, "abc")

    def test_find_in_select(self):
        scope = Project.accessible_by(ProjectPolicy("ann"), "show")

        self.assertEqual(self.adapter.find(scope, "1").name, "alpha")
        self.assertEqual(self.adapter.find(scope, "3").name, "gamma")
        self.assertRaises(RecordNotFound, self.adapter.find, scope, "2")
        self.assertRaises(RecordNotFound, self.adapter.find, scope, "4")

    def test_find_in_list(self):
        adapter = SQLAlchemyAdapter(Task)
        tasks = [Task(id=5, title="write"), Task(id=6, title="review")]

        self.assertIs(adapter.find(tasks, "6"), tasks[1])
        self.assertRaises(RecordNotFound, adapter.find, tasks, "7")

    def test_accessible_by(self):
        self.assertEqual(self.names(self.adapter.all(Project.accessible_by(ProjectPolicy("ann")))), ["alpha", "gamma"])
        self.assertEqual(self.names(self.adapter.all(Project.accessible_by(ProjectPolicy("bob")))), ["beta", "gamma"])
        self.assertEqual(self.names(self.adapter.all(Project.accessible_by(ProjectPolicy("ann"), "destroy"))), [])

    def test_accessible_by_unrestricted(self):
        policy = RulePolicy()
        policy.can("manage", "all")
        policy.cannot("index", Project, owner="bob")

        self.assertEqual(self.names(self.adapter.all(Project.accessible_by(policy))), ["alpha", "delta", "gamma"])

    def test_accessible_by_opaque_policy(self):
        policy = AuditedPolicy(DenyAllPolicy())
        self.assertEqual(self.adapter.all(Project.accessible_by(policy)), [])

    def test_all(self):
        self.assertEqual(len(self.adapter.all(Project)), 4)

    def test_build(self):
        project = self.adapter.build(Project.accessible_by(ProjectPolicy("ann")), {"name": "epsilon"})
        self.assertIsInstance(project, Project)
        self.assertEqual(project.name, "epsilon")

        project = self.adapter.build(Project, {"name": "zeta"})
        self.assertEqual(project.name, "zeta")


class FakeContext(RequestContext):
    def __init__(self, action, params, policy):
        self._action = action
        self._params = params
        self._policy = policy

    @property
    def action(self):
        return self._action

    @property
    def params(self):
        return self._params

    @property
    def controller_path(self):
        return "projects"

    def current_policy(self):
        return self._policy


class TestLoadingMappedResources(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.types = TypeRegistry()
        self.types.register(Project)

    def resource(self, context):
        return ControllerResource(context, types=self.types, strict=True, orphan_policy="not_found")

    def test_load_instance(self):
        context = FakeContext("show", {"id": "3"}, ProjectPolicy("ann"))
        self.resource(context).load_and_authorize_resource()

        self.assertEqual(context.get_attribute("project").name, "gamma")

    def test_load_collection(self):
        context = FakeContext("index", {}, ProjectPolicy("bob"))
        self.resource(context).load_and_authorize_resource()

        projects = SQLAlchemyAdapter(Project).all(context.get_attribute("projects"))
        self.assertEqual(self.names(projects), ["beta", "gamma"])

    def test_missing_instance(self):
        context = FakeContext("show", {"id": "42"}, ProjectPolicy("ann"))
        self.assertRaises(RecordNotFound, self.resource(context).load_and_authorize_resource)


if __name__ == "__main__":
    unittest.main()
