from typing import Any

from sqlalchemy import ColumnElement, Select, and_, false, inspect, not_, or_, select, true
from sqlalchemy.orm import Mapper

from resourcegate import resourcegate_logging
from resourcegate.adapters.abstract import AbstractAdapter
from resourcegate.adapters.db import db_manager
from resourcegate.engine.errors import RecordNotFound

logger = resourcegate_logging.init_logging("db")


class SQLAlchemyAdapter(AbstractAdapter):
    """Adapter for classes mapped by the SQLAlchemy ORM. The base in which a record is found may be:

    * the mapped class itself, queried by primary key
    * a ``Select`` statement (as returned by ``accessible_by`` or by an association accessor), further filtered by
      primary key
    * a list of records, such as a loaded one-to-many relationship

    Ids arrive as strings and are converted to the Python type of the primary key column before querying, so that an
    id which cannot be converted is reported as not found.
    """

    @classmethod
    def for_class(cls, model_class: Any) -> bool:
        return isinstance(model_class, type) and isinstance(inspect(model_class, raiseerr=False), Mapper)

    @property
    def mapper(self) -> Mapper:
        return inspect(self.model_class)

    @property
    def primary_key(self) -> Any:
        return self.mapper.primary_key[0]

    def coerce_id(self, id: str) -> Any:
        try:
            python_type = self.primary_key.type.python_type
        except NotImplementedError:
            return id

        try:
            return python_type(id)
        except (TypeError, ValueError) as err:
            raise RecordNotFound(f"{self.model_class.__name__} with id '{id}' not found") from err

    def find(self, base: Any, id: str) -> Any:
        pk_value = self.coerce_id(id)

        if isinstance(base, Select):
            with db_manager.session_context() as session:
                record = session.scalars(base.where(self.primary_key == pk_value)).first()
        elif isinstance(base, type):
            with db_manager.session_context() as session:
                record = session.get(base, pk_value)
        else:
            key = self.mapper.get_property_by_column(self.primary_key).key
            record = next((item for item in base if getattr(item, key, None) == pk_value), None)

        if record is None:
            raise RecordNotFound(f"{self.model_class.__name__} with id '{id}' not found")

        logger.debug("Found %s with id '%s'", self.model_class.__name__, id)
        return record

    def all(self, base: Any) -> list[Any]:
        """Executes a ``Select`` base, as returned by ``accessible_by``, and returns the records it selects."""
        if isinstance(base, Select):
            with db_manager.session_context() as session:
                return list(session.scalars(base))

        if isinstance(base, type):
            return self.all(select(base))

        return list(base)

    def build(self, base: Any, attributes: dict[str, Any]) -> Any:
        if isinstance(base, Select):
            return self.model_class(**attributes)

        return super().build(base, attributes)


def accessible_conditions(model_class: type, policy: Any, action: str) -> ColumnElement[bool]:
    """Turns the rules of a policy for ``action`` on ``model_class`` into a SQL condition. Rules are applied in the
    order they were defined, so that later ``can`` rules add records and later ``cannot`` rules remove them. Policies
    which do not expose their rules (through ``rules_for``) give access to no record.
    """
    rules_for = getattr(policy, "rules_for", None)
    condition: ColumnElement[bool] = false()

    if not callable(rules_for):
        logger.warning("Policy %s does not expose rules, no %s is accessible", policy, model_class.__name__)
        return condition

    for rule in rules_for(action, model_class):
        rule_condition = and_(true(), *(getattr(model_class, name) == value for name, value in rule.attributes.items()))

        if rule.allowed:
            condition = or_(rule_condition, condition)
        else:
            condition = and_(not_(rule_condition), condition)

    return condition


class AccessibleMixin:
    """Mixin for mapped classes which lets collections be loaded with the records the policy gives access to::

        class Project(AccessibleMixin, Base):
            ...

        session.scalars(Project.accessible_by(policy, "index"))
    """

    @classmethod
    def accessible_by(cls, policy: Any, action: str = "index") -> Select:
        return select(cls).where(accessible_conditions(cls, policy, action))
