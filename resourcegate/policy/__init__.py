"""Authorization policies for resourcegate.

A policy decides whether the current identity may perform an action on a subject. The engine presents it with:

- an entity instance, when one was loaded or built for the request
- a ``NestedSubject`` pairing a parent entity with the resource class, when the resource is reached through a parent
- the resource class, or an ``AuthOnlySymbol`` naming the resource when it has no class

The package consists of:

- Policy interface: the abstract ``AuthorizationPolicy``
- Rule-based policy: ``RulePolicy``, built from ``can``/``cannot`` rules
- Policy manager: loads the configured policy class and audits every decision
"""
