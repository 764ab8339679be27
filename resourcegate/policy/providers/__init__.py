"""Authorization policies shipped with resourcegate.

This package contains implementations of the AuthorizationPolicy interface.

Available policies:
- rules: RulePolicy, defined by ``can``/``cannot`` rules on actions and subjects
"""
