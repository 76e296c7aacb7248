"""Custom warning classes for the grain_profit package.

These warning classes allow callers to programmatically filter, suppress,
or capture warnings using Python's standard ``warnings`` module.

Example:
    Capture data-quality warnings while building a profit matrix::

        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always", DataQualityWarning)
            result = generator.generate(field_id, business_id)
            issues = [x for x in w if issubclass(x.category, DataQualityWarning)]
"""


class GrainProfitWarning(UserWarning):
    """Base class for all grain_profit warnings."""


class DataQualityWarning(GrainProfitWarning):
    """Inputs that are accepted but probably wrong.

    Raised when, for example, the bushels allocated from one contract to a
    single field exceed the contract's total bushels.
    """
