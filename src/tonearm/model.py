from typing import TypeVar

from tonearm.errors import ConversionError

T = TypeVar("T")


def narrow(value: object, target: type[T]) -> T:
    """
    Narrow a decoded object into a more specific type.

    Decoded responses are often unions (a full object or a simplified one); callers
    that require the specific variant use this to get a typed error instead of an
    attribute error later on.

    Raises:
        ConversionError: If value is not an instance of target.
    """
    if isinstance(value, target):
        return value
    raise ConversionError(expected=target, actual=type(value))
