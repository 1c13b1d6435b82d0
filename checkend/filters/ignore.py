"""Exception ignore matching."""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Tuple, Union


def type_name(cls: type) -> str:
    """
    Fully-qualified name of an exception class.

    Builtins are reported by their bare name (``RuntimeError``), everything
    else as ``module.QualName``.
    """
    module = getattr(cls, "__module__", None)
    qualname = getattr(cls, "__qualname__", cls.__name__)
    if not module or module == "builtins":
        return qualname
    return f"{module}.{qualname}"


@dataclass(frozen=True)
class FaultIdentity:
    """Names a fault is matched by."""

    full_name: str
    short_name: str
    ancestors: Tuple[str, ...] = ()

    @classmethod
    def from_exception(cls, exc: Union[BaseException, type]) -> "FaultIdentity":
        exc_type = exc if isinstance(exc, type) else type(exc)
        ancestors = tuple(
            type_name(base)
            for base in exc_type.__mro__[1:]
            if base is not object
        )
        return cls(
            full_name=type_name(exc_type),
            short_name=exc_type.__name__,
            ancestors=ancestors,
        )


def _compile_glob(pattern: str) -> Optional[Pattern[str]]:
    """Compile a ``*``/``|`` glob, or None for plain names."""
    if "*" not in pattern and "|" not in pattern:
        return None
    escaped = re.escape(pattern).replace(r"\*", ".*").replace(r"\|", "|")
    return re.compile(f"^(?:{escaped})$")


class IgnoreFilter:
    """
    Decide whether a fault should be suppressed.

    Patterns are tried in order, first match wins:
    - exact fully-qualified name
    - ancestor class name
    - exact short name
    - glob (``*`` and ``|``) against both names
    """

    def __init__(self, patterns: Iterable[str]):
        self._patterns: List[Tuple[str, Optional[Pattern[str]]]] = [
            (pattern, _compile_glob(pattern)) for pattern in patterns
        ]

    @property
    def patterns(self) -> Tuple[str, ...]:
        return tuple(pattern for pattern, _ in self._patterns)

    def should_ignore(self, fault: Union[FaultIdentity, BaseException]) -> bool:
        identity = (
            fault
            if isinstance(fault, FaultIdentity)
            else FaultIdentity.from_exception(fault)
        )

        for pattern, glob in self._patterns:
            if identity.full_name == pattern:
                return True
            if pattern in identity.ancestors:
                return True
            if identity.short_name == pattern:
                return True
            if glob is not None and (
                glob.match(identity.full_name) or glob.match(identity.short_name)
            ):
                return True

        return False
