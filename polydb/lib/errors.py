from typing import Any


class UnboundIdentifier(NameError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Identifier {name} not found")
        self.name = name


class UnificationFailure(TypeError):
    def __init__(self, lhs: Any, rhs: Any, message: str = "") -> None:
        super().__init__(message or f"could not unify {lhs} and {rhs}")
        self.lhs = lhs
        self.rhs = rhs


class MatchError(Exception):
    pass


class NoMatchingCasePattern(MatchError):
    def __init__(self, value: Any) -> None:
        super().__init__(f"no match found for {value}")
        self.value = value


class AppliedNonClosure(TypeError):
    pass


class DatabaseError(Exception):
    pass
