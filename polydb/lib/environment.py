from __future__ import annotations
import typing
from dataclasses import dataclass

from polydb.lib.errors import UnboundIdentifier

if typing.TYPE_CHECKING:
    from polydb.lib.ast import Object


@dataclass(frozen=True)
class Node:
    name: str
    value: "Object"
    parent: typing.Optional[Node]


class Environment(typing.Mapping[str, "Object"]):
    """Persistent, append-only variable scope.

    `insert` never touches an existing environment: it returns a new head that
    shares the old one as its tail, so any number of closures can hold on to
    overlapping scopes. Lookup walks from the head and the most recent binding
    of a name wins.
    """

    __slots__ = ("head",)

    def __init__(self, head: typing.Optional[Node] = None) -> None:
        self.head = head

    def insert(self, name: str, value: "Object") -> Environment:
        return Environment(Node(name, value, self.head))

    def lookup(self, name: str) -> "Object":
        node = self.head
        while node is not None:
            if node.name == name:
                return node.value
            node = node.parent
        raise UnboundIdentifier(name)

    def __getitem__(self, name: str) -> "Object":
        try:
            return self.lookup(name)
        except UnboundIdentifier:
            raise KeyError(name) from None

    def __iter__(self) -> typing.Iterator[str]:
        seen: set[str] = set()
        node = self.head
        while node is not None:
            if node.name not in seen:
                seen.add(node.name)
                yield node.name
            node = node.parent

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"Environment({list(self)})"
