from __future__ import annotations
import json
import typing
from dataclasses import dataclass

from polydb.lib.environment import Environment
from polydb.lib.ty import Ty


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class Object:
    def __str__(self) -> str:
        return pretty(self)


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class Int(Object):
    value: int


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class Bool(Object):
    value: bool


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class Unit(Object):
    pass


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class String(Object):
    value: str


ATOMS = (Int, Bool, Unit, String)


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class Var(Object):
    name: str


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class Wildcard(Object):
    pass


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class Tuple(Object):
    items: typing.List[Object]


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class Record(Object):
    data: typing.Dict[str, Object]


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class Let(Object):
    bindings: typing.List[typing.Tuple[str, Object]]
    body: Object


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class Apply(Object):
    func: Object
    arg: Object


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class Lambda(Object):
    param: str
    body: Object


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class CaseArm(Object):
    pattern: Object
    body: Object


@dataclass(eq=True, frozen=True, unsafe_hash=True)
class Case(Object):
    scrutinee: Object
    arms: typing.List[CaseArm]


@dataclass(eq=False, frozen=True)
class Closure(Object):
    env: Environment
    func: Lambda

    # Closures are not structurally comparable; only identity counts.
    def __eq__(self, other: object) -> bool:
        return self is other

    def __hash__(self) -> int:
        return id(self)


@dataclass(eq=True, frozen=True)
class TableDefinition:
    ty: Ty


@dataclass(eq=True, frozen=True)
class Statement:
    def __str__(self) -> str:
        return pretty_statement(self)


@dataclass(eq=True, frozen=True)
class CreateStmt(Statement):
    table: str
    definition: TableDefinition


@dataclass(eq=True, frozen=True)
class InsertStmt(Statement):
    table: str
    value: Object


@dataclass(eq=True, frozen=True)
class SelectStmt(Statement):
    table: str


@dataclass(eq=True, frozen=True)
class LetStmt(Statement):
    name: str
    value: Object


@dataclass(eq=True, frozen=True)
class UnionStmt(Statement):
    name: str
    params: typing.List[str]
    variants: typing.List[typing.Tuple[str, typing.List[Ty]]]


def pretty(obj: Object) -> str:
    if isinstance(obj, Int):
        return str(obj.value)
    if isinstance(obj, Bool):
        return "True" if obj.value else "False"
    if isinstance(obj, Unit):
        return "()"
    if isinstance(obj, String):
        return json.dumps(obj.value, ensure_ascii=False)
    if isinstance(obj, Var):
        return obj.name
    if isinstance(obj, Wildcard):
        return "_"
    if isinstance(obj, Tuple):
        return f"({', '.join(pretty(item) for item in obj.items)})"
    if isinstance(obj, Record):
        if not obj.data:
            return "{}"
        return f"{{ {', '.join(f'{key} = {pretty(obj.data[key])}' for key in sorted(obj.data))} }}"
    if isinstance(obj, Closure):
        return "<closure>"
    if isinstance(obj, Apply):
        return f"({pretty(obj.func)} {pretty(obj.arg)})"
    if isinstance(obj, Lambda):
        return f"(lambda {obj.param} -> {pretty(obj.body)})"
    if isinstance(obj, Let):
        bindings = ", ".join(f"{name} = {pretty(value)}" for name, value in obj.bindings)
        return f"let {bindings} in {pretty(obj.body)} end"
    if isinstance(obj, CaseArm):
        return f"{pretty(obj.pattern)} => {pretty(obj.body)}"
    if isinstance(obj, Case):
        arms = " | ".join(pretty(arm) for arm in obj.arms)
        return f"case {pretty(obj.scrutinee)} of {arms} end"
    raise NotImplementedError(f"pretty not implemented for {type(obj).__name__}")


def pretty_statement(stmt: Statement) -> str:
    if isinstance(stmt, CreateStmt):
        return f"create table {stmt.table} {stmt.definition.ty}"
    if isinstance(stmt, InsertStmt):
        return f"insert {pretty(stmt.value)} into {stmt.table}"
    if isinstance(stmt, SelectStmt):
        return f"select from {stmt.table}"
    if isinstance(stmt, LetStmt):
        return f"let {stmt.name} = {pretty(stmt.value)}"
    if isinstance(stmt, UnionStmt):
        head = " ".join([stmt.name, *stmt.params])
        variants = " | ".join(" ".join([name, *map(str, args)]) for name, args in stmt.variants)
        return f"union {head} = {variants}"
    raise NotImplementedError(f"pretty not implemented for {type(stmt).__name__}")
