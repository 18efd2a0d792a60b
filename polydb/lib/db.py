import concurrent.futures
import logging
import typing
from dataclasses import dataclass, field

from polydb.lib.ast import (
    CreateStmt,
    InsertStmt,
    LetStmt,
    Object,
    SelectStmt,
    Statement,
    TableDefinition,
    UnionStmt,
    pretty,
)
from polydb.lib.environment import Environment
from polydb.lib.errors import DatabaseError, UnificationFailure
# pylint: disable=redefined-builtin
from polydb.lib.evaluator import eval
from polydb.lib.infer import infer_type
from polydb.lib.parser import parse_statement, tokenize
from polydb.lib.ty import Context, NameSource, Ty, TyDefined, TyFun, TyRecord, TyTuple, generalize, instantiate, unify

logger = logging.getLogger(__name__)


@dataclass
class Table:
    name: str
    definition: TableDefinition
    rows: typing.List[Object] = field(default_factory=list)


class Database:
    """Session state for one database: tables, the type context and runtime
    environment built up by `let`, and declared union types.

    A statement either fully succeeds or leaves all of this untouched. Not
    thread safe; drive it through `DatabaseWorker` when shared."""

    def __init__(self) -> None:
        self.ctx: Context = {}
        self.env: Environment = Environment()
        self.tables: typing.Dict[str, Table] = {}
        self.unions: typing.Dict[str, typing.List[str]] = {}
        self.constructors: typing.Dict[str, typing.Tuple[typing.List[Ty], str]] = {}

    def run(self, source: str) -> str:
        tokens = tokenize(source)
        logger.debug("Tokens: %s", tokens)
        return self.execute(parse_statement(tokens))

    def execute(self, stmt: Statement) -> str:
        logger.debug("execute %s", stmt)
        if isinstance(stmt, CreateStmt):
            return self.create(stmt)
        if isinstance(stmt, InsertStmt):
            return self.insert(stmt)
        if isinstance(stmt, SelectStmt):
            return self.select(stmt)
        if isinstance(stmt, LetStmt):
            return self.let(stmt)
        if isinstance(stmt, UnionStmt):
            return self.union(stmt)
        raise NotImplementedError(f"execute not implemented for {type(stmt).__name__}")

    def table(self, name: str) -> Table:
        table = self.tables.get(name)
        if table is None:
            raise DatabaseError(f"No such table {name}")
        return table

    def check_declared(self, ty: Ty) -> None:
        if isinstance(ty, TyDefined):
            params = self.unions.get(ty.name)
            if params is None:
                raise DatabaseError(f"Unknown type {ty.name}")
            if len(params) != len(ty.args):
                raise DatabaseError(f"Type {ty.name} expects {len(params)} arguments, got {len(ty.args)}")
            children: typing.List[Ty] = list(ty.args)
        elif isinstance(ty, TyFun):
            children = [ty.arg, ty.ret]
        elif isinstance(ty, TyTuple):
            children = list(ty.items)
        elif isinstance(ty, TyRecord):
            children = list(ty.fields.values())
        else:
            children = []
        for child in children:
            self.check_declared(child)

    def create(self, stmt: CreateStmt) -> str:
        if stmt.table in self.tables:
            raise DatabaseError(f"Table {stmt.table} already exists")
        self.check_declared(stmt.definition.ty)
        self.tables[stmt.table] = Table(stmt.table, stmt.definition)
        return "Created"

    def insert(self, stmt: InsertStmt) -> str:
        table = self.table(stmt.table)
        name_source = NameSource()
        ty = infer_type(stmt.value, self.ctx, name_source)
        # The declared type's variables are renamed apart from the inferred ones.
        definition = instantiate(generalize({}, table.definition.ty), name_source)
        try:
            unify([(ty, definition)])
        except UnificationFailure as e:
            raise DatabaseError(
                f"Could not insert {pretty(stmt.value)} into table {table.name} with definition {table.definition.ty}"
            ) from e
        table.rows.append(eval(self.env, stmt.value))
        return "Inserted 1"

    def select(self, stmt: SelectStmt) -> str:
        table = self.table(stmt.table)
        return f"[{', '.join(pretty(row) for row in table.rows)}]"

    def let(self, stmt: LetStmt) -> str:
        ty = infer_type(stmt.value, self.ctx)
        scheme = generalize(self.ctx, ty)
        value = eval(self.env, stmt.value)
        # Commit only once both inference and evaluation succeeded.
        self.ctx = {**self.ctx, stmt.name: scheme}
        self.env = self.env.insert(stmt.name, value)
        return f"{stmt.name}: {ty}"

    def union(self, stmt: UnionStmt) -> str:
        if stmt.name in self.unions:
            raise DatabaseError(f"Type {stmt.name} already exists")
        unions = {**self.unions, stmt.name: list(stmt.params)}
        constructors = dict(self.constructors)
        for variant, args in stmt.variants:
            if variant in constructors:
                raise DatabaseError(f"Constructor {variant} already exists")
            constructors[variant] = (list(args), stmt.name)
        self.unions = unions
        self.constructors = constructors
        return "Ok"


class DatabaseWorker:
    """Serializes statements from any number of threads onto one worker, so
    the database only ever runs one statement at a time."""

    def __init__(self, database: typing.Optional[Database] = None) -> None:
        self.database = database or Database()
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="polydb")

    def submit(self, source: str) -> "concurrent.futures.Future[str]":
        return self.executor.submit(self.database.run, source)

    def run(self, source: str) -> str:
        return self.submit(source).result()

    def shutdown(self) -> None:
        self.executor.shutdown(wait=True)

    def __enter__(self) -> "DatabaseWorker":
        return self

    def __exit__(self, *args: typing.Any) -> None:
        self.shutdown()
