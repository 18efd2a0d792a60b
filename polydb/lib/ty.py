from __future__ import annotations
import copy
import dataclasses
import logging
import typing

from polydb.lib.errors import UnificationFailure

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class Ty:
    pass


@dataclasses.dataclass
class TyInt(Ty):
    def __str__(self) -> str:
        return "Int"


@dataclasses.dataclass
class TyBool(Ty):
    def __str__(self) -> str:
        return "Bool"


@dataclasses.dataclass
class TyUnit(Ty):
    def __str__(self) -> str:
        return "()"


@dataclasses.dataclass
class TyString(Ty):
    def __str__(self) -> str:
        return "String"


@dataclasses.dataclass
class TyVar(Ty):
    name: str

    def __str__(self) -> str:
        return self.name


@dataclasses.dataclass
class TyTuple(Ty):
    items: list[Ty]

    def __str__(self) -> str:
        return f"({', '.join(map(str, self.items))})"


@dataclasses.dataclass
class TyRecord(Ty):
    # Field order is kept for display; equality is by name.
    fields: dict[str, Ty]

    def __str__(self) -> str:
        if not self.fields:
            return "{}"
        return f"{{ {', '.join(f'{name}: {ty}' for name, ty in self.fields.items())} }}"


@dataclasses.dataclass
class TyFun(Ty):
    arg: Ty
    ret: Ty

    def __str__(self) -> str:
        return f"({self.arg} -> {self.ret})"


@dataclasses.dataclass
class TyDefined(Ty):
    name: str
    args: list[Ty] = dataclasses.field(default_factory=list)

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f"({self.name} {' '.join(map(str, self.args))})"


@dataclasses.dataclass
class Scheme:
    bound: list[str]
    ty: Ty

    def __str__(self) -> str:
        if not self.bound:
            return str(self.ty)
        return f"(forall {', '.join(self.bound)}. {self.ty})"


IntType = TyInt()
BoolType = TyBool()
UnitType = TyUnit()
StringType = TyString()

BASE_TYPES = (TyInt, TyBool, TyUnit, TyString)


def func_type(*args: Ty) -> TyFun:
    assert len(args) >= 2
    if len(args) == 2:
        return TyFun(args[0], args[1])
    return TyFun(args[0], func_type(*args[1:]))


Context = typing.Dict[str, Scheme]
Constraint = typing.Tuple[Ty, Ty]
Substitution = typing.Tuple[str, Ty]
GlobalSub = typing.Dict[str, Ty]


class NameSource:
    """Hands out type variable names that are unique within one inference
    session. Never share one between sessions."""

    def __init__(self) -> None:
        self.counter = 0

    def fresh(self, seed: str) -> str:
        result = f"{seed}_{self.counter}"
        self.counter += 1
        return result

    def fresh_tyvar(self, seed: str = "t") -> TyVar:
        return TyVar(self.fresh(seed))


def ftv_ty(ty: Ty) -> set[str]:
    if isinstance(ty, TyVar):
        return {ty.name}
    if isinstance(ty, BASE_TYPES):
        return set()
    if isinstance(ty, TyFun):
        return ftv_ty(ty.arg) | ftv_ty(ty.ret)
    if isinstance(ty, TyTuple):
        return set().union(*map(ftv_ty, ty.items))
    if isinstance(ty, TyRecord):
        return set().union(*map(ftv_ty, ty.fields.values()))
    if isinstance(ty, TyDefined):
        return set().union(*map(ftv_ty, ty.args))
    raise TypeError(f"Unknown type: {ty}")


def ftv_scheme(scheme: Scheme) -> set[str]:
    return ftv_ty(scheme.ty) - set(scheme.bound)


def ftv_ctx(ctx: typing.Mapping[str, Scheme]) -> set[str]:
    return set().union(*(ftv_scheme(scheme) for scheme in ctx.values()))


def substitute(ty: Ty, sub: Substitution) -> Ty:
    """Return a copy of `ty` with every occurrence of the variable replaced.

    Composite nodes are always rebuilt and the replacement is copied, so the
    result can be updated in place without touching its inputs."""
    name, replacement = sub
    if isinstance(ty, TyVar):
        return copy.deepcopy(replacement) if ty.name == name else ty
    if isinstance(ty, BASE_TYPES):
        return ty
    if isinstance(ty, TyFun):
        return TyFun(substitute(ty.arg, sub), substitute(ty.ret, sub))
    if isinstance(ty, TyTuple):
        return TyTuple([substitute(item, sub) for item in ty.items])
    if isinstance(ty, TyRecord):
        return TyRecord({field: substitute(value, sub) for field, value in ty.fields.items()})
    if isinstance(ty, TyDefined):
        return TyDefined(ty.name, [substitute(arg, sub) for arg in ty.args])
    raise TypeError(f"Unknown type: {ty}")


def substitute_mut(ty: Ty, sub: Substitution) -> Ty:
    """In-place variant of `substitute`. Composite nodes are rewritten where
    they stand; the (possibly new) root is returned."""
    name, replacement = sub
    if isinstance(ty, TyVar):
        return replacement if ty.name == name else ty
    if isinstance(ty, BASE_TYPES):
        return ty
    if isinstance(ty, TyFun):
        ty.arg = substitute_mut(ty.arg, sub)
        ty.ret = substitute_mut(ty.ret, sub)
        return ty
    if isinstance(ty, TyTuple):
        for i, item in enumerate(ty.items):
            ty.items[i] = substitute_mut(item, sub)
        return ty
    if isinstance(ty, TyRecord):
        for field, value in ty.fields.items():
            ty.fields[field] = substitute_mut(value, sub)
        return ty
    if isinstance(ty, TyDefined):
        for i, arg in enumerate(ty.args):
            ty.args[i] = substitute_mut(arg, sub)
        return ty
    raise TypeError(f"Unknown type: {ty}")


def substitute_constraint(constraint: Constraint, sub: Substitution) -> Constraint:
    left, right = constraint
    return substitute(left, sub), substitute(right, sub)


def substitute_scheme(scheme: Scheme, sub: Substitution) -> Scheme:
    if sub[0] in scheme.bound:
        return Scheme(list(scheme.bound), copy.deepcopy(scheme.ty))
    return Scheme(list(scheme.bound), substitute(scheme.ty, sub))


def substitute_scheme_mut(scheme: Scheme, sub: Substitution) -> Scheme:
    if sub[0] not in scheme.bound:
        scheme.ty = substitute_mut(scheme.ty, sub)
    return scheme


def substitute_ctx(ctx: typing.Mapping[str, Scheme], sub: Substitution) -> Context:
    return {name: substitute_scheme(scheme, sub) for name, scheme in ctx.items()}


def substitute_ctx_mut(ctx: Context, sub: Substitution) -> None:
    for scheme in ctx.values():
        substitute_scheme_mut(scheme, sub)


def apply_ty(ty: Ty, subst: typing.Mapping[str, Ty]) -> Ty:
    """Resolve `ty` through an idempotent substitution map in one pass."""
    if isinstance(ty, TyVar):
        if ty.name in subst:
            return copy.deepcopy(subst[ty.name])
        return ty
    if isinstance(ty, BASE_TYPES):
        return ty
    if isinstance(ty, TyFun):
        return TyFun(apply_ty(ty.arg, subst), apply_ty(ty.ret, subst))
    if isinstance(ty, TyTuple):
        return TyTuple([apply_ty(item, subst) for item in ty.items])
    if isinstance(ty, TyRecord):
        return TyRecord({field: apply_ty(value, subst) for field, value in ty.fields.items()})
    if isinstance(ty, TyDefined):
        return TyDefined(ty.name, [apply_ty(arg, subst) for arg in ty.args])
    raise TypeError(f"Unknown type: {ty}")


def apply_scheme(scheme: Scheme, subst: typing.Mapping[str, Ty]) -> Scheme:
    visible = {name: ty for name, ty in subst.items() if name not in scheme.bound}
    return Scheme(list(scheme.bound), apply_ty(scheme.ty, visible))


def apply_ctx(ctx: typing.Mapping[str, Scheme], subst: typing.Mapping[str, Ty]) -> Context:
    return {name: apply_scheme(scheme, subst) for name, scheme in ctx.items()}


def extend(global_sub: GlobalSub, sub: Substitution) -> None:
    """Fold one substitution into the session's solution, keeping it
    idempotent: no value ever mentions a solved variable."""
    name, ty = sub
    ty = apply_ty(ty, global_sub)
    resolved = (name, ty)
    for key, value in global_sub.items():
        global_sub[key] = substitute_mut(value, resolved)
    global_sub[name] = ty


def unify_fail(left: Ty, right: Ty) -> typing.NoReturn:
    raise UnificationFailure(left, right)


def unify(constraints: typing.Iterable[Constraint]) -> list[Substitution]:
    """Solve type equalities left to right.

    A substitution is emitted after the ones discovered while solving the
    constraints it was applied to, and each replacement is already resolved
    through the substitutions before it, so applying the result in order is
    enough to make every constraint hold."""
    work = list(constraints)
    found: list[Substitution] = []
    while work:
        left, right = work.pop(0)
        if left == right:
            continue
        if isinstance(left, TyVar) and left.name not in ftv_ty(right):
            found.append((left.name, right))
            work = [substitute_constraint(c, found[-1]) for c in work]
            continue
        if isinstance(right, TyVar) and right.name not in ftv_ty(left):
            found.append((right.name, left))
            work = [substitute_constraint(c, found[-1]) for c in work]
            continue
        # An occurs-check hit lands here and fails as a plain mismatch.
        if isinstance(left, TyFun) and isinstance(right, TyFun):
            work = [(left.arg, right.arg), (left.ret, right.ret), *work]
            continue
        if isinstance(left, TyTuple) and isinstance(right, TyTuple) and len(left.items) == len(right.items):
            work = [*zip(left.items, right.items), *work]
            continue
        if isinstance(left, TyRecord) and isinstance(right, TyRecord):
            left_names = sorted(left.fields)
            right_names = sorted(right.fields)
            if left_names != right_names:
                raise UnificationFailure(left, right, f"could not unify records {left} and {right}")
            work = [*((left.fields[name], right.fields[name]) for name in left_names), *work]
            continue
        if (
            isinstance(left, TyDefined)
            and isinstance(right, TyDefined)
            and left.name == right.name
            and len(left.args) == len(right.args)
        ):
            work = [*zip(left.args, right.args), *work]
            continue
        unify_fail(left, right)
    result: list[Substitution] = []
    for name, ty in reversed(found):
        for sub in result:
            ty = substitute(ty, sub)
        result.append((name, ty))
    logger.debug("unified %d constraints into %s", len(found), result)
    return result


def instantiate(scheme: Scheme, name_source: NameSource) -> Ty:
    # All bound variables are renamed at once so a fresh name is never renamed again.
    fresh = {name: TyVar(name_source.fresh(name)) for name in scheme.bound}
    return apply_ty(scheme.ty, fresh)


def generalize(ctx: typing.Mapping[str, Scheme], ty: Ty) -> Scheme:
    tyvars = ftv_ty(ty) - ftv_ctx(ctx)
    return Scheme(sorted(tyvars), ty)
