from __future__ import annotations
import logging
import typing

from polydb.lib.ast import (
    Apply,
    Bool,
    Case,
    Int,
    Lambda,
    Let,
    Object,
    Record,
    String,
    Tuple,
    Unit,
    Var,
    Wildcard,
)
from polydb.lib.errors import UnboundIdentifier
from polydb.lib.ty import (
    BoolType,
    Constraint,
    Context,
    GlobalSub,
    IntType,
    NameSource,
    Scheme,
    StringType,
    Ty,
    TyFun,
    TyRecord,
    TyTuple,
    TyVar,
    UnitType,
    apply_ctx,
    apply_ty,
    extend,
    generalize,
    instantiate,
    substitute_ctx_mut,
    unify,
)

logger = logging.getLogger(__name__)


def atom_type(atom: Object) -> typing.Optional[Ty]:
    if isinstance(atom, Int):
        return IntType
    if isinstance(atom, Bool):
        return BoolType
    if isinstance(atom, Unit):
        return UnitType
    if isinstance(atom, String):
        return StringType
    return None


def unify_pat(
    name_source: NameSource, scrutinee_ty: Ty, pattern: Object
) -> tuple[list[Constraint], dict[str, TyVar]]:
    """Constraints that make `scrutinee_ty` fit the shape of `pattern`, plus
    the type variable standing for each identifier the pattern binds.

    Nothing is solved here; the caller unifies the constraints."""
    ty = atom_type(pattern)
    if ty is not None:
        return [(scrutinee_ty, ty)], {}
    if isinstance(pattern, Wildcard):
        return [], {}
    if isinstance(pattern, Var):
        var = name_source.fresh_tyvar(pattern.name)
        return [(scrutinee_ty, var)], {pattern.name: var}
    if isinstance(pattern, Tuple):
        item_vars: list[Ty] = [name_source.fresh_tyvar() for _ in pattern.items]
        constraints: list[Constraint] = [(scrutinee_ty, TyTuple(item_vars))]
        binders: dict[str, TyVar] = {}
        for item_var, item in zip(item_vars, pattern.items):
            item_constraints, item_binders = unify_pat(name_source, item_var, item)
            constraints.extend(item_constraints)
            binders.update(item_binders)
        return constraints, binders
    if isinstance(pattern, Record):
        field_vars: dict[str, Ty] = {name: name_source.fresh_tyvar(name) for name in pattern.data}
        constraints = [(scrutinee_ty, TyRecord(field_vars))]
        binders = {}
        for name, item in pattern.data.items():
            item_constraints, item_binders = unify_pat(name_source, field_vars[name], item)
            constraints.extend(item_constraints)
            binders.update(item_binders)
        return constraints, binders
    raise TypeError(f"Unexpected pattern {type(pattern).__name__}")


def solve(global_sub: GlobalSub, constraints: list[Constraint]) -> list[tuple[str, Ty]]:
    resolved = [(apply_ty(left, global_sub), apply_ty(right, global_sub)) for left, right in constraints]
    subs = unify(resolved)
    for sub in subs:
        extend(global_sub, sub)
    return subs


def infer(global_sub: GlobalSub, name_source: NameSource, ctx: Context, expr: Object) -> Ty:
    """Infer the type of `expr` under `ctx`.

    `global_sub` accumulates the solution for every variable introduced while
    inferring and is updated in place; the returned type is already resolved
    through it. Any unification failure aborts the whole call."""
    ty = atom_type(expr)
    if ty is not None:
        return ty
    if isinstance(expr, Var):
        scheme = ctx.get(expr.name)
        if scheme is None:
            raise UnboundIdentifier(expr.name)
        return apply_ty(instantiate(scheme, name_source), global_sub)
    if isinstance(expr, Tuple):
        item_tys: list[Ty] = [infer(global_sub, name_source, ctx, item) for item in expr.items]
        return apply_ty(TyTuple(item_tys), global_sub)
    if isinstance(expr, Record):
        field_tys = {name: infer(global_sub, name_source, ctx, value) for name, value in expr.data.items()}
        return apply_ty(TyRecord(field_tys), global_sub)
    if isinstance(expr, Let):
        # Not recursive: a binding only sees the ones before it.
        let_ctx = dict(ctx)
        for name, value in expr.bindings:
            value_ty = infer(global_sub, name_source, let_ctx, value)
            let_ctx[name] = generalize(apply_ctx(let_ctx, global_sub), apply_ty(value_ty, global_sub))
            logger.debug("let %s: %s", name, let_ctx[name])
        return infer(global_sub, name_source, let_ctx, expr.body)
    if isinstance(expr, Lambda):
        param_ty = name_source.fresh_tyvar(expr.param)
        body_ctx = {**ctx, expr.param: Scheme([], param_ty)}
        body_ty = infer(global_sub, name_source, body_ctx, expr.body)
        return apply_ty(TyFun(param_ty, body_ty), global_sub)
    if isinstance(expr, Apply):
        func_ty = infer(global_sub, name_source, ctx, expr.func)
        arg_ty = infer(global_sub, name_source, ctx, expr.arg)
        result = name_source.fresh_tyvar("r")
        solve(global_sub, [(func_ty, TyFun(arg_ty, result))])
        return apply_ty(result, global_sub)
    if isinstance(expr, Case):
        scrutinee_ty = infer(global_sub, name_source, ctx, expr.scrutinee)
        result = name_source.fresh_tyvar("c")
        for arm in expr.arms:
            constraints, binders = unify_pat(name_source, apply_ty(scrutinee_ty, global_sub), arm.pattern)
            # A private copy per arm; bindings never leak into other arms.
            arm_ctx = apply_ctx(ctx, global_sub)
            for sub in solve(global_sub, constraints):
                substitute_ctx_mut(arm_ctx, sub)
            for name, var in binders.items():
                arm_ctx[name] = generalize(arm_ctx, apply_ty(var, global_sub))
            body_ty = infer(global_sub, name_source, arm_ctx, arm.body)
            solve(global_sub, [(body_ty, result)])
        return apply_ty(result, global_sub)
    raise TypeError(f"Unexpected expression {type(expr).__name__}")


def infer_type(
    expr: Object,
    ctx: typing.Optional[typing.Mapping[str, Scheme]] = None,
    name_source: typing.Optional[NameSource] = None,
) -> Ty:
    """Run one inference session over `expr` and return its resolved type.

    Pass `name_source` to keep other fresh variables apart from the ones this
    session introduces."""
    global_sub: GlobalSub = {}
    ty = infer(global_sub, name_source or NameSource(), dict(ctx or {}), expr)
    logger.debug("inferred %s", ty)
    return apply_ty(ty, global_sub)
