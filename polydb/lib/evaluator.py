import logging
from typing import Optional

from polydb.lib.ast import (
    ATOMS,
    Apply,
    Case,
    Closure,
    Lambda,
    Let,
    Object,
    Record,
    Tuple,
    Var,
    Wildcard,
)
from polydb.lib.environment import Environment
from polydb.lib.errors import AppliedNonClosure, MatchError, NoMatchingCasePattern

logger = logging.getLogger(__name__)


def match_pat(env: Environment, pattern: Object, value: Object) -> Optional[Environment]:
    """Match `value` against `pattern`, returning `env` extended with the
    pattern's bindings, or None if it does not match."""
    if isinstance(pattern, Var):
        return env.insert(pattern.name, value)
    if isinstance(pattern, Wildcard):
        return env
    if isinstance(pattern, ATOMS):
        return env if value == pattern else None
    if isinstance(pattern, Tuple):
        if not isinstance(value, Tuple) or len(value.items) != len(pattern.items):
            return None
        result: Optional[Environment] = env
        for pattern_item, item in zip(pattern.items, value.items):
            result = match_pat(result, pattern_item, item)
            if result is None:
                return None
        return result
    if isinstance(pattern, Record):
        # Fields are looked up by name, so field order on either side is
        # irrelevant; the field sets must agree exactly.
        if not isinstance(value, Record) or value.data.keys() != pattern.data.keys():
            return None
        result = env
        for key, pattern_item in pattern.data.items():
            result = match_pat(result, pattern_item, value.data[key])
            if result is None:
                return None
        return result
    raise MatchError(f"match not implemented for {type(pattern).__name__}")


def apply_closure(callee: Object, arg: Object) -> Object:
    if not isinstance(callee, Closure):
        raise AppliedNonClosure(f"attempted to apply a non-closure of type {type(callee).__name__}")
    return eval(callee.env.insert(callee.func.param, arg), callee.func.body)


# pylint: disable=redefined-builtin
def eval(env: Environment, exp: Object) -> Object:
    logger.debug(exp)
    if isinstance(exp, (*ATOMS, Closure)):
        return exp
    if isinstance(exp, Var):
        return env.lookup(exp.name)
    if isinstance(exp, Tuple):
        return Tuple([eval(env, item) for item in exp.items])
    if isinstance(exp, Record):
        return Record({key: eval(env, value) for key, value in exp.data.items()})
    if isinstance(exp, Let):
        for name, value in exp.bindings:
            env = env.insert(name, eval(env, value))
        return eval(env, exp.body)
    if isinstance(exp, Lambda):
        return Closure(env, exp)
    if isinstance(exp, Apply):
        arg = eval(env, exp.arg)
        callee = eval(env, exp.func)
        return apply_closure(callee, arg)
    if isinstance(exp, Case):
        value = eval(env, exp.scrutinee)
        for arm in exp.arms:
            arm_env = match_pat(env, arm.pattern, value)
            if arm_env is None:
                continue
            return eval(arm_env, arm.body)
        raise NoMatchingCasePattern(value)
    raise NotImplementedError(f"eval not implemented for {exp}")
