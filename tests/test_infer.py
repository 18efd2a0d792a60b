import pytest

from polydb.lib.ast import Bool, Int, Lambda, Let, Object, Var, Wildcard
from polydb.lib.errors import UnboundIdentifier, UnificationFailure
from polydb.lib.infer import infer, infer_type, unify_pat
from polydb.lib.parser import parse, tokenize
from polydb.lib.ty import (
    BoolType,
    IntType,
    NameSource,
    Scheme,
    Ty,
    TyFun,
    TyRecord,
    TyTuple,
    TyVar,
)


def parse_program(program: str) -> Object:
    return parse(tokenize(program))


class TestInfer:
    def test_identity(self) -> None:
        ty = infer({}, NameSource(), {}, Lambda("a", Var("a")))
        assert ty == TyFun(TyVar("a_0"), TyVar("a_0"))

    @pytest.mark.parametrize(
        "ast, ty",
        [
            (Let([("x", Int(42))], Var("x")), IntType),
            (Let([("x", Int(42)), ("y", Bool(True))], Var("y")), BoolType),
        ],
    )
    def test_let(self, ast: Object, ty: Ty) -> None:
        assert infer({}, NameSource(), {}, ast) == ty

    def test_context_is_not_modified(self) -> None:
        ctx = {"n": Scheme([], IntType)}
        infer({}, NameSource(), ctx, parse_program("let m = n in lambda x -> m end"))
        assert ctx == {"n": Scheme([], IntType)}

    def test_uses_context(self) -> None:
        ctx = {"id": Scheme(["a"], TyFun(TyVar("a"), TyVar("a")))}
        assert infer_type(parse_program("(id 1, id True)"), ctx) == TyTuple([IntType, BoolType])

    def test_global_sub_records_solutions(self) -> None:
        global_sub: dict[str, Ty] = {}
        ty = infer(global_sub, NameSource(), {}, parse_program("lambda f -> f 1"))
        assert str(ty) == "((Int -> r_1) -> r_1)"
        assert global_sub == {"f_0": TyFun(IntType, TyVar("r_1"))}

    def test_apply_id(self) -> None:
        ty = infer_type(
            parse_program(
                "let apply = lambda f -> lambda x -> f x, id = lambda y -> y in apply id end",
            )
        )
        assert isinstance(ty, TyFun)
        assert ty.arg == ty.ret


class TestInferAndPrint:
    @pytest.mark.parametrize(
        "program, ty",
        [
            ("4", "Int"),
            ("-4", "Int"),
            ("()", "()"),
            ('"Hello World!"', "String"),
            ("lambda x -> x", "(x_0 -> x_0)"),
            ("let id = lambda x -> x in id end", "(x_0_1 -> x_0_1)"),
            ("(let id = lambda x -> x in id end, 42, True)", "((x_0_1 -> x_0_1), Int, Bool)"),
            (
                "{ x = let id = lambda x -> x in id end, y = 42, z = True }",
                "{ x: (x_0_1 -> x_0_1), y: Int, z: Bool }",
            ),
            ("{}", "{}"),
            ("let id = lambda x -> x in (id 1, id True) end", "(Int, Bool)"),
            ("let first = lambda x -> lambda y -> x in first 42 True end", "Int"),
            ("lambda x -> let y = x in y end", "(x_0 -> x_0)"),
            ("case 42 of i => i end", "Int"),
            ("case (42, True) of (i, j) => i end", "Int"),
            ("case (42, True) of (i, j) => j end", "Bool"),
            ("case 1337 of 0 => 0 | 1337 => 42 end", "Int"),
            ("case { x = 42, y = True } of { x = i, y = _ } => i end", "Int"),
            ("case { y = True, x = 42 } of { x = i, y = j } => j end", "Bool"),
            ("lambda p -> case p of (a, b) => a end", "((c_1, b_5) -> c_1)"),
            ("case lambda x -> x of f => (f 1, f True) end", "(Int, Bool)"),
        ],
    )
    def test_infer_and_print(self, program: str, ty: str) -> None:
        assert str(infer_type(parse_program(program))) == ty

    @pytest.mark.parametrize(
        "program, error_type, message",
        [
            ("lambda x -> x x", UnificationFailure, r"could not unify x_0 and \(x_0 -> r_1\)"),
            ("case 42 of (i, j) => i end", UnificationFailure, r"could not unify Int and \(t_1, t_2\)"),
            ("case 1 of 1 => True | _ => 2 end", UnificationFailure, "could not unify Int and Bool"),
            ("case { x = 1 } of { y = a } => a end", UnificationFailure, "could not unify records"),
            ("1 2", UnificationFailure, r"could not unify Int and \(Int -> r_0\)"),
            ("y", UnboundIdentifier, "Identifier y not found"),
            ("let x = x in x end", UnboundIdentifier, "Identifier x not found"),
            ("(case 1 of a => a end, a)", UnboundIdentifier, "Identifier a not found"),
            ("lambda x -> let y = x in (y 1, y True) end", UnificationFailure, "could not unify Int and Bool"),
        ],
    )
    def test_infer_error(self, program: str, error_type: type[Exception], message: str) -> None:
        with pytest.raises(error_type, match=message):
            infer_type(parse_program(program))


class TestUnifyPat:
    def test_atom(self) -> None:
        assert unify_pat(NameSource(), TyVar("s"), Int(1)) == ([(TyVar("s"), IntType)], {})

    def test_identifier(self) -> None:
        constraints, binders = unify_pat(NameSource(), TyVar("s"), Var("x"))
        assert constraints == [(TyVar("s"), TyVar("x_0"))]
        assert binders == {"x": TyVar("x_0")}

    def test_wildcard(self) -> None:
        assert unify_pat(NameSource(), TyVar("s"), Wildcard()) == ([], {})

    def test_tuple(self) -> None:
        constraints, binders = unify_pat(NameSource(), TyVar("s"), parse_program("(a, 1)"))
        assert constraints == [
            (TyVar("s"), TyTuple([TyVar("t_0"), TyVar("t_1")])),
            (TyVar("t_0"), TyVar("a_2")),
            (TyVar("t_1"), IntType),
        ]
        assert binders == {"a": TyVar("a_2")}

    def test_record(self) -> None:
        constraints, binders = unify_pat(NameSource(), TyVar("s"), parse_program("{ x = a, y = True }"))
        assert constraints == [
            (TyVar("s"), TyRecord({"x": TyVar("x_0"), "y": TyVar("y_1")})),
            (TyVar("x_0"), TyVar("a_2")),
            (TyVar("y_1"), BoolType),
        ]
        assert binders == {"a": TyVar("a_2")}
