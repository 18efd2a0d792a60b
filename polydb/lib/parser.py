import logging
from typing import List, Optional

from polydb.lib.ast import (
    Apply,
    Bool,
    Case,
    CaseArm,
    CreateStmt,
    InsertStmt,
    Int,
    Lambda,
    Let,
    LetStmt,
    Object,
    Record,
    SelectStmt,
    Statement,
    String,
    TableDefinition,
    Tuple,
    Unit,
    UnionStmt,
    Var,
    Wildcard,
)
from polydb.lib.ty import BoolType, IntType, StringType, Ty, TyDefined, TyFun, TyRecord, TyTuple, TyVar, UnitType

logger = logging.getLogger(__name__)


OPER_CHARS = set("-=>|:")
PUNCTUATION = set("(){},")
KEYWORDS = {
    "let",
    "in",
    "end",
    "lambda",
    "case",
    "of",
    "True",
    "False",
    "create",
    "table",
    "insert",
    "into",
    "select",
    "from",
    "union",
}
BASE_TYPE_NAMES = {"Int": IntType, "Bool": BoolType, "String": StringType}


class ParseError(SyntaxError):
    pass


class UnexpectedEOFError(ParseError):
    pass


class Lexer:
    def __init__(self, text: str):
        self.text: str = text
        self.idx: int = 0

    def has_input(self) -> bool:
        return self.idx < len(self.text)

    def read_char(self) -> str:
        c = self.peek_char()
        self.idx += 1
        return c

    def peek_char(self) -> str:
        if not self.has_input():
            raise UnexpectedEOFError("unexpected EOF while reading token")
        return self.text[self.idx]

    def read_one(self) -> Optional[str]:
        while self.has_input():
            c = self.read_char()
            if not c.isspace():
                break
        else:
            return None
        if c == '"':
            return self.read_string()
        if c == "-" and self.has_input():
            if self.peek_char() == "-":
                self.read_comment()
                return self.read_one()
            if self.peek_char().isdigit():
                return self.read_number(c)
        if c.isdigit():
            return self.read_number(c)
        if c in PUNCTUATION:
            return c
        if c in OPER_CHARS:
            return self.read_op(c)
        if c.isidentifier():
            return self.read_var(c)
        raise ParseError(f"unexpected character '{c}'")

    def read_string(self) -> str:
        buf = ""
        while self.has_input():
            if (c := self.read_char()) == '"':
                break
            buf += c
        else:
            raise UnexpectedEOFError("unexpected EOF while reading string")
        return '"' + buf + '"'

    def read_comment(self) -> None:
        while self.has_input() and self.read_char() != "\n":
            pass

    def read_number(self, first_digit: str) -> str:
        buf = first_digit
        while self.has_input() and (c := self.peek_char()).isdigit():
            self.read_char()
            buf += c
        return buf

    def read_op(self, first_char: str) -> str:
        buf = first_char
        while self.has_input() and (c := self.peek_char()) in OPER_CHARS:
            if c == "-" and self.starts_negative_number():
                break
            self.read_char()
            buf += c
        return buf

    def starts_negative_number(self) -> bool:
        nxt = self.idx + 1
        return nxt < len(self.text) and self.text[nxt].isdigit()

    def read_var(self, first_char: str) -> str:
        buf = first_char
        while self.has_input() and ((c := self.peek_char()).isalnum() or c in "_'"):
            self.read_char()
            buf += c
        return buf


def tokenize(x: str) -> List[str]:
    lexer = Lexer(x)
    tokens = []
    while lexer.has_input():
        token = lexer.read_one()
        if token is None:
            # EOF
            break
        tokens.append(token)
    return tokens


def is_int(token: str) -> bool:
    return token.isdigit() or (token[0] == "-" and token[1:].isdigit())


def is_string(token: str) -> bool:
    return len(token) >= 2 and token.startswith('"') and token.endswith('"')


def is_name(token: str) -> bool:
    return not token.startswith("'") and token.replace("'", "").isidentifier() and token not in KEYWORDS


def peek(tokens: List[str]) -> Optional[str]:
    return tokens[0] if tokens else None


def next_token(tokens: List[str]) -> str:
    if not tokens:
        raise UnexpectedEOFError("unexpected end of input")
    return tokens.pop(0)


def expect(tokens: List[str], expected: str) -> None:
    if not tokens:
        raise UnexpectedEOFError(f"expected '{expected}' but input ended")
    token = tokens.pop(0)
    if token != expected:
        raise ParseError(f"expected '{expected}', got '{token}'")


def parse_name(tokens: List[str]) -> str:
    token = next_token(tokens)
    if not is_name(token) or token == "_":
        raise ParseError(f"expected identifier, got '{token}'")
    return token


def parse_fields(tokens: List[str], separator: str, parse_value) -> dict:
    # The opening brace has already been consumed.
    fields: dict = {}
    if peek(tokens) == "}":
        tokens.pop(0)
        return fields
    while True:
        name = parse_name(tokens)
        if name in fields:
            raise ParseError(f"duplicate field '{name}'")
        expect(tokens, separator)
        fields[name] = parse_value(tokens)
        token = next_token(tokens)
        if token == "}":
            return fields
        if token != ",":
            raise ParseError(f"expected ',' or '}}', got '{token}'")


def parse_sequence(tokens: List[str], parse_item) -> List:
    # The opening paren has already been consumed. Returns [] for `()`.
    items: List = []
    if peek(tokens) == ")":
        tokens.pop(0)
        return items
    while True:
        items.append(parse_item(tokens))
        token = next_token(tokens)
        if token == ")":
            return items
        if token != ",":
            raise ParseError(f"expected ',' or ')', got '{token}'")


def parse_type_atom(tokens: List[str]) -> Ty:
    token = next_token(tokens)
    if token in BASE_TYPE_NAMES:
        return BASE_TYPE_NAMES[token]
    if token == "(":
        items = parse_sequence(tokens, parse_type)
        if not items:
            return UnitType
        if len(items) == 1:
            return items[0]
        return TyTuple(items)
    if token == "{":
        return TyRecord(parse_fields(tokens, ":", parse_type))
    if is_name(token) and token[0].isupper():
        return TyDefined(token, [])
    if is_name(token):
        return TyVar(token)
    raise ParseError(f"unexpected token '{token}' in type")


def starts_type_atom(token: Optional[str]) -> bool:
    return token is not None and (token in ("(", "{") or is_name(token))


def parse_type(tokens: List[str]) -> Ty:
    token = peek(tokens)
    if token is not None and is_name(token) and token[0].isupper() and token not in BASE_TYPE_NAMES:
        tokens.pop(0)
        args = []
        while starts_type_atom(peek(tokens)):
            args.append(parse_type_atom(tokens))
        left: Ty = TyDefined(token, args)
    else:
        left = parse_type_atom(tokens)
    if peek(tokens) == "->":
        tokens.pop(0)
        return TyFun(left, parse_type(tokens))
    return left


def parse_atom_literal(token: str) -> Optional[Object]:
    if is_int(token):
        return Int(int(token))
    if token == "True":
        return Bool(True)
    if token == "False":
        return Bool(False)
    if is_string(token):
        return String(token[1:-1])
    return None


def parse_pattern(tokens: List[str]) -> Object:
    token = next_token(tokens)
    atom = parse_atom_literal(token)
    if atom is not None:
        return atom
    if token == "_":
        return Wildcard()
    if token == "(":
        items = parse_sequence(tokens, parse_pattern)
        if not items:
            return Unit()
        if len(items) == 1:
            return items[0]
        return Tuple(items)
    if token == "{":
        return Record(parse_fields(tokens, "=", parse_pattern))
    if is_name(token):
        return Var(token)
    raise ParseError(f"unexpected token '{token}' in pattern")


def starts_atom(token: Optional[str]) -> bool:
    if token is None:
        return False
    if token in ("(", "{", "let", "case", "True", "False"):
        return True
    return is_int(token) or is_string(token) or (is_name(token) and token != "_")


def parse_let(tokens: List[str]) -> Object:
    bindings = []
    while True:
        name = parse_name(tokens)
        expect(tokens, "=")
        bindings.append((name, parse_expr(tokens)))
        if peek(tokens) != ",":
            break
        tokens.pop(0)
    expect(tokens, "in")
    body = parse_expr(tokens)
    expect(tokens, "end")
    return Let(bindings, body)


def parse_case(tokens: List[str]) -> Object:
    scrutinee = parse_expr(tokens)
    expect(tokens, "of")
    arms = []
    while True:
        pattern = parse_pattern(tokens)
        expect(tokens, "=>")
        arms.append(CaseArm(pattern, parse_expr(tokens)))
        if peek(tokens) != "|":
            break
        tokens.pop(0)
    expect(tokens, "end")
    return Case(scrutinee, arms)


def parse_atom(tokens: List[str]) -> Object:
    token = next_token(tokens)
    atom = parse_atom_literal(token)
    if atom is not None:
        return atom
    if token == "(":
        items = parse_sequence(tokens, parse_expr)
        if not items:
            return Unit()
        if len(items) == 1:
            return items[0]
        return Tuple(items)
    if token == "{":
        return Record(parse_fields(tokens, "=", parse_expr))
    if token == "let":
        return parse_let(tokens)
    if token == "case":
        return parse_case(tokens)
    if is_name(token) and token != "_":
        return Var(token)
    raise ParseError(f"unexpected token '{token}'")


def parse_expr(tokens: List[str]) -> Object:
    if peek(tokens) == "lambda":
        tokens.pop(0)
        param = parse_name(tokens)
        expect(tokens, "->")
        return Lambda(param, parse_expr(tokens))
    l = parse_atom(tokens)
    while starts_atom(peek(tokens)):
        l = Apply(l, parse_atom(tokens))
    return l


def parse_union(tokens: List[str]) -> UnionStmt:
    name = parse_name(tokens)
    params = []
    while peek(tokens) != "=":
        params.append(parse_name(tokens))
    expect(tokens, "=")
    variants = []
    while True:
        variant = parse_name(tokens)
        args = []
        while starts_type_atom(peek(tokens)):
            args.append(parse_type_atom(tokens))
        variants.append((variant, args))
        if peek(tokens) != "|":
            break
        tokens.pop(0)
    return UnionStmt(name, params, variants)


def expect_end(tokens: List[str]) -> None:
    if tokens:
        raise ParseError(f"unexpected token '{tokens[0]}'")


def parse(tokens: List[str]) -> Object:
    """Parse a complete expression."""
    result = parse_expr(tokens)
    expect_end(tokens)
    return result


def parse_statement(tokens: List[str]) -> Statement:
    token = next_token(tokens)
    result: Statement
    if token == "create":
        expect(tokens, "table")
        name = parse_name(tokens)
        result = CreateStmt(name, TableDefinition(parse_type(tokens)))
    elif token == "insert":
        value = parse_expr(tokens)
        expect(tokens, "into")
        result = InsertStmt(parse_name(tokens), value)
    elif token == "select":
        expect(tokens, "from")
        result = SelectStmt(parse_name(tokens))
    elif token == "let":
        name = parse_name(tokens)
        expect(tokens, "=")
        result = LetStmt(name, parse_expr(tokens))
    elif token == "union":
        result = parse_union(tokens)
    else:
        raise ParseError(f"unexpected token '{token}', expected a statement")
    expect_end(tokens)
    logger.debug("Statement: %s", result)
    return result
