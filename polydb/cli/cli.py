import logging

import click
from click import File

from polydb.lib import repl
from polydb.lib.ast import pretty
from polydb.lib.db import Database

# pylint: disable=redefined-builtin
from polydb.lib.evaluator import eval
from polydb.lib.environment import Environment
from polydb.lib.infer import infer_type
from polydb.lib.parser import ParseError, parse, tokenize
from polydb.lib.server import Session, serve

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    if debug:
        logging.basicConfig(level=logging.DEBUG)


@click.group()
def main() -> None:
    """Main CLI entrypoint."""


@main.command(name="repl")
@click.option("--debug", is_flag=True)
def repl_command(debug: bool) -> None:
    configure_logging(debug)
    repl.start()


@main.command(name="exec")
@click.argument("program-file", type=File(), default="-")
@click.option("--debug", is_flag=True)
def exec_command(program_file: File, debug: bool) -> None:
    """Run one statement per line, stopping at the first failure."""
    configure_logging(debug)
    database = Database()
    for lineno, line in enumerate(program_file, start=1):  # type: ignore [attr-defined]
        if not line.strip() or line.lstrip().startswith("--"):
            continue
        try:
            click.echo(database.run(line))
        except Exception as e:
            raise click.ClickException(f"line {lineno}: {e}") from e


@main.command(name="check")
@click.argument("program", type=str, required=True)
@click.option("--debug", is_flag=True)
def check_command(program: str, debug: bool) -> None:
    configure_logging(debug)
    try:
        tokens = tokenize(program)
        logger.debug("Tokens: %s", tokens)
        ast = parse(tokens)
        logger.debug("AST: %s", ast)
        click.echo(infer_type(ast))
    except (ParseError, NameError, TypeError) as e:
        raise click.ClickException(str(e)) from e


@main.command(name="eval")
@click.argument("program", type=str, required=True)
@click.option("--debug", is_flag=True)
def eval_command(program: str, debug: bool) -> None:
    configure_logging(debug)
    try:
        tokens = tokenize(program)
        logger.debug("Tokens: %s", tokens)
        ast = parse(tokens)
        logger.debug("AST: %s", ast)
        ty = infer_type(ast)
        click.echo(f"{pretty(eval(Environment(), ast))} : {ty}")
    except Exception as e:
        raise click.ClickException(str(e)) from e


@main.command(name="serve")
@click.option("--host", envvar="POLYDB_HOST", default="localhost", show_default=True)
@click.option("--port", envvar="POLYDB_PORT", type=int, default=5432, show_default=True)
@click.option("--debug", is_flag=True)
def serve_command(host: str, port: int, debug: bool) -> None:
    configure_logging(debug)
    serve(host, port)


@main.command(name="connect")
@click.option("-d", "--database-url", envvar="DATABASE_URL", required=True, help="HOST:PORT of a polydb server")
@click.option("--debug", is_flag=True)
def connect_command(database_url: str, debug: bool) -> None:
    configure_logging(debug)
    click.echo("Welcome to polydb!")
    with Session(database_url) as session:
        click.echo(f"Connected to {database_url}!")
        while True:
            try:
                line = input(repl.PROMPT)
            except EOFError:
                return
            if line.strip():
                click.echo(session.send(line))


if __name__ == "__main__":
    main()
