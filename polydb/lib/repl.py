import code
import logging
import os
import sys
import typing
from types import ModuleType
from typing import Any, Optional

from polydb.lib.db import Database
from polydb.lib.parser import KEYWORDS, ParseError, UnexpectedEOFError

readline: Optional[ModuleType]
try:
    import readline
except ImportError:
    readline = None


logger = logging.getLogger(__name__)

PROMPT = ">> "
REPL_HISTFILE = os.path.expanduser(".polydb-history")


class Completer:
    def __init__(self, database: Database) -> None:
        self.database = database
        self.matches: typing.List[str] = []

    def options(self) -> typing.List[str]:
        return sorted({*KEYWORDS, *self.database.ctx.keys(), *self.database.tables.keys()})

    def complete(self, text: str, state: int) -> Optional[str]:
        if state == 0:
            options = self.options()
            if not text:
                self.matches = options[:]
            else:
                self.matches = [key for key in options if key.startswith(text)]
        try:
            return self.matches[state]
        except IndexError:
            return None


class PolyRepl(code.InteractiveConsole):
    def __init__(self, *args: Any, database: Optional[Database] = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.database: Database = database or Database()

    def enable_readline(self) -> None:
        assert readline, "Can't enable readline without readline module"
        if os.path.exists(REPL_HISTFILE):
            readline.read_history_file(REPL_HISTFILE)
        readline.set_completer_delims(" \t\n;(){},")
        readline.set_completer(Completer(self.database).complete)
        readline.parse_and_bind("set show-all-if-ambiguous on")
        readline.parse_and_bind("tab: menu-complete")

    def finish_readline(self) -> None:
        assert readline, "Can't finish readline without readline module"
        histfile_size = 1000
        readline.set_history_length(histfile_size)
        readline.write_history_file(REPL_HISTFILE)

    def runsource(self, source: str, filename: str = "<input>", symbol: str = "single") -> bool:
        if not source.strip():
            return False
        try:
            print(self.database.run(source))
        except UnexpectedEOFError:
            # Need to read more text
            return True
        except ParseError as e:
            print(f"No parse: {e}", file=sys.stderr)
        except Exception as e:
            logger.debug("statement failed", exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
        return False


def start(database: Optional[Database] = None) -> None:
    sys.ps1 = PROMPT
    sys.ps2 = ".. "
    repl = PolyRepl(database=database)
    if readline:
        repl.enable_readline()
    repl.interact(banner="Hello! This is polydb\nFeel free to type in commands", exitmsg="")
    if readline:
        repl.finish_readline()
