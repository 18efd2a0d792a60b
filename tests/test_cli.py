from click.testing import CliRunner

from polydb.cli.cli import main


class TestCheck:
    def test_check(self) -> None:
        result = CliRunner().invoke(main, ["check", "let id = lambda x -> x in id end"])
        assert result.exit_code == 0
        assert result.output == "(x_0_1 -> x_0_1)\n"

    def test_check_type_error(self) -> None:
        result = CliRunner().invoke(main, ["check", "lambda x -> x x"])
        assert result.exit_code == 1
        assert "could not unify x_0 and (x_0 -> r_1)" in result.output

    def test_check_parse_error(self) -> None:
        result = CliRunner().invoke(main, ["check", "let x = 1 in"])
        assert result.exit_code == 1
        assert "unexpected end of input" in result.output

    def test_check_lexer_error(self) -> None:
        result = CliRunner().invoke(main, ["check", "1 @ 2"])
        assert result.exit_code == 1
        assert "unexpected character '@'" in result.output


class TestEval:
    def test_eval(self) -> None:
        result = CliRunner().invoke(main, ["eval", "let id = lambda x -> x in (id 42, id True) end"])
        assert result.exit_code == 0
        assert result.output == "(42, True) : (Int, Bool)\n"

    def test_eval_no_match(self) -> None:
        result = CliRunner().invoke(main, ["eval", "case 1 of 2 => 3 end"])
        assert result.exit_code == 1
        assert "no match found for 1" in result.output

    def test_eval_debug(self) -> None:
        result = CliRunner().invoke(main, ["eval", "--debug", "()"])
        assert result.exit_code == 0
        assert "() : ()" in result.output


class TestExec:
    def test_exec_file(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            with open("program.pdb", "w") as f:
                f.write(
                    "-- a tiny program\n"
                    "create table t (Int, String)\n"
                    "\n"
                    'insert (1, "one") into t\n'
                    "select from t\n"
                )
            result = runner.invoke(main, ["exec", "program.pdb"])
        assert result.exit_code == 0
        assert result.output == 'Created\nInserted 1\n[(1, "one")]\n'

    def test_exec_stdin(self) -> None:
        result = CliRunner().invoke(main, ["exec"], input="let x = 1\nlet y = (x, x)\n")
        assert result.exit_code == 0
        assert result.output == "x: Int\ny: (Int, Int)\n"

    def test_exec_stops_at_first_error(self) -> None:
        program = "create table t Int\ninsert True into t\nselect from t\n"
        result = CliRunner().invoke(main, ["exec", "-"], input=program)
        assert result.exit_code == 1
        assert "line 2: Could not insert True into table t with definition Int" in result.output
        assert "[]" not in result.output


class TestConnect:
    def test_connect(self, server_url: str) -> None:
        program = "create table t Int\n\ninsert 7 into t\nselect from t\n"
        result = CliRunner().invoke(main, ["connect", "--database-url", server_url], input=program)
        assert result.exit_code == 0
        assert f"Connected to {server_url}!" in result.output
        assert "Created" in result.output
        assert "[7]" in result.output

    def test_connect_from_environment(self, server_url: str) -> None:
        result = CliRunner().invoke(main, ["connect"], input="select from nope\n", env={"DATABASE_URL": server_url})
        assert result.exit_code == 0
        assert "Error: No such table nope" in result.output

    def test_connect_requires_url(self) -> None:
        result = CliRunner().invoke(main, ["connect"], env={"DATABASE_URL": None})
        assert result.exit_code == 2
        assert "--database-url" in result.output
