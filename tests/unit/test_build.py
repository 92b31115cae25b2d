"""Tests for the build toolchain entry point, run in-process."""

from clarabot.build import build, main
from conftest import plugin_source


class TestBuildMain:
    def test_successful_build(self, temp_dir, write_unit):
        source = write_unit(temp_dir, "plugin.py", plugin_source("built"))
        output = temp_dir / "compiled" / "abc123.pyc"

        assert main([str(source), str(output)]) == 0
        assert output.exists()

    def test_syntax_error(self, temp_dir, write_unit, capsys):
        source = write_unit(temp_dir, "plugin.py", "def broken(:\n")
        output = temp_dir / "out.pyc"

        assert main([str(source), str(output)]) == 1
        assert "SyntaxError" in capsys.readouterr().err
        assert not output.exists()

    def test_nonconforming_unit_is_removed(self, temp_dir, write_unit, capsys):
        source = write_unit(temp_dir, "plugin.py", "Plugin = object()\n")
        output = temp_dir / "out.pyc"

        assert main([str(source), str(output)]) == 1
        assert "missing" in capsys.readouterr().err
        assert not output.exists()

    def test_import_time_failure_reports_traceback(self, temp_dir, write_unit, capsys):
        source = write_unit(temp_dir, "plugin.py", "import not_a_real_module_xyz\n")
        output = temp_dir / "out.pyc"

        assert main([str(source), str(output)]) == 1
        err = capsys.readouterr().err
        assert "ModuleNotFoundError" in err
        assert "not_a_real_module_xyz" in err
        assert not output.exists()

    def test_missing_source(self, temp_dir, capsys):
        assert main([str(temp_dir / "nope.py"), str(temp_dir / "out.pyc")]) == 1
        assert capsys.readouterr().err


class TestRegistrationChecks:
    """A built unit passes the same checks ``Registry.register`` applies at startup."""

    def test_schema_name_must_match_id(self, temp_dir, write_unit, capsys):
        source = plugin_source("alpha").replace('"name": "alpha"', '"name": "beta"')
        path = write_unit(temp_dir, "plugin.py", source)
        output = temp_dir / "compiled" / "a1.pyc"

        assert main([str(path), str(output)]) == 1
        assert "does not match capability id 'alpha'" in capsys.readouterr().err
        assert not output.exists()

    def test_malformed_schema(self, temp_dir, write_unit, capsys):
        source = plugin_source("gamma").replace('"name": "gamma",', "")
        path = write_unit(temp_dir, "plugin.py", source)
        output = temp_dir / "compiled" / "g1.pyc"

        assert main([str(path), str(output)]) == 1
        assert "invalid function schema" in capsys.readouterr().err
        assert not output.exists()

    def test_reserved_id_is_rejected(self, temp_dir, write_unit, capsys):
        path = write_unit(temp_dir, "plugin.py", plugin_source("memory"))
        output = temp_dir / "compiled" / "m1.pyc"

        assert main([str(path), str(output), "--reserved", "add", "--reserved", "memory"]) == 1
        assert "plugin ID memory is already taken" in capsys.readouterr().err
        assert not output.exists()

    def test_id_of_existing_unit_is_rejected(self, temp_dir, write_unit, capsys):
        first = write_unit(temp_dir, "first.py", plugin_source("twin"))
        second = write_unit(temp_dir, "second.py", plugin_source("twin"))
        compiled = temp_dir / "compiled"
        assert main([str(first), str(compiled / "t1.pyc")]) == 0

        assert main([str(second), str(compiled / "t2.pyc")]) == 1
        assert "plugin ID twin is already taken" in capsys.readouterr().err
        assert (compiled / "t1.pyc").exists()
        assert not (compiled / "t2.pyc").exists()

    def test_build_returns_id(self, temp_dir, write_unit):
        path = write_unit(temp_dir, "plugin.py", plugin_source("fresh"))
        assert build(path, temp_dir / "compiled" / "f1.pyc", reserved=["add"]) == "fresh"
