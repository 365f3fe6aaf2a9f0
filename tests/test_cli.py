"""
Tests for the cdrbac command line tool.
"""

import pytest

from cdrbac.cli.main import main


@pytest.fixture
def policy_file(tmp_path, example_policy):
    path = tmp_path / "policy.csv"
    path.write_text(example_policy)
    return str(path)


class TestValidate:
    """Test the validate command"""

    def test_valid_policy(self, policy_file, capsys):
        assert main(["validate", policy_file]) == 0
        out = capsys.readouterr().out
        assert "Policy is valid: 2 rules, 1 subjects" in out
        assert "warning:" not in out

    def test_warnings_are_printed(self, tmp_path, capsys):
        path = tmp_path / "policy.csv"
        path.write_text(
            "p, role:a, applications, get, */*, allow\n"
            "p, role:a, applications, get, myapp/*, allow\n"
            "g, bob, role:b\n"
        )

        assert main(["validate", str(path)]) == 0

        out = capsys.readouterr().out
        assert "warning: line 2: shadowed by line 1" in out
        assert "warning: line 3: role 'role:b' is not used by any rule" in out

    def test_strict_unbound_role(self, tmp_path, capsys):
        path = tmp_path / "policy.csv"
        path.write_text("p, role:a, applications, get, */*, allow\ng, bob, role:b\n")

        assert main(["--strict", "validate", str(path)]) == 2
        assert "Unbound role 'role:b'" in capsys.readouterr().err

    def test_syntax_error(self, tmp_path, capsys):
        path = tmp_path / "policy.csv"
        path.write_text("p, role:a, applications, get\n")

        assert main(["validate", str(path)]) == 2
        assert "error:" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        assert main(["validate", str(tmp_path / "absent.csv")]) == 2
        assert "error:" in capsys.readouterr().err

    def test_undecodable_file(self, tmp_path, capsys):
        """Test a policy file that is not UTF-8 is reported as an error"""
        path = tmp_path / "policy.csv"
        path.write_bytes(b"p, role:a, applications, get, */*, allow\n\xff\xfe\n")

        assert main(["validate", str(path)]) == 2
        assert "not valid UTF-8" in capsys.readouterr().err


class TestSettings:
    """Test configuration problems exit with the error code"""

    def test_malformed_environment(self, policy_file, monkeypatch, capsys):
        monkeypatch.setenv("CDRBAC_STRICT_UNBOUND_ROLES", "maybe")

        assert main(["validate", policy_file]) == 2
        assert "CDRBAC_STRICT_UNBOUND_ROLES must be a boolean" in capsys.readouterr().err

    def test_malformed_environment_on_can(self, policy_file, monkeypatch):
        """Test a bad setting is not mistaken for a denial"""
        monkeypatch.setenv("CDRBAC_AUDIT_CAPACITY", "lots")
        code = main(["can", "eddie", "sync", "applications", "myapp/prod", "--policy", policy_file])
        assert code == 2

    def test_unknown_log_level(self, policy_file, capsys):
        assert main(["--log-level", "chatty", "validate", policy_file]) == 2
        assert "log_level" in capsys.readouterr().err


class TestCan:
    """Test the can command"""

    def test_allowed(self, policy_file, capsys):
        code = main(["can", "eddie", "sync", "applications", "myapp/prod", "--policy", policy_file])

        assert code == 0
        out = capsys.readouterr().out.splitlines()
        assert out[0] == "Yes"
        assert out[1] == "  matched line 3: p, role:developer, applications, sync, */*, allow"

    def test_denied(self, policy_file, capsys):
        code = main(["can", "eddie", "delete", "applications", "myapp/prod", "--policy", policy_file])

        assert code == 1
        out = capsys.readouterr().out.splitlines()
        assert out == ["No", "  reason: implicit deny"]

    def test_unknown_subject(self, policy_file, capsys):
        code = main(["can", "mallory", "get", "applications", "myapp/prod", "--policy", policy_file])

        assert code == 1
        assert "  reason: no role assigned" in capsys.readouterr().out

    def test_group_membership(self, tmp_path, capsys):
        """Test --group lets a subject inherit a group's roles"""
        path = tmp_path / "policy.csv"
        path.write_text(
            "p, role:readonly, applications, get, */*, allow\n"
            "g, viewers, role:readonly\n"
        )

        code = main(["can", "vera", "get", "applications", "a/b",
                     "--policy", str(path), "--group", "viewers"])

        assert code == 0
        assert capsys.readouterr().out.startswith("Yes")

    def test_default_role_and_builtin(self, policy_file, capsys):
        code = main(["--builtin", "--default-role", "role:readonly",
                     "can", "mallory", "get", "clusters", "in-cluster", "--policy", policy_file])

        assert code == 0
        assert "Yes" in capsys.readouterr().out
