"""Tests for the cafeauth-admin command line."""

from unittest.mock import patch

import pytest

from cafeauth import cli


class TestParser:
    def test_create_user_defaults(self):
        args = cli.build_parser().parse_args(["create-user", "cashier2"])

        assert args.username == "cashier2"
        assert args.role == "cashier"
        assert args.full_name == ""
        assert args.password is None

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestMain:
    def test_create_user_with_password(self):
        with patch.object(cli, "create_user") as create_user:
            cli.main(["create-user", "cashier2", "-p", "secret-pass", "--role", "manager"])

        create_user.assert_called_once_with("cashier2", "secret-pass", "manager", "")

    def test_prompts_when_password_missing(self):
        with (
            patch.object(cli, "get_password_interactive", return_value="prompted-pass"),
            patch.object(cli, "reset_password") as reset_password,
        ):
            cli.main(["reset-password", "cashier1"])

        reset_password.assert_called_once_with("cashier1", "prompted-pass")

    def test_short_password_exits(self, capsys):
        with patch.object(cli, "create_user") as create_user, pytest.raises(SystemExit):
            cli.main(["create-user", "cashier2", "-p", "abc"])

        create_user.assert_not_called()
        assert "at least 6 characters" in capsys.readouterr().out

    @pytest.mark.parametrize(
        ("argv", "target"),
        [
            (["list-users"], "list_users"),
            (["list-lockouts"], "list_lockouts"),
            (["reset-lockouts"], "reset_lockouts"),
        ],
    )
    def test_dispatch(self, argv, target):
        with patch.object(cli, target) as command:
            cli.main(argv)
        command.assert_called_once_with()

    def test_unlock_dispatch(self):
        with patch.object(cli, "unlock") as unlock:
            cli.main(["unlock", "cashier1"])
        unlock.assert_called_once_with("cashier1")


class TestInteractivePassword:
    def test_mismatch_exits(self):
        with (
            patch("cafeauth.cli.getpass.getpass", side_effect=["one-pass", "two-pass"]),
            pytest.raises(SystemExit),
        ):
            cli.get_password_interactive()

    def test_confirmed(self):
        with patch("cafeauth.cli.getpass.getpass", side_effect=["same-pass", "same-pass"]):
            assert cli.get_password_interactive() == "same-pass"
