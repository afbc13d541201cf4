"""Create or reset the admin account and verify the stored password.

    python scripts/bootstrap_admin.py create --email admin@tendo.uz
    python scripts/bootstrap_admin.py create --strategy replace_all
    python scripts/bootstrap_admin.py reset-password

The password is read from --password, ADMIN_DEFAULT_PASSWORD or a prompt.
Exit status is 0 on success (including "already exists"), non-zero otherwise.
"""
import argparse
import getpass
import logging
import sys

from apps.backend.config import get_settings
from apps.backend.services.admin_bootstrap import (
    AdminProfile,
    BootstrapResult,
    BootstrapStrategy,
    reset_admin_password,
    run_bootstrap,
)


def _password(args: argparse.Namespace) -> str:
    if args.password:
        return args.password
    if args.prompt:
        return getpass.getpass("Пароль (минимум 6 символов): ")
    return get_settings().admin_default_password


def _print_result(result: BootstrapResult) -> None:
    if result.ok:
        print("")
        print("SUCCESS:", result.message)
        print(f"Email: {result.email}")
        if result.strategy:
            print(f"Strategy: {result.strategy.value}")
        if result.removed:
            print(f"Removed admin accounts: {result.removed}")
        if result.verified:
            print("Password round-trip check: OK")
        print("")
    else:
        print(f"FAILED [{result.error_code}]: {result.message}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    s = get_settings()
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="ensure the admin account exists")
    create.add_argument("--email", default=s.admin_default_email)
    create.add_argument("--password")
    create.add_argument("--prompt", action="store_true", help="read the password interactively")
    create.add_argument("--first-name", default=s.admin_default_first_name)
    create.add_argument("--last-name", default=s.admin_default_last_name)
    create.add_argument(
        "--strategy",
        choices=[x.value for x in BootstrapStrategy],
        default=s.admin_bootstrap_strategy,
    )
    create.add_argument("--force-strategy", action="store_true", help="allow switching the recorded strategy")
    create.add_argument("--rounds", type=int, default=s.password_hash_rounds, help="bcrypt cost factor")

    reset = sub.add_parser("reset-password", help="set a new password on the existing admin")
    reset.add_argument("--email", help="admin to reset (default: first admin-role account)")
    reset.add_argument("--password")
    reset.add_argument("--prompt", action="store_true")
    reset.add_argument("--rounds", type=int, default=s.password_hash_rounds)
    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)
    if args.command == "create":
        result = run_bootstrap(
            args.email,
            _password(args),
            strategy=args.strategy,
            rounds=args.rounds,
            profile=AdminProfile(
                first_name=args.first_name,
                last_name=args.last_name,
                language=get_settings().admin_default_language,
            ),
            force_strategy=args.force_strategy,
        )
    else:
        result = reset_admin_password(_password(args), email=args.email, rounds=args.rounds)
    _print_result(result)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
