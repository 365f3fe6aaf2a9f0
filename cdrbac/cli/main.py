"""
Command line tool for checking RBAC policy files.

    cdrbac validate policy.csv
    cdrbac can eddie sync applications myapp/prod --policy policy.csv

``can`` exits 0 when the request is allowed and 1 when it is denied;
``validate`` exits 0 for a valid policy. Errors exit 2.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from ..authz.authz import decide
from ..authz.types import Subject
from ..core.config import Config
from ..policy.compiler import PolicyCompiler
from ..policy.loader import load_policy_file
from ..store.policy_store import PolicySnapshot
from ..types.errors import RbacError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cdrbac",
        description="Validate RBAC policies and check permissions offline",
    )
    parser.add_argument("--log-level", default=None, help="logging level (default: CDRBAC_LOG_LEVEL or INFO)")
    parser.add_argument("--default-role", default=None, help="role granted to every subject")
    parser.add_argument("--builtin", action="store_true", help="append the built-in readonly/admin roles")
    parser.add_argument("--strict", action="store_true", help="treat unbound roles as errors")

    commands = parser.add_subparsers(dest="command", required=True)

    validate = commands.add_parser("validate", help="compile a policy file and report problems")
    validate.add_argument("policy", help="policy CSV file")

    can = commands.add_parser("can", help="check whether a subject may perform an action")
    can.add_argument("subject")
    can.add_argument("action")
    can.add_argument("resource_type")
    can.add_argument("resource_id")
    can.add_argument("--policy", required=True, help="policy CSV file")
    can.add_argument("--group", action="append", default=[], help="group membership (repeatable)")

    return parser


def _compiler(args: argparse.Namespace, config: Config) -> PolicyCompiler:
    return PolicyCompiler(
        strict_unbound_roles=args.strict or config.strict_unbound_roles,
        default_role=args.default_role or config.default_role,
        include_builtin_policy=args.builtin or config.include_builtin_policy,
    )


def run_validate(args: argparse.Namespace, config: Config) -> int:
    policy = asyncio.run(load_policy_file(args.policy, _compiler(args, config)))

    for warning in policy.warnings:
        print(f"warning: {warning}")

    print(f"Policy is valid: {len(policy.rules)} rules, {len(policy.bindings)} subjects")
    return 0


def run_can(args: argparse.Namespace, config: Config) -> int:
    policy = asyncio.run(load_policy_file(args.policy, _compiler(args, config)))
    subject = Subject(id=args.subject, groups=tuple(args.group))

    decision = decide(
        PolicySnapshot(generation=0, policy=policy),
        subject, args.action, args.resource_type, args.resource_id,
    )

    if decision.allowed:
        print("Yes")
    else:
        print("No")

    if decision.matched_rule is not None:
        rule = decision.matched_rule
        print(f"  matched line {rule.line_number}: {rule.to_line()}")
    else:
        print(f"  reason: {decision.reason}")

    return 0 if decision.allowed else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = Config.from_env()
        if args.log_level:
            config.log_level = args.log_level
        config.validate()

        logging.basicConfig(
            level=config.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        if args.command == "validate":
            return run_validate(args, config)
        return run_can(args, config)
    except RbacError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
