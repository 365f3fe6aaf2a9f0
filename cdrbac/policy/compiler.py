"""
Policy compiler: turns ``policy.csv`` style lines into a CompiledPolicy.

Line grammar (comma separated, CSV quoting allowed)::

    p, <role>, <resource type>, <action>, <resource pattern>, <allow|deny>
    g, <subject>, <role>

Blank lines and lines starting with ``#`` are ignored. Rule order in the
input is the evaluation order of the compiled policy.
"""

import csv
import hashlib
import logging
from collections import OrderedDict
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from ..types.errors import PolicySyntaxError, PolicyConflictError
from .glob import pattern_covers
from .types import CompiledPolicy, Effect, GroupBinding, Rule


logger = logging.getLogger(__name__)

RULE_FIELDS = ("kind", "role", "resource_type", "action", "resource_pattern", "effect")
BINDING_FIELDS = ("kind", "subject", "role")

# Built-in roles appended after user rules when enabled.
BUILTIN_POLICY = """\
# role:readonly may view everything
p, role:readonly, applications, get, */*, allow
p, role:readonly, applicationsets, get, */*, allow
p, role:readonly, logs, get, */*, allow
p, role:readonly, certificates, get, *, allow
p, role:readonly, clusters, get, *, allow
p, role:readonly, repositories, get, *, allow
p, role:readonly, projects, get, *, allow
p, role:readonly, accounts, get, *, allow
p, role:readonly, gpgkeys, get, *, allow

# role:admin may change everything and inherits role:readonly
p, role:admin, applications, create, */*, allow
p, role:admin, applications, update, */*, allow
p, role:admin, applications, delete, */*, allow
p, role:admin, applications, sync, */*, allow
p, role:admin, applications, override, */*, allow
p, role:admin, applications, action, */*, allow
p, role:admin, applicationsets, create, */*, allow
p, role:admin, applicationsets, update, */*, allow
p, role:admin, applicationsets, delete, */*, allow
p, role:admin, exec, create, */*, allow
p, role:admin, certificates, create, *, allow
p, role:admin, certificates, update, *, allow
p, role:admin, certificates, delete, *, allow
p, role:admin, clusters, create, *, allow
p, role:admin, clusters, update, *, allow
p, role:admin, clusters, delete, *, allow
p, role:admin, repositories, create, *, allow
p, role:admin, repositories, update, *, allow
p, role:admin, repositories, delete, *, allow
p, role:admin, projects, create, *, allow
p, role:admin, projects, update, *, allow
p, role:admin, projects, delete, *, allow
p, role:admin, accounts, update, *, allow
p, role:admin, gpgkeys, create, *, allow
p, role:admin, gpgkeys, delete, *, allow
g, role:admin, role:readonly
"""


def split_policy_line(line: str, line_number: int) -> List[str]:
    """Split one policy line into stripped fields."""
    try:
        rows = list(csv.reader([line], skipinitialspace=True))
    except csv.Error as e:
        raise PolicySyntaxError(f"Malformed policy line: {e}", line_number, line=line)

    if len(rows) != 1:
        raise PolicySyntaxError("Policy line must be a single record", line_number, line=line)

    return [value.strip() for value in rows[0]]


def parse_policy_line(line: str, line_number: int):
    """
    Parse a single non-blank, non-comment policy line.

    Returns:
        Rule or GroupBinding

    Raises:
        PolicySyntaxError: with the offending line number and field
    """
    fields = split_policy_line(line, line_number)
    kind = fields[0].lower() if fields else ""

    if kind == "p":
        names = RULE_FIELDS
    elif kind == "g":
        names = BINDING_FIELDS
    else:
        raise PolicySyntaxError(
            f"Unknown policy line kind '{fields[0] if fields else ''}', expected 'p' or 'g'",
            line_number, field="kind", line=line
        )

    if len(fields) != len(names):
        raise PolicySyntaxError(
            f"Expected {len(names)} fields for a '{kind}' line, got {len(fields)}",
            line_number, line=line
        )

    for name, value in zip(names, fields):
        if not value:
            raise PolicySyntaxError(f"Field '{name}' is empty", line_number, field=name, line=line)

    if kind == "g":
        return GroupBinding(subject=fields[1], role=fields[2], line_number=line_number)

    try:
        effect = Effect.parse(fields[5])
    except ValueError:
        raise PolicySyntaxError(
            f"Unknown effect '{fields[5]}', expected 'allow' or 'deny'",
            line_number, field="effect", line=line
        )

    return Rule(
        role=fields[1],
        resource_type=fields[2],
        action=fields[3],
        resource_pattern=fields[4],
        effect=effect,
        line_number=line_number,
    )


def _iter_policy_lines(lines: Iterable[str]) -> Iterable[Tuple[int, str]]:
    for line_number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        yield line_number, line


class PolicyCompiler:
    """
    Compiles policy definitions into immutable CompiledPolicy objects.

    Args:
        strict_unbound_roles: raise PolicyConflictError for roles bound by a
            ``g`` line that no rule uses, instead of recording a warning
        default_role: role granted to every subject at evaluation time
        include_builtin_policy: append BUILTIN_POLICY after the user rules
    """

    def __init__(
        self,
        strict_unbound_roles: bool = False,
        default_role: Optional[str] = None,
        include_builtin_policy: bool = False,
    ):
        self.strict_unbound_roles = strict_unbound_roles
        self.default_role = default_role
        self.include_builtin_policy = include_builtin_policy

    def compile_text(self, text: str) -> CompiledPolicy:
        """Compile a whole policy document."""
        return self.compile(text.splitlines())

    def compile(self, lines: Iterable[str]) -> CompiledPolicy:
        """
        Compile policy lines.

        Raises:
            PolicySyntaxError: malformed line
            PolicyConflictError: conflicting effects, or an unbound role in
                strict mode
        """
        rules: List[Rule] = []
        bindings: List[GroupBinding] = []

        for line_number, line in _iter_policy_lines(lines):
            entry = parse_policy_line(line, line_number)
            if isinstance(entry, Rule):
                rules.append(entry)
            else:
                bindings.append(entry)

        warnings: List[str] = []
        warnings.extend(self._check_rules(rules))

        digest_source = [entry.to_line() for entry in rules + bindings]

        if self.include_builtin_policy:
            for _, line in _iter_policy_lines(BUILTIN_POLICY.splitlines()):
                entry = parse_policy_line(line, 0)
                if isinstance(entry, Rule):
                    rules.append(entry)
                else:
                    bindings.append(entry)
            digest_source.append("builtin")

        warnings.extend(self._check_bindings(rules, bindings))

        if self.default_role:
            digest_source.append(f"default, {self.default_role}")
            if self.default_role not in {rule.role for rule in rules}:
                warnings.append(f"default role '{self.default_role}' is not used by any rule")

        for warning in warnings:
            logger.warning(f"Policy warning: {warning}")

        digest = hashlib.sha256("\n".join(digest_source).encode("utf-8")).hexdigest()

        policy = CompiledPolicy(
            rules=tuple(rules),
            bindings=MappingProxyType(self._resolve_roles(bindings)),
            warnings=tuple(warnings),
            digest=digest,
            default_role=self.default_role,
        )

        logger.debug(
            f"Compiled policy {digest[:12]}: {len(policy.rules)} rules, "
            f"{len(policy.bindings)} subjects, {len(warnings)} warnings"
        )
        return policy

    def _check_rules(self, rules: List[Rule]) -> List[str]:
        """Detect conflicting effects and unreachable rules."""
        warnings = []
        seen: Dict[Tuple[str, str, str, str], Rule] = {}
        groups: Dict[Tuple[str, str, str], List[Rule]] = OrderedDict()

        for rule in rules:
            earlier = seen.get(rule.key)
            if earlier is not None:
                if earlier.effect != rule.effect:
                    raise PolicyConflictError(
                        f"Rules on lines {earlier.line_number} and {rule.line_number} "
                        f"match the same requests with different effects",
                        kind=PolicyConflictError.CONFLICTING_EFFECT,
                        line_numbers=(earlier.line_number, rule.line_number),
                        rules=(earlier.to_line(), rule.to_line()),
                    )
                warnings.append(
                    f"line {rule.line_number}: duplicate of line {earlier.line_number}, rule is unreachable"
                )
                continue

            seen[rule.key] = rule
            group = groups.setdefault((rule.role, rule.resource_type, rule.action), [])

            for prior in group:
                if pattern_covers(prior.resource_pattern, rule.resource_pattern):
                    warnings.append(
                        f"line {rule.line_number}: shadowed by line {prior.line_number} "
                        f"('{prior.resource_pattern}' covers '{rule.resource_pattern}'), rule is unreachable"
                    )
                    break

            group.append(rule)

        return warnings

    def _check_bindings(self, rules: List[Rule], bindings: List[GroupBinding]) -> List[str]:
        """Every bound role must be used by a rule or inherit another role."""
        warnings = []
        used_roles = {rule.role for rule in rules}
        inheriting = {binding.subject for binding in bindings}

        for binding in bindings:
            if binding.role in used_roles or binding.role in inheriting:
                continue

            message = f"line {binding.line_number}: role '{binding.role}' is not used by any rule"
            if self.strict_unbound_roles:
                raise PolicyConflictError(
                    f"Unbound role '{binding.role}' on line {binding.line_number}",
                    kind=PolicyConflictError.UNBOUND_ROLE,
                    line_numbers=(binding.line_number,),
                    rules=(binding.to_line(),),
                )
            warnings.append(message)

        return warnings

    @staticmethod
    def _resolve_roles(bindings: List[GroupBinding]) -> Dict[str, FrozenSet[str]]:
        """Expand role inheritance into subject -> all roles."""
        direct: Dict[str, List[str]] = OrderedDict()
        for binding in bindings:
            direct.setdefault(binding.subject, []).append(binding.role)

        resolved: Dict[str, FrozenSet[str]] = {}
        for subject in direct:
            roles: Set[str] = set()
            stack = list(direct[subject])
            while stack:
                role = stack.pop()
                if role in roles:
                    continue
                roles.add(role)
                stack.extend(direct.get(role, ()))
            resolved[subject] = frozenset(roles)

        return resolved


def compile_policy(lines: Iterable[str], **kwargs) -> CompiledPolicy:
    """Compile policy lines with a one-off PolicyCompiler."""
    return PolicyCompiler(**kwargs).compile(lines)
