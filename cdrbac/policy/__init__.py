"""
Package policy parses and compiles RBAC policy definitions.

This package implements:
- Rule and group binding types
- The policy compiler (syntax validation, conflict and unreachable-rule detection)
- Segment-wise glob matching of resource identifiers
- Policy file loading
"""

from .types import (
    Effect,
    Allow,
    Deny,
    Rule,
    GroupBinding,
    CompiledPolicy,
    EMPTY_POLICY,
)

from .compiler import (
    PolicyCompiler,
    BUILTIN_POLICY,
    compile_policy,
    parse_policy_line,
)

from .glob import match_resource, pattern_covers

from .loader import load_policy_file, read_policy_file

__all__ = [
    # Types
    'Effect',
    'Allow',
    'Deny',
    'Rule',
    'GroupBinding',
    'CompiledPolicy',
    'EMPTY_POLICY',

    # Compiler
    'PolicyCompiler',
    'BUILTIN_POLICY',
    'compile_policy',
    'parse_policy_line',

    # Matching
    'match_resource',
    'pattern_covers',

    # Loading
    'load_policy_file',
    'read_policy_file',
]
