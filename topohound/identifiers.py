"""Canonical resource identifiers.

Resource attributes reference each other through interpolation strings
such as ``"${aws_vpc.main.id}"``. The helpers here reduce those strings to
the ``type.name`` identifiers used as node ids, membership keys and
reachability vertices, qualified by the module that declared them.
"""

from __future__ import annotations

import logging
import re
from typing import Mapping, Optional, Sequence

from .constants import ALIAS_PREFIXES, ID_SELECTOR
from .errors import UnresolvedReferenceError

logger = logging.getLogger(__name__)

INTERPOLATION_PATTERN = re.compile(r"^\$\{(.*)\}$", re.DOTALL)
MODULE_PREFIX = "module."


def is_interpolated(value: object) -> bool:
    """True if ``value`` is a whole-string ``${...}`` interpolation."""
    return isinstance(value, str) and bool(INTERPOLATION_PATTERN.match(value))


def strip_interpolation(value: str) -> str:
    """Return the token inside ``${...}``, or ``value`` unchanged."""
    match = INTERPOLATION_PATTERN.match(value)
    if not match:
        return value
    return match.group(1).strip()


def qualify(module_path: Sequence[str], name: str) -> str:
    """Prefix ``name`` with its module chain.

    E.g. module_path ("root", "base", "sub") and name "aws_vpc.main"
    give "module.base.sub.aws_vpc.main". Names declared in the root
    module, or already module-qualified, are returned unchanged.
    """
    if len(module_path) <= 1:
        return name
    if name.startswith(MODULE_PREFIX):
        return name
    return f"{MODULE_PREFIX}{'.'.join(module_path[1:])}.{name}"


def is_alias(token: str) -> bool:
    head = token.split(".", 1)[0]
    return head in ALIAS_PREFIXES


def resolve(token: str, variables: Optional[Mapping[str, str]] = None) -> str:
    """Resolve an interpolation token to ``type.name``.

    Raises:
        UnresolvedReferenceError: token is an alias with no entry in the
            declaring resource's variable table
    """
    if variables and token in variables:
        return variables[token]
    if is_alias(token):
        raise UnresolvedReferenceError(token)
    if token.endswith(ID_SELECTOR):
        token = token[: -len(ID_SELECTOR)]
    return token


def normalize(
    module_path: Sequence[str],
    raw: str,
    variables: Optional[Mapping[str, str]] = None,
) -> str:
    """Reduce a raw reference to a canonical, module-qualified identifier.

    Unresolvable references never fail: the best-effort identifier is
    returned so that forward references do not abort a conversion.
    """
    if not is_interpolated(raw):
        return qualify(module_path, raw)

    token = strip_interpolation(raw)
    try:
        ident = resolve(token, variables)
    except UnresolvedReferenceError as e:
        logger.warning(f"{e.message}; using it verbatim")
        ident = token[: -len(ID_SELECTOR)] if token.endswith(ID_SELECTOR) else token
    return qualify(module_path, ident)


def occurrence_id(resource_type: str, name: str, module_path: Sequence[str], index: int = 0, count: int = 1) -> str:
    """Identifier of one expanded occurrence.

    Only declarations with more than one occurrence carry an index suffix,
    matching how references such as ``${aws_subnet.a.1.id}`` are written.
    """
    ident = qualify(module_path, f"{resource_type}.{name}")
    if count > 1:
        ident = f"{ident}.{index}"
    return ident


def clone_id(base: str, index: int, indexed: bool = False) -> str:
    """Synthetic id for the ``index``-th clone of a multi-container node.

    ``indexed`` marks a base that already ends in a count suffix; its
    clones take a ``-`` separator (``lb.1-1``, never ``lb.11``).
    """
    if index == 0:
        return base
    if indexed:
        return f"{base}-{index}"
    return f"{base}{index}"
