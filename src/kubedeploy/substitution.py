"""
Variable substitution for manifest files. Substitution is a pure text transformation that is applied to the content
of a manifest file before it is parsed.
"""

from collections.abc import Callable
import re

from loguru import logger

from kubedeploy.tools.types import Environment

VARIABLE_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
""" Matches a `${NAME}` placeholder. The bare `$NAME` form is not recognized. """


def substitute_variables(
    text: str,
    env: Environment,
    on_missing: Callable[[str], None] | None = None,
) -> str:
    """
    Replace every `${NAME}` placeholder in *text* with the value of `NAME` in *env*.

    Placeholders that reference a variable that is not defined are left in the text verbatim and a warning is logged.

    Args:
        text: The text to substitute variables in.
        env: The variables that are available for substitution.
        on_missing: Called with the variable name for every occurrence of an undefined variable.
    """

    def repl(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in env:
            return env[name]
        logger.warning("Variable '{}' is not defined, leaving '{}' as-is", name, match.group(0))
        if on_missing is not None:
            on_missing(name)
        return match.group(0)

    return VARIABLE_PATTERN.sub(repl, text)
