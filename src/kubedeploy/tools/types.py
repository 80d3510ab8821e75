from collections.abc import Callable, Mapping
from typing import Any, NewType


Manifest = NewType("Manifest", dict[str, Any])
""" A single Kubernetes object as a JSON-like mapping. """

Environment = Mapping[str, str]
""" Variables available to manifest substitution. """

Substitutor = Callable[[str, Environment], str]
""" A pure text preprocessor that is applied to manifest files before they are parsed. """
