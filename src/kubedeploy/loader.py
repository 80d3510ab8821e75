"""
Loads Kubernetes manifests from files in a workspace into a `Bundle` of typed resources.
"""

from collections.abc import Collection, Iterator, Sequence
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any

from loguru import logger
import yaml

from kubedeploy.resources import KindTag, Resource
from kubedeploy.resources.kinds import LIST, REGISTERED_KINDS
from kubedeploy.substitution import substitute_variables
from kubedeploy.tools.types import Environment, Manifest, Substitutor


@dataclass
class LoadError(Exception):
    """
    Raised when the manifests cannot be loaded. A load error is fatal for the whole bundle; no resource of the bundle
    is applied.
    """

    message: str
    file: Path | None = None

    def __str__(self) -> str:
        if self.file is not None:
            return f"{self.file}: {self.message}"
        return self.message


@dataclass
class Bundle:
    """
    The resources loaded from a set of manifest files, in the order in which they appear in the files.
    """

    resources: list[Resource] = field(default_factory=list)
    files: list[Path] = field(default_factory=list)
    """ The files that the resources were loaded from, in the order they were read. """

    warnings: list[str] = field(default_factory=list)
    """ Messages about documents that were skipped and variables that were not defined. """

    def __iter__(self) -> Iterator[Resource]:
        return iter(self.resources)

    def __len__(self) -> int:
        return len(self.resources)


def split_patterns(text: str) -> list[str]:
    """
    Split a comma separated list of glob patterns, e.g. `"k8s/*.yaml, crds/**/*.yml"`. Blank entries are dropped.
    """

    return [pattern.strip() for pattern in text.split(",") if pattern.strip()]


def find_files(roots: Sequence[Path], patterns: Sequence[str]) -> list[Path]:
    """
    Resolve glob patterns against each of the *roots*. The `**` wildcard matches any number of directories.

    Returns:
        The matched files, de-duplicated and sorted.

    Raises:
        LoadError: If a root does not exist or a pattern matches no file under any of the roots.
    """

    if not patterns:
        raise LoadError("No manifest file patterns were given")

    for root in roots:
        if not root.is_dir():
            raise LoadError("Manifest root directory does not exist", root)

    files: set[Path] = set()
    for pattern in patterns:
        matches: set[Path] = set()
        if Path(pattern).is_absolute():
            anchor = Path(Path(pattern).anchor)
            matches.update(anchor.glob(str(Path(pattern).relative_to(anchor))))
        else:
            for root in roots:
                matches.update(root.glob(pattern))
        matches = {path for path in matches if path.is_file()}
        if not matches:
            raise LoadError(f"Pattern '{pattern}' did not match any file in {', '.join(map(str, roots))}")
        logger.trace("Pattern '{}' matched {} file(s)", pattern, len(matches))
        files.update(matches)

    return sorted(files)


def load_documents(text: str, file: Path | None = None) -> list[Manifest]:
    """
    Parse a YAML (or JSON) stream into manifests. Empty documents are skipped and `v1 List` documents are expanded
    into their items.
    """

    try:
        documents = list(yaml.safe_load_all(text))
    except yaml.YAMLError as exc:
        raise LoadError(f"Invalid YAML: {exc}", file) from exc

    result: list[Manifest] = []
    for index, document in enumerate(documents):
        if document is None:
            continue
        if not isinstance(document, dict):
            raise LoadError(f"Document {index} is not a mapping (got {type(document).__name__})", file)
        if (document.get("apiVersion"), document.get("kind")) == (LIST.api_version, LIST.kind):
            items: Any = document.get("items") or []
            if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
                raise LoadError(f"Document {index} is a List whose 'items' are not a list of mappings", file)
            result.extend(Manifest(item) for item in items)
        else:
            result.append(Manifest(document))

    return result


def load_bundle(
    roots: Sequence[Path],
    patterns: Sequence[str],
    substitute: bool = True,
    env: Environment | None = None,
    *,
    kinds: Collection[KindTag] | None = None,
    substitutor: Substitutor | None = None,
) -> Bundle:
    """
    Load the manifests from all files matching the glob *patterns* under the *roots*.

    Args:
        roots: The directories to resolve the patterns against.
        patterns: Glob patterns that select the manifest files.
        substitute: Whether to substitute variables in the files before they are parsed.
        env: The variables for substitution. Defaults to the process environment.
        kinds: The kinds to load. Documents of any other kind are skipped with a warning. Defaults to the kinds of
            the default reconciler registry.
        substitutor: The function that substitutes variables. Defaults to `substitute_variables()`, in which case
            every undefined variable is recorded once per file in `Bundle.warnings`.

    Raises:
        LoadError: If a pattern matches no files, a file can not be read or parsed, a document is not a valid
            Kubernetes object or the same object is declared twice.
    """

    if env is None:
        env = dict(os.environ)
    known_kinds = frozenset(REGISTERED_KINDS if kinds is None else kinds)

    bundle = Bundle()
    seen: dict[tuple[KindTag, str, str], Path] = {}

    for file in find_files(roots, patterns):
        logger.trace("Loading manifests from '{}'", file)
        try:
            text = file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise LoadError(f"Unable to read file: {exc}", file) from exc

        if substitute and substitutor is not None:
            text = substitutor(text, env)
        elif substitute:
            missing: list[str] = []
            text = substitute_variables(text, env, on_missing=missing.append)
            for name in dict.fromkeys(missing):
                bundle.warnings.append(f"{file}: variable '{name}' is not defined, leaving '${{{name}}}' as-is")

        bundle.files.append(file)
        for index, manifest in enumerate(load_documents(text, file)):
            try:
                resource = Resource.from_manifest(manifest, source=file)
            except ValueError as exc:
                raise LoadError(f"Document {index}: {exc}", file) from exc

            if resource.kind not in known_kinds:
                message = f"{file}: skipping {resource.label}, kind {resource.kind.label} is not supported"
                logger.warning("{}", message)
                bundle.warnings.append(message)
                continue

            if resource.key in seen:
                raise LoadError(f"{resource.label} is already declared in '{seen[resource.key]}'", file)
            seen[resource.key] = file
            bundle.resources.append(resource)

    logger.debug("Loaded {} resource(s) from {} file(s)", len(bundle.resources), len(bundle.files))
    return bundle
