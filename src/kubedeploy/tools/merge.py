"""
Helpers to compute JSON merge patches (RFC 7386) the way the Kubernetes API server applies a patch sent with the
`application/merge-patch+json` content type.
"""

from copy import deepcopy
from typing import Any

from kubedeploy.tools.types import Manifest

SERVER_MANAGED_METADATA = ("creationTimestamp", "generation", "managedFields", "resourceVersion", "selfLink", "uid")
""" Metadata fields that are owned by the API server and never part of a declared manifest. """


def merge_patch(target: Any, patch: Any) -> Any:
    """
    Apply the merge *patch* to *target* and return the result. Neither argument is modified.

    Mappings are merged recursively, a `None` value in the patch removes the key, and every other value (including
    lists) replaces the value in the target. Keys that are absent from the patch are preserved.
    """

    if not isinstance(patch, dict):
        return deepcopy(patch)

    result = deepcopy(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = merge_patch(result.get(key), value)
    return result


def strip_status(manifest: Manifest) -> Manifest:
    """
    Return a copy of the manifest without its `status` field, which is never written by a client.
    """

    result = deepcopy(manifest)
    result.pop("status", None)
    return Manifest(result)


def strip_server_fields(manifest: Manifest) -> Manifest:
    """
    Return a copy of the manifest without the fields the API server maintains, so that two snapshots of the same
    object can be compared by their declared content.
    """

    result = strip_status(manifest)
    metadata = result.get("metadata")
    if isinstance(metadata, dict):
        for key in SERVER_MANAGED_METADATA:
            metadata.pop(key, None)
    return result
