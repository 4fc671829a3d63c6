"""JSON Merge Patch (RFC 7386).

    apply_merge_patch({"a": "b", "c": {"d": "e"}}, {"a": None, "c": {"f": 1}})
    -> {"c": {"d": "e", "f": 1}}
"""
import copy
import json
from typing import Any

MERGE_PATCH_MEDIA_TYPE = "application/merge-patch+json"


def apply_merge_patch(target: Any, patch: Any) -> Any:
    """Return ``target`` with ``patch`` merged in; neither argument is mutated.

    A patch that is not a JSON object replaces the target wholesale. Inside an
    object patch, ``None`` removes the member and nested objects merge
    recursively.
    """
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)

    result = copy.deepcopy(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = apply_merge_patch(result.get(key), value)
    return result


def parse_patch(body: bytes | str) -> Any:
    """Decode a merge patch document, raising ``ValueError`` on malformed JSON."""
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    try:
        return json.loads(body)
    except RecursionError as exc:
        raise ValueError("Merge patch is nested too deeply") from exc
