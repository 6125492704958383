"""
Statement Builder: two-tier assembly of xAPI statements.

Allowed layer (cmi5 "allowed" statements, section 9):
    id, actor, timestamp and context.registration are owned by the
    envelope. Caller patches are deep-merged on top, then the owned fields
    are written again so no patch can override them.

Defined layer (cmi5 "defined" statements, section 9.3):
    adds the AU activity as the object and the cmi5 category activity,
    merges caller patches on top and hands the result to the allowed layer.

Merging never mutates its inputs. Nested mappings merge key by key and
lists concatenate, so category activities accumulate across layers.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from cmi5_runtime.core.constants import Cmi5ContextActivity
from cmi5_runtime.core.durations import iso_timestamp
from cmi5_runtime.core.launch import LaunchContext

_REQUIRED_STATEMENT_KEYS = ("id", "actor", "verb", "object", "timestamp")
_KNOWN_STATEMENT_KEYS = frozenset(_REQUIRED_STATEMENT_KEYS) | {"result", "context"}


@dataclass(frozen=True)
class Statement:
    """An assembled xAPI statement. Build a new one rather than mutating."""

    id: str
    actor: dict[str, Any]
    verb: dict[str, Any]
    object: dict[str, Any]
    timestamp: str
    result: dict[str, Any] | None = None
    context: dict[str, Any] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON document sent to the LRS."""
        data = _clone(self.extra)
        data.update({
            "id": self.id,
            "actor": _clone(self.actor),
            "verb": _clone(self.verb),
            "object": _clone(self.object),
            "timestamp": self.timestamp,
        })
        if self.result is not None:
            data["result"] = _clone(self.result)
        if self.context is not None:
            data["context"] = _clone(self.context)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Statement:
        missing = [key for key in _REQUIRED_STATEMENT_KEYS if key not in data]
        if missing:
            raise ValueError(f"Statement is missing required fields: {', '.join(missing)}")
        return cls(
            id=data["id"],
            actor=_clone(data["actor"]),
            verb=_clone(data["verb"]),
            object=_clone(data["object"]),
            timestamp=data["timestamp"],
            result=_clone(data["result"]) if data.get("result") is not None else None,
            context=_clone(data["context"]) if data.get("context") is not None else None,
            extra={k: _clone(v) for k, v in data.items() if k not in _KNOWN_STATEMENT_KEYS},
        )

    @property
    def verb_id(self) -> str:
        return self.verb.get("id", "")


StatementTransform = Callable[[Statement], Statement]


@dataclass(frozen=True)
class SendOptions:
    """Per-send options; transform runs on the assembled statement before sending."""

    transform: StatementTransform | None = None

    def apply(self, statement: Statement) -> Statement:
        return self.transform(statement) if self.transform else statement


# =============================================================================
# Merging
# =============================================================================


def _clone(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _clone(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_clone(item) for item in value]
    return value


def _merge_values(left: Any, right: Any) -> Any:
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return _merge_mappings(left, right)
    if isinstance(left, list) and isinstance(right, (list, tuple)):
        return left + [_clone(item) for item in right]
    return _clone(right)


def _merge_mappings(base: Mapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    merged = {key: _clone(value) for key, value in base.items()}
    for key, value in patch.items():
        if value is None:
            continue
        merged[key] = _merge_values(merged[key], value) if key in merged else _clone(value)
    return merged


def deep_merge(*patches: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Merge statement patches left to right into a new dict.

    Nested mappings merge recursively, lists concatenate (later items
    appended), and any other value from a later patch replaces the earlier
    one. Keys whose value is None are treated as absent.

    Args:
        *patches: Partial statements, earliest first

    Returns:
        A fresh dict sharing no containers with the inputs
    """
    merged: dict[str, Any] = {}
    for patch in patches:
        if patch:
            merged = _merge_mappings(merged, patch)
    return merged


# =============================================================================
# Layers
# =============================================================================


def allowed_statement(ctx: LaunchContext, *patches: Mapping[str, Any] | None) -> Statement:
    """
    Assemble a cmi5 allowed statement.

    The context starts from launchData.contextTemplate with the launch
    registration forced in.

    Raises:
        ValueError: If the merged patches supply no verb or object
    """
    registration = ctx.launch_parameters.registration
    context = _clone(ctx.launch_data.context_template)
    context["registration"] = registration
    envelope = {
        "id": str(uuid.uuid4()),
        "actor": _clone(ctx.launch_parameters.actor),
        "timestamp": iso_timestamp(),
        "context": context,
    }

    merged = deep_merge(envelope, *patches)
    for key in ("id", "actor", "timestamp"):
        merged[key] = _clone(envelope[key])
    merged_context = merged.get("context")
    merged["context"] = {
        **(merged_context if isinstance(merged_context, Mapping) else {}),
        "registration": registration,
    }
    return Statement.from_dict(merged)


def defined_statement(ctx: LaunchContext, *patches: Mapping[str, Any] | None) -> Statement:
    """Assemble a cmi5 defined statement about the AU activity itself."""
    requirements = {
        "object": {
            "objectType": "Activity",
            "id": ctx.launch_parameters.activity_id,
        },
        "context": {
            "contextActivities": {
                "category": [Cmi5ContextActivity.CMI5],
            },
        },
    }
    return allowed_statement(ctx, deep_merge(requirements, *patches))
