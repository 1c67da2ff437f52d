"""
Semantic diffing for JSON documents and inferred schemas
"""

import json
import logging
from typing import Dict, Any, List, Optional, Union
from deepdiff import DeepDiff

from ..errors import DecodeError
from ..schema import Schema, to_json_schema
from ..values import decode

logger = logging.getLogger(__name__)


def diff_json(original: Union[str, bytes, Dict[Any, Any], List[Any]],
              modified: Union[str, bytes, Dict[Any, Any], List[Any]]) -> Optional[Dict[str, Any]]:
    """
    Compare two JSON documents and return semantic differences.

    Args:
        original: Original JSON data (raw text or decoded)
        modified: Modified JSON data (raw text or decoded)

    Returns:
        Dictionary containing the differences, or None if identical
    """
    try:
        if isinstance(original, (str, bytes)):
            original = decode(original)
        if isinstance(modified, (str, bytes)):
            modified = decode(modified)

        diff = DeepDiff(original, modified, ignore_order=True)

        if not diff:
            return None

        return {
            'type': 'json',
            'differences': json.loads(diff.to_json()),
            'has_changes': True,
            'summary': _summarize_json_diff(diff)
        }

    except (DecodeError, RecursionError) as e:
        logger.warning(f"Failed to diff JSON: {e}")
        return {
            'type': 'json',
            'error': str(e),
            'has_changes': True,
            'summary': 'JSON parsing error during diff'
        }


def _summarize_json_diff(diff: DeepDiff) -> str:
    """Create a human-readable summary of JSON differences."""
    changes = []

    if 'values_changed' in diff:
        changes.append(f"{len(diff['values_changed'])} values changed")
    if 'type_changes' in diff:
        changes.append(f"{len(diff['type_changes'])} types changed")
    if 'dictionary_item_added' in diff:
        changes.append(f"{len(diff['dictionary_item_added'])} items added")
    if 'dictionary_item_removed' in diff:
        changes.append(f"{len(diff['dictionary_item_removed'])} items removed")
    if 'iterable_item_added' in diff:
        changes.append("list items added")
    if 'iterable_item_removed' in diff:
        changes.append("list items removed")

    return '; '.join(changes) if changes else 'structural changes detected'


def _walk_schema_changes(old: Dict[str, Any], new: Dict[str, Any], path: str, changes: Dict[str, List]):
    if old.get('type') != new.get('type'):
        changes['type_changed'].append({'path': path, 'old': old.get('type'), 'new': new.get('type')})
        return

    old_props = old.get('properties', {})
    new_props = new.get('properties', {})
    old_required = set(old.get('required', []))
    new_required = set(new.get('required', []))

    for name in old_props:
        prop_path = f"{path}.{name}"
        if name not in new_props:
            changes['removed'].append(prop_path)
            continue
        if (name in old_required) != (name in new_required):
            changes['required_changed'].append({'path': prop_path, 'required': name in new_required})
        _walk_schema_changes(old_props[name], new_props[name], prop_path, changes)

    for name in new_props:
        if name not in old_props:
            changes['added'].append(f"{path}.{name}")

    if 'items' in old and 'items' in new:
        _walk_schema_changes(old['items'], new['items'], f"{path}[*]", changes)


def diff_schemas(old: Schema, new: Schema) -> Optional[Dict[str, Any]]:
    """
    Compare two inferred schemas and report how the structure drifted.

    Args:
        old: Baseline schema
        new: Schema inferred from newer samples

    Returns:
        Dictionary with added, removed and retyped properties, or None if identical
    """
    old_doc = to_json_schema(old)
    new_doc = to_json_schema(new)

    diff = DeepDiff(old_doc, new_doc, ignore_order=True)
    if not diff:
        return None

    changes: Dict[str, List] = {'added': [], 'removed': [], 'type_changed': [], 'required_changed': []}
    _walk_schema_changes(old_doc, new_doc, '$', changes)

    summary = [f"{len(items)} {name.replace('_', ' ')}" for name, items in changes.items() if items]

    logger.debug(f"Schema diff: {changes}")
    return {
        'type': 'schema',
        'has_changes': True,
        'breaking': bool(changes['removed'] or changes['type_changed']),
        **changes,
        'summary': '; '.join(summary) if summary else 'constraints changed'
    }
