from typing import Any, Dict


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries where ``override`` has precedence.

    Nested dicts are deep-merged; every other value (lists included) is replaced.
    ``base`` is left untouched.
    """
    merged = base.copy()
    for key, value in (override or {}).items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged
