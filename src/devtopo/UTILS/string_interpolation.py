"""
Utilities for string interpolation using environment variables.
"""
import re
from typing import Any, Dict, Mapping

# ${VAR}, ${VAR:-default} or ${VAR:+value}
PATTERN = re.compile(r'\$\{([^}:]+)(?::(-|\+)([^}]*))?\}')


class EnvironmentInterpolator:
    """
    Interpolates ${VAR}, ${VAR:-default} and ${VAR:+value} placeholders.
    ``$$`` escapes a literal dollar sign.
    """
    @staticmethod
    def interpolate(template: str, context: Mapping[str, str]) -> str:
        """
        Interpolates placeholders in a string using the provided context.

        :param template: The string containing ${VAR} placeholders.
        :param context: Variables available for substitution.
        :return: The interpolated string.
        :raises KeyError: If a bare ${VAR} is not in the context.
        """
        def replace(match):
            var_name = match.group(1)
            modifier = match.group(2)
            alt_value = match.group(3)
            value = context.get(var_name)

            if modifier == '-':
                return value if value else alt_value
            if modifier == '+':
                return alt_value if value else ''
            if value is None:
                raise KeyError(var_name)
            return value

        parts = template.split('$$')
        return '$'.join(PATTERN.sub(replace, part) for part in parts)

    @classmethod
    def interpolate_data(cls, data: Any, context: Mapping[str, str]) -> Any:
        """
        Interpolates every string inside parsed YAML data, keys included.
        Non-string scalars are returned unchanged.
        """
        if isinstance(data, str):
            return cls.interpolate(data, context)
        if isinstance(data, list):
            return [cls.interpolate_data(item, context) for item in data]
        if isinstance(data, dict):
            result: Dict[Any, Any] = {}
            for key, value in data.items():
                new_key = cls.interpolate(key, context) if isinstance(key, str) else key
                result[new_key] = cls.interpolate_data(value, context)
            return result
        return data
