"""Named placeholder converters.

Braced placeholders may name a converter (``{id:int}``); the converter
supplies the default segment regex and the Python type the captured text
is turned into. Colon placeholders (``:id``) are always ``str`` and take
their constraint from ``RouteBuilder.set_requirement()``.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Converter:
    pattern: str
    type: type


CONVERTERS: dict[str, Converter] = {
    "str": Converter(r"[^/]+", str),
    "int": Converter(r"\d+", int),
    "float": Converter(r"\d+(?:\.\d+)?", float),
    "path": Converter(r".+", str),
}


def convert_param(value: str, param_type: str) -> str | int | float:
    """Turn captured placeholder text into the converter's type.

    Raises ``KeyError`` for an unregistered converter name and
    ``ValueError`` when *value* does not parse.
    """
    return CONVERTERS[param_type].type(value)
