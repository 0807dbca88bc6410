"""Argument splitting and coercion for registered commands.

Argument text is split with shell-like quoting so that
``!weather "new york" metric`` yields two arguments. Each token is then
converted to the annotation declared on the handler parameter. A
parameter flagged as remainder receives the rest of the text unsplit.
"""

from __future__ import annotations

import inspect
import shlex
import types
import typing
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from ..exceptions import ArgumentMismatchError, RegistryError

_TRUE_WORDS = frozenset({"true", "yes", "y", "on", "1"})
_FALSE_WORDS = frozenset({"false", "no", "n", "off", "0"})
_UNION_TYPES = tuple(
    t for t in (typing.Union, getattr(types, "UnionType", None)) if t is not None
)

TOO_FEW = "The input text has too few parameters."
TOO_MANY = "The input text has too many parameters."


@dataclass(frozen=True)
class Parameter:
    """A declared command parameter.

    Attributes:
        name: Parameter name from the handler signature.
        annotation: Target type; ``str`` when unannotated.
        default: Default value, or ``inspect.Parameter.empty`` if required.
        remainder: Whether this parameter consumes the rest of the text.
    """
    name: str
    annotation: Any = str
    default: Any = inspect.Parameter.empty
    remainder: bool = False

    @property
    def required(self) -> bool:
        return self.default is inspect.Parameter.empty

    @property
    def type_name(self) -> str:
        return getattr(self.annotation, "__name__", str(self.annotation))


def _unwrap_optional(annotation: Any) -> Any:
    """Optional[X] / X | None -> X; anything else unchanged."""
    if typing.get_origin(annotation) in _UNION_TYPES:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _resolve_annotation(func, p: inspect.Parameter) -> Any:
    """Evaluate one parameter's annotation in the handler's module.

    Postponed annotations are resolved one parameter at a time, so a
    ctx type imported only under TYPE_CHECKING does not matter.

    Raises:
        RegistryError: The annotation names something undefined.
    """
    annotation = p.annotation
    if annotation is p.empty:
        return str
    if isinstance(annotation, str):
        try:
            annotation = eval(annotation, getattr(func, "__globals__", {}))
        except Exception as e:
            raise RegistryError(
                f"{func.__qualname__}: cannot resolve annotation "
                f"{annotation!r} of `{p.name}`: {e}",
                command=func.__name__,
            ) from e
    return _unwrap_optional(annotation)


def parameters_from_signature(func, remainder: bool = False) -> Tuple[Parameter, ...]:
    """Build the parameter list of a command handler.

    The handler is an unbound method ``(self, ctx, *args)``; the first
    two parameters are skipped.

    Raises:
        RegistryError: Unsupported ``*args``/``**kwargs`` or an
            unresolvable annotation.
    """
    params = list(inspect.signature(func).parameters.values())[2:]
    result: List[Parameter] = []
    for i, p in enumerate(params):
        if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
            raise RegistryError(
                f"{func.__qualname__}: *args/**kwargs are not supported",
                command=func.__name__,
            )
        result.append(Parameter(
            name=p.name,
            annotation=_resolve_annotation(func, p),
            default=p.default,
            remainder=remainder and i == len(params) - 1,
        ))
    return tuple(result)


def split_arguments(text: str, limit: Optional[int] = None) -> Tuple[List[str], str]:
    """Split argument text into tokens.

    Args:
        text: Raw argument text.
        limit: If given, stop after this many tokens and return the
            remaining text verbatim.

    Returns:
        (tokens, rest). ``rest`` is empty when ``limit`` is None.
    """
    text = text.strip()
    if not text:
        return [], ""
    if limit is None:
        try:
            return shlex.split(text), ""
        except ValueError:
            return text.split(), ""
    if limit == 0:
        return [], text
    lexer = shlex.shlex(text, posix=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    tokens: List[str] = []
    try:
        while len(tokens) < limit:
            token = lexer.get_token()
            if token is None:
                return tokens, ""
            tokens.append(token)
    except ValueError:
        parts = text.split(None, limit)
        return parts[:limit], parts[limit] if len(parts) > limit else ""
    return tokens, lexer.instream.read().strip()


def convert(value: str, param: Parameter, command: Optional[str] = None) -> Any:
    """Convert one token to the parameter's declared type."""
    annotation = param.annotation
    if annotation is str or annotation is inspect.Parameter.empty:
        return value
    if annotation is bool:
        lowered = value.lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
    else:
        try:
            return annotation(value)
        except (TypeError, ValueError):
            pass
    raise ArgumentMismatchError(
        f"Failed to parse {param.type_name} for `{param.name}`: {value!r}",
        command=command,
        parameter=param.name,
    )


def bind_arguments(
    parameters: Sequence[Parameter], text: str, command: Optional[str] = None,
) -> Tuple[Any, ...]:
    """Coerce argument text into positional values for a handler.

    Raises:
        ArgumentMismatchError: On too few or too many tokens, or a
            token that cannot be converted.
    """
    has_remainder = bool(parameters) and parameters[-1].remainder
    limit = len(parameters) - 1 if has_remainder else None
    tokens, rest = split_arguments(text, limit)

    values: List[Any] = []
    for i, param in enumerate(parameters):
        if param.remainder:
            if rest:
                values.append(convert(rest, param, command))
            elif param.required:
                raise ArgumentMismatchError(TOO_FEW, command=command, parameter=param.name)
            else:
                values.append(param.default)
        elif i < len(tokens):
            values.append(convert(tokens[i], param, command))
        elif param.required:
            raise ArgumentMismatchError(TOO_FEW, command=command, parameter=param.name)
        else:
            values.append(param.default)

    if not has_remainder and len(tokens) > len(parameters):
        raise ArgumentMismatchError(TOO_MANY, command=command)
    return tuple(values)
