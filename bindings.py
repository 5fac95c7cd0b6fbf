#!/usr/bin/env python3
"""
Binding references and the low-level operations on them.

A binding is a name inside a scope (a module, a class, or any object with
attributes) together with the value reachable through it. This module knows
how to:

- turn a dotted ``"module.function"`` path (or a ``(scope, name)`` pair) into a
  ``BindingRef``,
- read the current value of the binding without touching it,
- decide whether the binding can be rebound safely and transparently,
- write a substitute into the scope and put the original back.

Sessions and the manual fallback in ``interception`` are built on top of these
primitives; nothing here keeps state between calls.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import types
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Static built-in types (str, dict, ...) are not heap types; extension heap
# types that refuse attribute assignment carry IMMUTABLETYPE.
_TPFLAGS_IMMUTABLETYPE = 1 << 8
_TPFLAGS_HEAPTYPE = 1 << 9

# Function kinds implemented in C. Rebinding the name does not reach callers
# that hold the object directly or C code that calls the slot, so they are
# never intercepted through a session.
_PRIMITIVE_TYPES = (
    types.BuiltinFunctionType,
    types.MethodDescriptorType,
    types.WrapperDescriptorType,
    types.MethodWrapperType,
    types.ClassMethodDescriptorType,
)


class InterceptionError(Exception):
    """Base class for every error raised by the interception facility."""


class UnresolvableBindingError(InterceptionError, LookupError):
    """The requested binding does not exist in the stated scope."""


class UnsupportedBindingKindError(InterceptionError, TypeError):
    """The binding exists but cannot be safely rebound through a session."""


class LockedModule(types.ModuleType):
    """Module type that refuses rebinding of its attributes.

    Modules are switched to this type with ``lock_module`` and back with
    ``unlock_module``.
    """

    def __setattr__(self, name, value):
        raise AttributeError(f"module {self.__name__!r} is locked; cannot rebind {name!r}")

    def __delattr__(self, name):
        raise AttributeError(f"module {self.__name__!r} is locked; cannot delete {name!r}")


def lock_module(module: types.ModuleType) -> None:
    """Prevents rebinding of any attribute of ``module``."""
    if isinstance(module, LockedModule):
        return
    if type(module) is not types.ModuleType:
        raise TypeError(f"cannot lock {module!r}: only plain modules can be locked")
    module.__class__ = LockedModule
    logger.debug("Locked module %s", module.__name__)


def unlock_module(module: types.ModuleType) -> None:
    """Reverses ``lock_module``. Unlocked modules are left alone."""
    if not isinstance(module, LockedModule):
        return
    # LockedModule.__setattr__ refuses everything, __class__ included.
    types.ModuleType.__setattr__(module, "__class__", types.ModuleType)
    logger.debug("Unlocked module %s", module.__name__)


def is_locked(scope: Any) -> bool:
    return isinstance(scope, LockedModule)


def is_immutable_type(scope: Any) -> bool:
    """Whether ``scope`` is a class that rejects attribute assignment."""
    if not isinstance(scope, type):
        return False
    flags = scope.__flags__
    return bool(flags & _TPFLAGS_IMMUTABLETYPE) or not flags & _TPFLAGS_HEAPTYPE


def is_primitive(value: Any) -> bool:
    """Whether ``value`` is a built-in (C-implemented) function or method."""
    if isinstance(value, (staticmethod, classmethod)):
        value = value.__func__
    return isinstance(value, _PRIMITIVE_TYPES)


def _import_scope(path: str) -> Any:
    """Imports the longest module prefix of ``path`` and walks the rest as attributes."""
    parts = path.split(".")
    walked = parts.pop(0)
    try:
        scope = importlib.import_module(walked)
    except ImportError as exc:
        raise UnresolvableBindingError(f"cannot import module {walked!r}") from exc

    for part in parts:
        walked = f"{walked}.{part}"
        try:
            scope = getattr(scope, part)
        except AttributeError:
            try:
                scope = importlib.import_module(walked)
            except ImportError as exc:
                raise UnresolvableBindingError(f"cannot resolve scope {walked!r}") from exc
    return scope


def _scope_name(scope: Any) -> str:
    if isinstance(scope, types.ModuleType):
        return scope.__name__
    if isinstance(scope, type):
        return f"{scope.__module__}.{scope.__qualname__}"
    return f"<{type(scope).__name__} object at {id(scope):#x}>"


@dataclass(frozen=True, eq=False)
class BindingRef:
    """Identifies a binding by the object owning it and the name inside it.

    References compare and hash by the identity of the scope, so scopes that
    are unhashable (e.g. instances of ``@dataclass`` classes) still work.
    """

    scope: Any
    name: str

    def __eq__(self, other):
        if not isinstance(other, BindingRef):
            return NotImplemented
        return self.scope is other.scope and self.name == other.name

    def __hash__(self):
        # The reference keeps the scope alive, so its id stays unique.
        return hash((id(self.scope), self.name))

    @classmethod
    def parse(cls, target: Any) -> "BindingRef":
        """Builds a reference from a dotted path, a ``(scope, name)`` pair or a reference.

        Raises:
            UnresolvableBindingError: If the scope part cannot be imported or walked.
            TypeError: If ``target`` has none of the accepted shapes.
        """
        if isinstance(target, cls):
            return target
        if isinstance(target, tuple) and len(target) == 2:
            scope, name = target
            if isinstance(scope, str):
                scope = _import_scope(scope)
            return cls(scope, str(name))
        if isinstance(target, str):
            scope_path, sep, name = target.strip().rpartition(".")
            if not sep or not scope_path or not name:
                raise UnresolvableBindingError(f"{target!r} is not a dotted 'module.function' path")
            return cls(_import_scope(scope_path), name)
        raise TypeError(f"cannot build a binding reference from {target!r}")

    def __str__(self) -> str:
        return f"{_scope_name(self.scope)}.{self.name}"


@dataclass(frozen=True)
class Binding:
    """A binding reference together with the value it held when resolved.

    Attributes:
        ref (BindingRef): The binding.
        original: The raw value as stored by the scope (descriptor wrappers
            such as ``staticmethod`` included).
        local (bool): True when the scope itself stores the value; False when
            it is inherited or produced dynamically, in which case restoring
            means deleting the attribute written by ``install``.
    """

    ref: BindingRef
    original: Any
    local: bool

    @property
    def function(self) -> Any:
        """The callable the original exposes, with descriptor wrappers removed."""
        if isinstance(self.original, (staticmethod, classmethod)):
            return self.original.__func__
        return self.original


def resolve(target: Any) -> Binding:
    """Resolves ``target`` and reads its current value without modifying anything.

    Raises:
        UnresolvableBindingError: If the scope or the name does not exist.
    """
    ref = BindingRef.parse(target)
    scope = ref.scope
    namespace = getattr(scope, "__dict__", None)

    if namespace is not None and ref.name in namespace:
        return Binding(ref, namespace[ref.name], local=True)

    if isinstance(scope, type):
        try:
            value = inspect.getattr_static(scope, ref.name)
        except AttributeError:
            raise UnresolvableBindingError(f"{ref} does not exist") from None
        return Binding(ref, value, local=False)

    try:
        value = getattr(scope, ref.name)
    except AttributeError:
        raise UnresolvableBindingError(f"{ref} does not exist") from None
    return Binding(ref, value, local=False)


def unsupported_reason(binding: Binding) -> Optional[str]:
    """Explains why ``binding`` cannot go through a session, or returns None."""
    scope = binding.ref.scope
    if is_locked(scope):
        return "scope is a locked module"
    if is_immutable_type(scope):
        return "scope is an immutable built-in type"
    if not isinstance(scope, (type, types.ModuleType)) and not hasattr(scope, "__dict__"):
        return "scope has no attribute dictionary"
    if is_primitive(binding.original):
        return "target is a built-in function"
    if not callable(binding.function):
        return "target is not callable"
    return None


def check_supported(binding: Binding) -> None:
    """Raises UnsupportedBindingKindError if ``binding`` cannot be rebound safely."""
    reason = unsupported_reason(binding)
    if reason is not None:
        raise UnsupportedBindingKindError(f"cannot intercept {binding.ref}: {reason}")


def kind_of(value: Any) -> str:
    if isinstance(value, staticmethod):
        return "staticmethod"
    if isinstance(value, classmethod):
        return "classmethod"
    if is_primitive(value):
        return "builtin"
    if inspect.isfunction(value):
        return "function"
    if inspect.ismethod(value):
        return "method"
    if isinstance(value, type):
        return "class"
    if callable(value):
        return "callable"
    return type(value).__name__


def describe(target: Any) -> dict:
    """Reports on ``target`` as a JSON-friendly dict; resolution errors are reported, not raised."""
    report = {
        "target": target if isinstance(target, str) else repr(target),
        "resolved": None,
        "kind": None,
        "supported": False,
        "reason": None,
    }
    try:
        binding = resolve(target)
    except UnresolvableBindingError as exc:
        report["reason"] = str(exc)
        return report

    report["resolved"] = str(binding.ref)
    report["kind"] = kind_of(binding.original)
    reason = unsupported_reason(binding)
    report["supported"] = reason is None
    report["reason"] = reason
    return report


def install(binding: Binding, substitute: Any) -> None:
    """Writes ``substitute`` into the binding's scope.

    The substitute is wrapped in the same descriptor type as the original so
    call sites keep passing the same arguments.
    """
    value = substitute
    if isinstance(binding.original, staticmethod):
        value = staticmethod(substitute)
    elif isinstance(binding.original, classmethod):
        value = classmethod(substitute)
    setattr(binding.ref.scope, binding.ref.name, value)


def restore(binding: Binding) -> None:
    """Puts the original value back where ``install`` wrote the substitute."""
    if binding.local:
        setattr(binding.ref.scope, binding.ref.name, binding.original)
    else:
        delattr(binding.ref.scope, binding.ref.name)
