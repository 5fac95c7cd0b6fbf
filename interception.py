#!/usr/bin/env python3
"""
Scoped function interception.

Temporarily rebinds named functions to caller-supplied substitutes, runs a
block of code, and restores every original binding when the block finishes,
whether it returns or raises.

Typical use inside a test::

    calls = []

    def fake_send(adapter, request, **kwargs):
        calls.append(request.url)
        return record.to_response(request)

    data = run_with_substitutions(
        {"requests.adapters.HTTPAdapter.send": fake_send},
        lambda: httpget.get_json("http://httpbin.org/get"),
    )

Substituted bindings are process-wide. Only one session may hold a given
binding at a time; overlapping sessions are rejected with BindingInUseError.
The facility is not safe to use from several threads at once.

Built-in functions (``os.isatty``, ``time.time``, ...) are rejected with
UnsupportedBindingKindError. Either wrap them in a function of your own and
substitute the wrapper, or use ``run_with_manual_substitution``.
"""

from __future__ import annotations

import functools
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Mapping, Tuple

import bindings
from bindings import (
    Binding,
    BindingRef,
    InterceptionError,
    UnresolvableBindingError,
    UnsupportedBindingKindError,
)

logger = logging.getLogger(__name__)

__all__ = [
    "BindingInUseError",
    "BindingRef",
    "InterceptionError",
    "InterceptionSession",
    "RestorationError",
    "UnresolvableBindingError",
    "UnsupportedBindingKindError",
    "run_with_manual_substitution",
    "run_with_substitutions",
    "substituted",
]


class BindingInUseError(InterceptionError):
    """The binding is already substituted by another active session."""


class RestorationError(InterceptionError):
    """One or more original bindings could not be reinstated.

    The process is left with substituted functions in place; tests running
    after this one cannot be trusted.

    Attributes:
        failures (list): ``(Binding, exception)`` pairs for each binding that
            could not be restored.
    """

    def __init__(self, failures: List[Tuple[Binding, BaseException]]):
        self.failures = list(failures)
        names = ", ".join(str(binding.ref) for binding, _ in self.failures)
        super().__init__(
            f"failed to restore {len(self.failures)} binding(s): {names}; "
            "substitutes are still installed"
        )


_registry_lock = threading.Lock()
_active_refs = set()


def _claim(refs: Iterable[BindingRef]) -> None:
    refs = list(refs)
    with _registry_lock:
        busy = [ref for ref in refs if ref in _active_refs]
        if busy:
            raise BindingInUseError(
                "already substituted by another session: " + ", ".join(str(ref) for ref in busy)
            )
        _active_refs.update(refs)


def _release(refs: Iterable[BindingRef]) -> None:
    with _registry_lock:
        _active_refs.difference_update(refs)


class InterceptionSession:
    """Installs a batch of substitutions on enter and restores them on exit.

    All targets are resolved and checked before anything is installed, so a
    batch either installs completely or not at all.

    Attributes:
        originals (dict): Maps each target, as passed in, to its original
            callable while the session is active. Substitutes can use it to
            delegate to the real function.
    """

    def __init__(self, substitutions: Mapping[Any, Callable]):
        self._substitutions = dict(substitutions)
        self._installed: List[Binding] = []
        self._claimed: List[BindingRef] = []
        self._active = False
        self.originals: Dict[Any, Callable] = {}

    def _plan(self) -> List[Tuple[Any, Binding, Callable]]:
        plan = []
        seen = set()
        for target, substitute in self._substitutions.items():
            binding = bindings.resolve(target)
            bindings.check_supported(binding)
            if binding.ref in seen:
                raise ValueError(f"{binding.ref} appears more than once in the same batch")
            if not callable(substitute):
                raise TypeError(f"substitute for {binding.ref} is not callable: {substitute!r}")
            seen.add(binding.ref)
            plan.append((target, binding, substitute))
        return plan

    def __enter__(self) -> "InterceptionSession":
        if self._active:
            raise RuntimeError("interception session is already active")
        try:
            plan = self._plan()
        except InterceptionError as exc:
            logger.warning("Rejected substitution batch: %s", exc)
            raise

        refs = [binding.ref for _, binding, _ in plan]
        _claim(refs)
        self._claimed = refs
        self._active = True
        try:
            for target, binding, substitute in plan:
                bindings.install(binding, substitute)
                self._installed.append(binding)
                self.originals[target] = binding.function
                logger.debug("Substituted %s", binding.ref)
        except BaseException:
            self._restore_all()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._restore_all()
        return False

    def _restore_all(self) -> None:
        failures = []
        try:
            # Bindings are independent; reverse order mirrors installation.
            while self._installed:
                binding = self._installed.pop()
                try:
                    bindings.restore(binding)
                    logger.debug("Restored %s", binding.ref)
                except Exception as err:
                    logger.critical("Could not restore %s: %s", binding.ref, err)
                    failures.append((binding, err))
        finally:
            _release(self._claimed)
            self._claimed = []
            self.originals = {}
            self._active = False
        if failures:
            raise RestorationError(failures)


def run_with_substitutions(substitutions: Mapping[Any, Callable], block: Callable[[], Any]) -> Any:
    """Runs ``block`` once with ``substitutions`` installed and returns its result.

    Args:
        substitutions: Maps binding targets (dotted paths, ``(scope, name)``
            pairs or BindingRef objects) to substitute callables. Use
            ``BindingRef(obj, name)`` keys when ``obj`` is unhashable.
        block: Zero-argument callable executed once, synchronously.

    Returns:
        Whatever ``block`` returns.

    Raises:
        UnresolvableBindingError: A target does not exist. Nothing is installed.
        UnsupportedBindingKindError: A target cannot be rebound safely.
            Nothing is installed.
        BindingInUseError: A target is held by another active session.
        RestorationError: An original could not be put back.
        Any exception raised by ``block``, after every binding is restored.
    """
    with InterceptionSession(substitutions):
        return block()


def substituted(substitutions: Mapping[Any, Callable]):
    """Decorator running the wrapped function inside an interception session."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with InterceptionSession(substitutions):
                return func(*args, **kwargs)
        return wrapper
    return decorator


def _finalizer_registrar(finalize_scope: Any) -> Callable[[Callable[[], None]], Any]:
    # unittest.TestCase, contextlib.ExitStack, pytest request
    for attr in ("addCleanup", "callback", "addfinalizer"):
        register = getattr(finalize_scope, attr, None)
        if callable(register):
            return register
    raise TypeError(
        f"{finalize_scope!r} cannot register finalizers; pass a TestCase, an ExitStack or a pytest request"
    )


def run_with_manual_substitution(binding_ref: Any, substitute: Callable, finalize_scope: Any) -> Callable:
    """Substitutes one binding that a session would reject, until ``finalize_scope`` ends.

    The original value is kept, a locked module is unlocked, the substitute is
    installed (built-in functions included), and a finalizer is registered on
    ``finalize_scope`` that puts the original back and locks the module again.

    Args:
        binding_ref: Dotted path, ``(scope, name)`` pair or BindingRef.
        substitute: Replacement callable.
        finalize_scope: A ``unittest.TestCase`` (``addCleanup``), a
            ``contextlib.ExitStack`` (``callback``) or a pytest request
            (``addfinalizer``).

    Returns:
        The original callable.
    """
    register = _finalizer_registrar(finalize_scope)
    binding = bindings.resolve(binding_ref)
    scope = binding.ref.scope
    if bindings.is_immutable_type(scope):
        raise UnsupportedBindingKindError(f"cannot substitute {binding.ref}: scope is an immutable built-in type")
    if not callable(binding.function):
        raise UnsupportedBindingKindError(f"cannot substitute {binding.ref}: target is not callable")
    if not callable(substitute):
        raise TypeError(f"substitute for {binding.ref} is not callable: {substitute!r}")

    relock = bindings.is_locked(scope)
    _claim([binding.ref])
    try:
        if relock:
            bindings.unlock_module(scope)
        bindings.install(binding, substitute)
    except BaseException:
        if relock:
            bindings.lock_module(scope)
        _release([binding.ref])
        raise
    logger.debug("Manually substituted %s", binding.ref)

    def finalize():
        try:
            bindings.restore(binding)
        except Exception as err:
            logger.critical("Could not restore %s: %s", binding.ref, err)
            raise RestorationError([(binding, err)]) from err
        finally:
            if relock:
                bindings.lock_module(scope)
            _release([binding.ref])
        logger.debug("Restored %s", binding.ref)

    register(finalize)
    return binding.function
