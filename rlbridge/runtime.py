"""Process-wide embedded runtime and its one-shot lifecycle.

Policy modules run inside the interpreter with torch as the numeric runtime.
The runtime is brought up once per process, shared by every agent, and torn
down at interpreter exit. Agents never shut it down.
"""

from __future__ import annotations

import atexit
import contextlib
import importlib
import importlib.util
import logging
import sys
import threading
from importlib.machinery import ModuleSpec, PathFinder
from types import ModuleType
from typing import Callable, Iterator, Optional, Protocol, Sequence

from .errors import ModuleLoadError, PolicyModuleNotFoundError, RuntimeInitError

logger = logging.getLogger(__name__)


class EmbeddedRuntime(Protocol):
    def start(self) -> None: ...
    def import_module(
        self, name: str, argv: Optional[Sequence[str]] = None, search_paths: Sequence[str] = ()
    ) -> ModuleType: ...
    def shutdown(self) -> None: ...


@contextlib.contextmanager
def _patched_argv(argv: Optional[Sequence[str]]) -> Iterator[None]:
    if argv is None:
        yield
        return
    saved = sys.argv
    sys.argv = list(argv)
    try:
        yield
    finally:
        sys.argv = saved


@contextlib.contextmanager
def _registered(module: ModuleType) -> Iterator[None]:
    """Expose ``module`` in ``sys.modules`` while its body runs, then restore the old entry.

    dataclasses and pickle look classes up through ``sys.modules[cls.__module__]``.
    """
    name = module.__name__
    missing = object()
    saved = sys.modules.get(name, missing)
    sys.modules[name] = module
    try:
        yield
    finally:
        if saved is missing:
            sys.modules.pop(name, None)
        else:
            sys.modules[name] = saved


class PythonRuntime:
    """Loads policy modules with importlib; torch provides the tensors."""

    def __init__(self) -> None:
        self.torch_version: Optional[str] = None
        self.modules_loaded = 0

    def start(self) -> None:
        torch = importlib.import_module("torch")
        probe = torch.zeros(1, dtype=torch.float32)
        if probe.numel() != 1:
            raise RuntimeError("torch probe tensor has the wrong size")
        self.torch_version = str(torch.__version__)
        logger.info("embedded runtime up (python %s, torch %s)", sys.version.split()[0], self.torch_version)

    def find_spec(self, name: str, search_paths: Sequence[str] = ()) -> Optional[ModuleSpec]:
        """Search paths first, then bundled policies, then the import system."""
        from .policies import POLICY_REGISTRY

        if search_paths:
            spec = PathFinder.find_spec(name, [str(p) for p in search_paths])
            if spec is not None:
                return spec
        target = POLICY_REGISTRY.get(name, name)
        try:
            return importlib.util.find_spec(target)
        except (ImportError, ValueError):
            return None

    def import_module(
        self, name: str, argv: Optional[Sequence[str]] = None, search_paths: Sequence[str] = ()
    ) -> ModuleType:
        """Execute a fresh copy of the module so its globals belong to one agent."""
        spec = self.find_spec(name, search_paths)
        if spec is None or spec.loader is None:
            raise PolicyModuleNotFoundError(f"policy module {name!r} not found")
        module = importlib.util.module_from_spec(spec)
        with _patched_argv(argv), _registered(module):
            try:
                spec.loader.exec_module(module)
            except (Exception, SystemExit) as exc:
                raise ModuleLoadError(f"policy module {name!r} failed to load: {exc!r}") from exc
        self.modules_loaded += 1
        logger.debug("loaded policy module %s from %s", name, spec.origin)
        return module

    def shutdown(self) -> None:
        torch = sys.modules.get("torch")
        if torch is not None and torch.cuda.is_available():
            torch.cuda.empty_cache()
        logger.debug("embedded runtime shut down after %d module loads", self.modules_loaded)


class InterpreterLifecycle:
    """Guarded one-shot initializer for the embedded runtime."""

    def __init__(self, runtime_factory: Callable[[], EmbeddedRuntime] = PythonRuntime, register_exit: bool = True):
        self._runtime_factory = runtime_factory
        self._register_exit = register_exit
        self._lock = threading.Lock()
        self._runtime: Optional[EmbeddedRuntime] = None
        self._failure: Optional[BaseException] = None

    @property
    def ready(self) -> bool:
        return self._runtime is not None

    @property
    def runtime(self) -> Optional[EmbeddedRuntime]:
        return self._runtime

    def ensure_loaded(self) -> EmbeddedRuntime:
        runtime = self._runtime
        if runtime is not None:
            return runtime
        with self._lock:
            if self._runtime is not None:
                return self._runtime
            if self._failure is not None:
                raise RuntimeInitError(f"embedded runtime failed to start earlier: {self._failure}") from self._failure
            try:
                runtime = self._runtime_factory()
                runtime.start()
            except Exception as exc:
                self._failure = exc
                logger.error("embedded runtime failed to start: %s", exc)
                raise RuntimeInitError(f"embedded runtime failed to start: {exc}") from exc
            if self._register_exit:
                atexit.register(runtime.shutdown)
            self._runtime = runtime
            return runtime


_lifecycle = InterpreterLifecycle()


def ensure_loaded() -> EmbeddedRuntime:
    """Bring the process-wide runtime up if it is not already."""
    return _lifecycle.ensure_loaded()


def interpreter_ready() -> bool:
    return _lifecycle.ready
