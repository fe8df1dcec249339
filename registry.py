# registry.py
"""
FILE: registry.py
DESCRIPTION:
  Maps module names to factories and builds the configured module set.
  - The factory table is passed in by main (no import-time self-registration).
  - resolve() validates every name before constructing anything, so a bad
    module list never leaves half-started pollers behind.
"""


class UnknownModuleError(ValueError):
    """Configured module name has no factory (or is listed twice)."""


class ModuleRegistry:
    def __init__(self, factories=None):
        self._factories = dict(factories or {})

    def register(self, name, factory):
        if not name:
            raise ValueError("module name must not be empty")
        if name in self._factories:
            raise ValueError(f"module '{name}' already registered")
        self._factories[name] = factory

    def names(self):
        return sorted(self._factories)

    def resolve(self, names, module_settings=None, overrides=None):
        """Instantiate the named modules in order.

        Each factory receives the common `overrides` (e.g. a global 'period')
        with the module's own section layered on top, so module settings win.
        Returns a dict of name -> module in listed order.
        """
        module_settings = module_settings or {}
        overrides = overrides or {}

        seen = set()
        for name in names:
            if name not in self._factories:
                raise UnknownModuleError(f"unsupported sensor: {name}")
            if name in seen:
                raise UnknownModuleError(f"sensor listed more than once: {name}")
            seen.add(name)

        modules = {}
        try:
            for name in names:
                settings = dict(overrides)
                settings.update(module_settings.get(name) or {})
                modules[name] = self._factories[name](settings)
                print(f"[STARTUP] Loaded module '{name}'")
        except BaseException:
            for mod in modules.values():
                mod.close()
            raise
        return modules
