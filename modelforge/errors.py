"""
Error taxonomy for modelforge.

Every error raised by the orchestration engine derives from
`OrchestrationError` and carries the process exit status the CLI uses for it.
Scripts branch on the distinguished statuses:

    EXIT_MODULE_EXISTS        `new` was asked for a module that is already declared
    EXIT_MODULE_DIR_MISSING   a structural directory (package dir, models dir) is missing
    EXIT_NOTHING_TO_DO        `gen` found no declared modules
"""

EXIT_FAILURE = 1
EXIT_MODULE_EXISTS = 3
EXIT_MODULE_DIR_MISSING = 4
EXIT_NOTHING_TO_DO = 5


class OrchestrationError(Exception):
    exit_code = EXIT_FAILURE


# ------------------------------------------------------------------------------
# Configuration / structure

class ConfigError(OrchestrationError):
    """Declared configuration is missing, malformed, or inconsistent."""


class PackageNotFound(ConfigError):
    pass


class ModuleNotFound(OrchestrationError):
    """A requested module name is not declared. Recoverable while iterating a name list."""

    def __init__(self, name: str, config_name: str):
        super().__init__(f"No module named '{name}' found in {config_name}.")
        self.name = name


class ModuleCollision(OrchestrationError):
    exit_code = EXIT_MODULE_EXISTS

    def __init__(self, name: str, config_name: str):
        super().__init__(f"Module '{name}' already exists in {config_name}.")
        self.name = name


class ModuleDirectoryMissing(OrchestrationError):
    exit_code = EXIT_MODULE_DIR_MISSING


class NothingToDo(OrchestrationError):
    exit_code = EXIT_NOTHING_TO_DO


# ------------------------------------------------------------------------------
# Model cache

class ModelCacheError(OrchestrationError):
    pass


class ModelNotFound(ModelCacheError):
    pass


class UnsupportedFormat(ModelCacheError):
    pass


class MetadataReadError(ModelCacheError):
    pass


class ModelValidationError(ModelCacheError):
    """The source model could not be parsed or failed semantic checks."""


# ------------------------------------------------------------------------------
# Backends

class UnknownBackendError(OrchestrationError):
    def __init__(self, kind: str, known):
        known_str = ", ".join(sorted(known)) or "none"
        super().__init__(f"No backend registered for compiler '{kind}' (known: {known_str}).")
        self.kind = kind


class BackendError(OrchestrationError):
    """Wraps whatever a code-generation backend reports for one module."""

    def __init__(self, kind: str, module: str, message: str):
        super().__init__(f"Backend '{kind}' failed for module '{module}': {message}")
        self.kind = kind
        self.module = module
