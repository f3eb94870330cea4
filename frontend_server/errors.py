"""Startup errors. Anything raised from here ends the process."""


class FrontendServerError(Exception):
    """Base class for fatal frontend server errors."""


class ConfigurationError(FrontendServerError):
    """An environment setting could not be parsed."""


class StartupError(FrontendServerError):
    """A resource needed to serve requests could not be opened."""
