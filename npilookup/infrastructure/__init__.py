"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the registry HTTP API,
configuration files, the terminal) by implementing the interfaces defined in
the domain layer. Also includes caching and resilience services.
"""
