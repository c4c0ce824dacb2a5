"""Domain Interfaces (Ports):

Defines the contracts (Abstract Base Classes) for the registry transport, the
provider cache and the user interface. Core application logic depends on these
interfaces, not concrete implementations.
"""
