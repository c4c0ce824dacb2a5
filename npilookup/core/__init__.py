"""Core Application Layer: Orchestrates use cases and application logic.

Connects the domain layer with the infrastructure layer through interfaces.
Contains the lookup and batch services, the registry client facade and the
command handler.
"""
