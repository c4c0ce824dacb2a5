"""API Resilience Implementations.

Contains the retry service with exponential backoff and the cancellation
token used to stop pending requests.
Bounded Context: API Resilience
"""
