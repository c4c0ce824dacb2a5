"""HTTP access to the NPI Registry.

Contains the httpx-backed transport and URL/query construction.
Bounded Context: Registry Access
"""
