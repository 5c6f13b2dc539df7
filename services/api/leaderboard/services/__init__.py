"""Business logic services.

Services contain all ranking and caching logic and are called by routes.
Dependencies (store, cache backend, background queue) are passed in explicitly.
"""
