"""Shelfwise REST API package.

Sub-modules expose FastAPI routers for each domain:
- products: product search, cursor and page listings, name checks
- categories: category search, cursor listing, name checks
"""
