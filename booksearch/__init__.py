"""
GraphQL API for Book Search.

This package provides:
- User registration and JWT-based login
- A personal list of saved books per user
- A strawberry GraphQL schema served through FastAPI
"""
