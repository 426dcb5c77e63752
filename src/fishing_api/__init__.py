"""
Fishing game backend API package.

Modules:
- config: required environment settings
- db: PostgreSQL connection pooling, schema provisioning + query helpers
- repository: SQL for players, game state and inventory
- auth_utils: password hashing and JWT auth helpers
- errors: error taxonomy and the {"error": ...} response handlers
- schemas: Pydantic models for the REST API
- main: FastAPI application and server entrypoint
"""
