import os


# PUBLIC_INTERFACE
def required_env(name: str) -> str:
    """Return a required environment variable or raise RuntimeError naming it."""
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable '{name}'. Set it in the server environment.")
    return value
