"""
Caching configuration for the gallery console.

Flask-Caching backs the server-side session token store: identity provider
tokens are too large for the signed session cookie, so only an opaque key
travels with the browser and the tokens live here.
"""

from flask_caching import Cache

# Initialize cache instance
cache = Cache()


def init_cache(app):
    """
    Initialize Flask-Caching with Redis backend.

    Falls back to SimpleCache for development if Redis is not configured.

    Args:
        app: Flask application instance
    """
    cache_config = {
        "CACHE_TYPE": "RedisCache" if app.config.get("REDIS_URL") else "SimpleCache",
        "CACHE_DEFAULT_TIMEOUT": 3600,  # tokens carry their own expiry
        "CACHE_KEY_PREFIX": "gallery-admin:",
    }

    if app.config.get("REDIS_URL"):
        cache_config["CACHE_REDIS_URL"] = app.config["REDIS_URL"]

    app.config.update(cache_config)
    cache.init_app(app)

    app.logger.info(
        f"Cache initialized: {cache_config['CACHE_TYPE']} backend",
        extra={"cache_type": cache_config["CACHE_TYPE"]},
    )

    return cache
