"""reddit-oauth-client: serialized, rate-limited reddit API client with OAuth2 token refresh."""

__version__ = "0.1.0"
