"""Authentication module for claude-proxy."""

from .api_key import SUPPORTED_METHODS, api_key_env_var, extract_api_key

__all__ = ["SUPPORTED_METHODS", "api_key_env_var", "extract_api_key"]
