"""User account service: registration, login, profiles and admin listing."""

__version__ = "0.1.0"
