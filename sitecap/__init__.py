"""sitecap: capture rendered web pages through a controlled browser."""

__version__ = "0.1.0"
