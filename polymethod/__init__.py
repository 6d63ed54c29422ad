"""Open multi-methods: virtual dispatch on several arguments, declared outside the classes."""

__version__ = "1.0.0"