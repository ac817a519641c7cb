"""Models of a small teaching Unix kernel: paging, allocation, locks, syscalls, a shell parser and utilities."""

__version__ = "0.1.0"