"""File scanning for templates and application code."""

from scan.files import find_files, find_given_files, find_python_files

__all__ = ["find_files", "find_given_files", "find_python_files"]
