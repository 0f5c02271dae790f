# src/catch2adapter/cli/__init__.py
