"""
Entry point for running the package as a module.

Usage:
    python -m ligand_activity_framework --config configs/example.yaml
"""

from .cli import main

if __name__ == "__main__":
    main()
