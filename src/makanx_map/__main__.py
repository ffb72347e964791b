"""
Allows running the engine CLI as a module:
    python -m makanx_map layout demo-fair
"""

from .cli import cli_main

if __name__ == "__main__":
    cli_main()
