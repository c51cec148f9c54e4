"""
CLI entry point, when used as a module: `python -m kreflector`.

Useful for debugging in the IDEs (use the start-mode "Module", module "kreflector").
"""
from kreflector import cli

if __name__ == '__main__':
    cli.main()
