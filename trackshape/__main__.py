# trackshape/__main__.py
import sys


def cli(argv=None):
    """
    Launcher so you can run:
      - python3 -m trackshape split [args]
      - python3 -m trackshape remux [args]
    """
    if argv is None:
        argv = sys.argv[1:]
    from .cli import app
    return app(args=argv, prog_name="trackshape")


if __name__ == "__main__":
    sys.exit(cli())
