"""Allow ``python -m localstack_build``."""

from localstack_build.cli import app

if __name__ == "__main__":
    app()
