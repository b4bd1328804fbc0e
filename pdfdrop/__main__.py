"""
Module entry point for: python -m pdfdrop

Allows running the pipeline directly as a module:
    python -m pdfdrop drop <pdf_path> [options]
    python -m pdfdrop pages <archive_path>
    python -m pdfdrop info <pdf_path>
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
