"""Entry point for ``python -m grafana_forge``."""

from grafana_forge.cli.main import main


if __name__ == "__main__":
    main()
