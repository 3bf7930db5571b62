"""Run the server: ``python -m dynapi``."""

from dynapi.api.server import Server
from dynapi.config import ServerConfig


def main() -> None:
    Server(ServerConfig.from_env()).run()


if __name__ == "__main__":
    main()
