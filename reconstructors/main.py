import argparse
import json
import logging

from utils.config import Config
from utils.logging import configure_logging
from utils.worker import ReconstructorServer


def main() -> None:
    configure_logging(logging.INFO)

    parser = argparse.ArgumentParser()
    parser.add_argument("-c", "--config", help="Path to config file", required=True)
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single reconstruction pass, print it as JSON and exit",
    )
    parser.add_argument(
        "--owner", help="Only materialize the inventory of this wallet address"
    )
    args = parser.parse_args()
    config = Config.from_yaml_file(args.config)

    reconstructor_server = ReconstructorServer(config)
    if args.once:
        result = reconstructor_server.refresh(args.owner)
        print(json.dumps(result.to_dict(), indent=2))
        return

    reconstructor_server.run()


if __name__ == "__main__":
    main()
