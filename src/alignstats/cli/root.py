import logging
import sys

from alignstats.cli import program
from alignstats.cli import analyse # registers the analyse subcommand
from alignstats.engine.exceptions.analysis import AnalysisException


def run():
    args = program.root_parser.parse_args()
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if args.log_file is not None:
        handlers.append(logging.FileHandler(args.log_file))
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers
    )
    try:
        args.func(args)
    except AnalysisException as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
