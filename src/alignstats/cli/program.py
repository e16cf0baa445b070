import argparse

root_parser = argparse.ArgumentParser(prog="alignstats", description="Read length and alignment statistics for nanopore read sets.")
subparsers = root_parser.add_subparsers(required=True)

root_parser.add_argument(
    "--log-file",
    dest="log_file",
    required=False,
    default=None,
    type=str,
    help="Also write the log to this file."
)

root_parser.add_argument(
    "--verbose", "-v",
    action="store_true",
    dest="verbose",
    default=False,
    help="Log every parsed file."
)
