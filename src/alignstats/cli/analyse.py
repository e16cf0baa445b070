import argparse
import random

from alignstats.cli import program
from alignstats.engine.analysis.aligners import ALIGNMENT_PARSERS
from alignstats.engine.analysis.readsets import analyse
from alignstats.engine.options import AnalysisOptions


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, not {number}")
    return number

parser = program.subparsers.add_parser("analyse", help="Gather length and alignment statistics for a sample.")

parser.add_argument(
    "--sample", "-s",
    dest="sample_dir",
    required=True,
    type=str,
    help="The sample directory holding the read and alignment directories."
)

parser.add_argument(
    "--aligner", "-a",
    dest="aligner",
    required=False,
    default="last",
    type=str,
    help=f"The aligner the alignment files came from. One of: {', '.join(ALIGNMENT_PARSERS.keys())}."
)

parser.add_argument(
    "--reference", "-r",
    dest="reference_fasta",
    required=True,
    type=str,
    help="The FASTA file of references the reads were aligned to."
)

provenance_group = parser.add_mutually_exclusive_group()
provenance_group.add_argument(
    "--pass-only",
    action="store_true",
    dest="pass_only",
    default=False,
    help="Only process reads from the pass directory."
)
provenance_group.add_argument(
    "--fail-only",
    action="store_true",
    dest="fail_only",
    default=False,
    help="Only process reads from the fail directory."
)

parser.add_argument(
    "--max-reads",
    dest="max_reads",
    required=False,
    default=0,
    type=int,
    help="Stop after this many read files per read type. 0 processes every file."
)

parser.add_argument(
    "--coverage-bin-size",
    dest="coverage_bin_size",
    required=False,
    default=100,
    type=positive_int,
    help="Width in bases of the bins written to the coverage files."
)

parser.add_argument(
    "--seed",
    dest="seed",
    required=False,
    default=None,
    type=int,
    help="Seed for choosing between equally scored alignments, for reproducible output."
)

def run(args):
    options = AnalysisOptions(
        sample_dir=args.sample_dir,
        aligner=args.aligner,
        reference_fasta=args.reference_fasta,
        process_pass=not args.fail_only,
        process_fail=not args.pass_only,
        max_reads=args.max_reads,
        coverage_bin_size=args.coverage_bin_size
    )
    random_source = random.Random(args.seed) if args.seed is not None else None
    counts = analyse(options, random_source)
    for read_type, read_type_counts in counts.items():
        print(f"{read_type.value}: {read_type_counts.reads} reads, {read_type_counts.reads_with_alignments} with alignments, {read_type_counts.reads_without_alignments} without")

parser.set_defaults(func=run)
