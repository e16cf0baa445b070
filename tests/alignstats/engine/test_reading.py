from Bio import SeqIO
import pytest
from pytest import fixture

from alignstats.engine.exceptions.analysis import MalformedSequenceFileException, PlaceholderReadIdentifierException, SequenceRangeException
from alignstats.engine.reading import PLACEHOLDER_READ_IDENTIFIER, SequenceIndexer, guess_sequence_format, is_valid_read_extension, read_fasta, validate_read_identifiers
from alignstats.engine.structures.reads import SequenceFormat, SequenceRecord

TWO_RECORDS_PATH = "tests/resources/two_records.fasta"
FIRST_RECORD_ID = "gi|223667766|ref|NZ_DS264586.1|"

@fixture
def two_records_indexer():
    indexer = SequenceIndexer(TWO_RECORDS_PATH)
    indexer.index()
    return indexer

def test_index_keeps_file_order(two_records_indexer: SequenceIndexer):
    assert len(two_records_indexer) == 2
    assert two_records_indexer.get_id(0) == FIRST_RECORD_ID
    assert two_records_indexer.get_id(1) == "second_record"

def test_index_lengths(two_records_indexer: SequenceIndexer):
    assert two_records_indexer.get_length(0) == 620
    assert two_records_indexer.get_length("second_record") == 250

@pytest.mark.parametrize("start,end,expected", [
    (0, 499, "AACCAAGTTACTGGCTGTGTACACAGACGGATTTATGAGGTAGACAATAGACGTGTTATGCGTAACGTGACACCCTGAGTATAAACACTGTAGACCTTAGTCCTCGTAGATGCCCTAGGTTTCGCAATTGGCCAATGGGAGCTGGGGCCCGTACATTAGGAAATCGGGAGGCTGAATAAATTTTCGCTGGGGACTGACTATTTTCATGTCACCGTAAACGAACATCGATACCCACACGTGCTTCGAAATTACGTGGATCGGAACTAGTTCCGGCATGAGGTAGACAATTTGTGCTACTACGTACGTACGTACGGCGTATAGCGGTCGCCCATTAAAGCTGATAAATATCTCCTTGTCCTGGCATCCTAACGCTAAGCGACGTCGTGCATTGCTTGCGTAGATTCTGCAACACTAGGGCTACCGGTTATGCCGGGAACCTCTACAAGGGATCGATACTCTTCCAGCGGTATAACATCCTAGACAGACGCTATACATTGCAC"),
    (0, 9, "AACCAAGTTA"),
    (200, 209, "TTTTCATGTC"),
    (200, 214, "TTTTCATGTCACCGT"),
])
def test_sub_sequence_is_literal_range(two_records_indexer: SequenceIndexer, start: int, end: int, expected: str):
    sub_sequence = two_records_indexer.get_sub_sequence(FIRST_RECORD_ID, start, end)
    assert len(sub_sequence) == end - start + 1
    assert sub_sequence == expected

def test_sub_sequence_of_second_record_matches_biopython(two_records_indexer: SequenceIndexer):
    biopython_records = {record.id: str(record.seq) for record in SeqIO.parse(TWO_RECORDS_PATH, "fasta")}
    expected = biopython_records["second_record"]
    assert two_records_indexer.get_sequence("second_record") == expected
    assert two_records_indexer.get_sub_sequence("second_record", 55, 125) == expected[55:126]
    assert two_records_indexer.get_sub_sequence("second_record", 249, 249) == expected[249]

def test_sub_sequence_end_past_length_is_clamped(two_records_indexer: SequenceIndexer):
    assert two_records_indexer.get_sub_sequence(FIRST_RECORD_ID, 610, 700) == "TCGTTCTAGT"

@pytest.mark.parametrize("start,end", [(620, 630), (-1, 5), (10, 9)])
def test_sub_sequence_invalid_start_raises(two_records_indexer: SequenceIndexer, start: int, end: int):
    with pytest.raises(SequenceRangeException):
        two_records_indexer.get_sub_sequence(FIRST_RECORD_ID, start, end)

def test_fastq_index(tmp_path):
    fastq_path = tmp_path / "reads.fastq"
    fastq_path.write_text(
        "@read_a runid=1\nACGTACGTAA\n+\n@@@@@@@@@@\n"
        "@read_b\nTTTTGGGG\n+read_b\nIIIIIIII\n"
    )
    indexer = SequenceIndexer(fastq_path)
    records = indexer.index()
    assert [record.identifier for record in records] == ["read_a", "read_b"]
    assert indexer.get_length("read_a") == 10
    assert indexer.get_sub_sequence("read_a", 2, 5) == "GTAC"
    assert indexer.get_sequence("read_b") == "TTTTGGGG"

def test_multiline_fastq_index(tmp_path):
    fastq_path = tmp_path / "reads.fq"
    fastq_path.write_text("@read_a\nACGTA\nCGTAA\nGG\n+\nIIIII\nIIIII\nII\n")
    indexer = SequenceIndexer(fastq_path)
    indexer.index()
    assert indexer.get_length("read_a") == 12
    assert indexer.get_sub_sequence("read_a", 3, 11) == "TACGTAAGG"

def test_truncated_fastq_raises(tmp_path):
    fastq_path = tmp_path / "reads.fastq"
    fastq_path.write_text("@read_a\nACGT\n")
    with pytest.raises(MalformedSequenceFileException):
        SequenceIndexer(fastq_path).index()

def test_duplicate_identifiers_raise(tmp_path):
    fasta_path = tmp_path / "reads.fasta"
    fasta_path.write_text(">read\nACGT\n>read\nACGT\n")
    with pytest.raises(MalformedSequenceFileException):
        SequenceIndexer(fasta_path).index()

def test_uneven_line_lengths_raise(tmp_path):
    fasta_path = tmp_path / "reads.fasta"
    fasta_path.write_text(">read\nACGT\nAC\nACGT\n")
    with pytest.raises(MalformedSequenceFileException):
        SequenceIndexer(fasta_path).index()

def test_final_line_without_newline(tmp_path):
    fasta_path = tmp_path / "reads.fasta"
    fasta_path.write_text(">read\nACGT\nACG")
    indexer = SequenceIndexer(fasta_path)
    indexer.index()
    assert indexer.get_sequence("read") == "ACGTACG"

def test_placeholder_identifier_raises():
    records = [
        SequenceRecord("read_1", 10, 8, 10, 11),
        SequenceRecord(PLACEHOLDER_READ_IDENTIFIER + "_Basecall_2D", 10, 40, 10, 11)
    ]
    with pytest.raises(PlaceholderReadIdentifierException):
        validate_read_identifiers(records, "reads.fasta")

def test_unique_identifiers_pass_validation():
    validate_read_identifiers([SequenceRecord("c2fb5a7e-1d3e-4b39-9e55-3b5d8a1e6f10", 10, 8, 10, 11)], "reads.fasta")

@pytest.mark.parametrize("file_name,sequence_format", [
    ("read.fasta", SequenceFormat.FASTA),
    ("read.fa", SequenceFormat.FASTA),
    ("read.FASTQ", SequenceFormat.FASTQ),
    ("read.fq", SequenceFormat.FASTQ),
])
def test_guess_sequence_format(file_name: str, sequence_format: SequenceFormat):
    assert guess_sequence_format(file_name) is sequence_format
    assert is_valid_read_extension(file_name, sequence_format)

def test_read_extension_does_not_cross_formats():
    assert not is_valid_read_extension("read.fasta", SequenceFormat.FASTQ)
    assert not is_valid_read_extension("read.fasta.maf", SequenceFormat.FASTA)

def test_read_fasta_yields_named_strings():
    named_strings = list(read_fasta(TWO_RECORDS_PATH))
    assert named_strings[0].name == FIRST_RECORD_ID
    assert len(named_strings[1].sequence) == 250
